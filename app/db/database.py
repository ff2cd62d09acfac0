from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url, URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings
from app.core.metrics import inc_counter, timer

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True, slots=True)
class DatabaseGateway:
    """Encapsulates engine and session factory lifecycle."""

    engine: Engine
    session_factory: sessionmaker[Session]

    @contextmanager
    def session(self) -> Iterator[Session]:
        inc_counter("db.session.opens")
        session: Session = self.session_factory()
        try:
            with timer("db.session.duration"):
                yield session
        finally:
            session.close()

    @contextmanager
    def transactional(self) -> Iterator[Session]:
        session: Session = self.session_factory()
        inc_counter("db.transaction.opens")
        try:
            with timer("db.transaction.duration"):
                yield session
                session.commit()
            inc_counter("db.transaction.commits")
        except SQLAlchemyError as e:
            session.rollback()
            inc_counter("db.transaction.rollbacks")
            logger.error("transaction_rollback", extra={"structured_data": {"error": str(e)}})
            raise
        except Exception:
            session.rollback()
            inc_counter("db.transaction.rollbacks")
            raise
        finally:
            session.close()


def build_engine(database_url: str) -> Engine:
    url: URL = make_url(database_url)
    kwargs: dict[str, object] = {"echo": False, "future": True}

    pool_kwargs = {
        "poolclass": QueuePool,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": settings.db_pool_pre_ping,
    }
    if url.get_backend_name() == "sqlite":
        connect_args: dict[str, object] = {"check_same_thread": False}
        database = url.database or ""
        if database.startswith("file:"):
            connect_args["uri"] = True
        kwargs["connect_args"] = connect_args
        if database in ("", ":memory:", "file::memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(pool_kwargs)
    else:
        kwargs.update(pool_kwargs)

    return create_engine(database_url, **kwargs)


def build_session_factory(engine_instance: Engine) -> sessionmaker[Session]:
    # expire_on_commit=False keeps scored snapshots readable after the commit
    return sessionmaker(bind=engine_instance, autoflush=False, expire_on_commit=False, future=True)


engine: Engine = build_engine(settings.database_url)
SessionLocal: sessionmaker[Session] = build_session_factory(engine)
database_gateway = DatabaseGateway(engine=engine, session_factory=SessionLocal)


def get_db():
    with database_gateway.session() as session:
        yield session


def get_session_factory() -> sessionmaker[Session]:
    """Dependency returning the factory used by out-of-band report delivery."""

    return SessionLocal


@contextmanager
def transactional_session() -> Iterator[Session]:
    """Context manager that manages commit/rollback for explicit transactions."""

    with database_gateway.transactional() as session:
        yield session


__all__ = [
    "Base",
    "database_gateway",
    "engine",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "get_db",
    "get_session_factory",
    "transactional_session",
]
