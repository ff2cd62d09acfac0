from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import Update
from sqlalchemy.orm import Session


TSession = TypeVar("TSession", bound=Session)


@dataclass
class Repository(Generic[TSession]):
    """Lightweight base repository exposing a SQLAlchemy session.

    Repositories never commit; services own the transaction boundary.
    """

    db: TSession

    @property
    def session(self) -> TSession:
        """Expose the underlying SQLAlchemy session for advanced use cases."""
        return self.db

    def _execute_update(self, statement: Update, *, synchronize: str | bool = False) -> int:
        """Run a bulk UPDATE and return its rowcount.

        ``synchronize="fetch"`` refreshes matching objects already loaded in the
        session; the default leaves the identity map untouched.
        """
        result = self.db.execute(statement.execution_options(synchronize_session=synchronize))
        return result.rowcount or 0

    def _compare_and_set(self, statement: Update) -> bool:
        """A guarded UPDATE succeeded only if it matched exactly one row."""
        return self._execute_update(statement) == 1
