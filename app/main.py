from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import CORRELATION_HEADER, configure_logging, correlation_context, get_logger
from app.core.metrics import get_counters, get_metrics, inc_counter
from app.db.database import Base, engine, get_db, transactional_session
from app.routers.admin import router as admin_router
from app.routers.assessments import router as assessments_router
from app.routers.auth import router as auth_router
from app.routers.exceptions import register_exception_handlers
from app.routers.questionnaire import router as questionnaire_router
from app.services.seeds import seed_reference_questionnaire


configure_logging(environment=settings.environment)
logger = get_logger("maturity.app.main", component="app")

_app_start_time = datetime.now(timezone.utc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: optional ``create_all`` (dev only) and reference seed.

    Production schemas are managed by Alembic (``alembic upgrade head``) with
    ``RUN_STARTUP_DDL=false``.
    """
    if settings.run_startup_ddl:
        logger.info("startup_execute_ddl", extra={"structured_data": {"run_startup_ddl": True}})
        Base.metadata.create_all(bind=engine)
    if settings.run_startup_seed:
        logger.info("startup_seed_data", extra={"structured_data": {"run_startup_seed": True}})
        with transactional_session() as db:
            seed_reference_questionnaire(db)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
register_exception_handlers(app)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    with correlation_context(request.headers.get(CORRELATION_HEADER)) as correlation_id:
        inc_counter("http.requests")
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


# Register routers at import time so tests see routes without requiring startup
app.include_router(auth_router)
app.include_router(questionnaire_router)
app.include_router(assessments_router)
app.include_router(admin_router)


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Application status, database connectivity and in-process metrics."""
    uptime = (datetime.now(timezone.utc) - _app_start_time).total_seconds()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
        overall_status = "healthy"
    except SQLAlchemyError as e:
        logger.error("health_check_db_failed", extra={"structured_data": {"error": str(e)}})
        db_status = "disconnected"
        overall_status = "unhealthy"
    return {
        "status": overall_status,
        "started_at": _app_start_time.isoformat(),
        "uptime_seconds": round(uptime, 2),
        "environment": settings.environment,
        "database": {"status": db_status, "engine": engine.dialect.name},
        "delivery_mode": settings.delivery_mode,
        "counters": get_counters(),
        "timings": get_metrics(),
    }


@app.get("/", include_in_schema=False)
def root():
    return {
        "name": settings.app_name,
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/favicon.ico", include_in_schema=False)
def favicon():
    return Response(status_code=204)
