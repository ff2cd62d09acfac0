from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import DomainError
from app.core.logging import get_correlation_id, get_logger
from app.core.metrics import inc_counter

logger = get_logger("maturity.routers.exceptions", component="router")


def error_payload(exc: DomainError) -> dict[str, Any]:
    """``{"error": code, "detail": {"message": ..., ...}, "correlation_id"?}``"""
    if isinstance(exc.detail, dict):
        detail_payload: dict[str, Any] = {**exc.detail}
        detail_payload.setdefault("message", exc.message)
    elif exc.detail is not None:
        detail_payload = {"message": exc.message, "extra": exc.detail}
    else:
        detail_payload = {"message": exc.message}
    payload: dict[str, Any] = {"error": exc.error_code, "detail": detail_payload}
    correlation_id = get_correlation_id()
    if correlation_id:
        payload["correlation_id"] = correlation_id
    return payload


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain exceptions raised by services into JSON responses."""

    @app.exception_handler(DomainError)
    async def _handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        status_code = getattr(exc, "status_code", 400)
        inc_counter(f"http.domain_error.{exc.error_code}")
        if status_code >= 500:
            logger.error(
                "domain_error",
                extra={"structured_data": {"error": exc.error_code, "path": request.url.path, "message": exc.message}},
            )
        else:
            logger.info(
                "domain_error",
                extra={"structured_data": {"error": exc.error_code, "path": request.url.path, "status": status_code}},
            )
        return JSONResponse(status_code=status_code, content=error_payload(exc))
