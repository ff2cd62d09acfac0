from fastapi import APIRouter

from app.core.config import settings
from app.core.errors import AuthenticationError
from app.core.logging import get_logger
from app.core.metrics import inc_counter
from app.i18n.messages import AuthMessages
from app.schemas.auth import AdminTokenRequest, Token
from app.services.security import create_access_token, verify_admin_secret

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger("maturity.routers.auth", component="router")


@router.post("/admin-token", response_model=Token)
def issue_admin_token(payload: AdminTokenRequest):
    if not verify_admin_secret(payload.password):
        inc_counter("auth.admin.rejected")
        logger.warning("admin_login_rejected")
        raise AuthenticationError(AuthMessages.INVALID_CREDENTIALS)
    inc_counter("auth.admin.issued")
    return Token(
        access_token=create_access_token(),
        expires_in=settings.admin_token_expire_minutes * 60,
    )
