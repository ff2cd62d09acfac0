from datetime import datetime, timedelta, timezone
import hmac
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings, settings
from app.core.errors import AuthenticationError
from app.i18n.messages import AuthMessages

# pbkdf2_sha256 keeps passlib free of the bcrypt backend.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADMIN_SUBJECT = "admin"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def verify_admin_secret(candidate: str, config: Settings = settings) -> bool:
    """Check the admin secret against the configured hash, else the plain value."""
    if not candidate:
        return False
    if config.admin_password_hash:
        try:
            return verify_password(candidate, config.admin_password_hash)
        except ValueError:
            return False
    return hmac.compare_digest(candidate.encode("utf-8"), config.admin_password.encode("utf-8"))


def create_access_token(subject: str = ADMIN_SUBJECT, expires_minutes: Optional[int] = None) -> str:
    """Create an HS256 token with sub, exp, nbf, iss and aud claims."""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.admin_token_expire_minutes)
    to_encode = {
        "sub": subject,
        "exp": expire,
        "nbf": now,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and validate a token.

    Raises:
        AuthenticationError: If the token is invalid, expired, or carries the
            wrong issuer, audience or subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"leeway": 5},
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        raise AuthenticationError(AuthMessages.INVALID_TOKEN, detail={"reason": str(e)}) from e
    if payload.get("sub") != ADMIN_SUBJECT:
        raise AuthenticationError(AuthMessages.INVALID_TOKEN, detail={"reason": "unexpected subject"})
    return payload


def require_admin(authorization: str | None = Header(default=None)) -> dict:
    """FastAPI dependency gating admin routes behind a Bearer token."""
    if not authorization:
        raise AuthenticationError(AuthMessages.MISSING_TOKEN)
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError(AuthMessages.INVALID_TOKEN, detail={"reason": "expected 'Bearer <token>'"})
    return decode_access_token(parts[1])
