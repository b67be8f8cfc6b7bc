from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(
    subject: str,
    user_metadata: Optional[Dict[str, Any]] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Issue a session token.

    ``user_metadata`` is embedded as-is so the authorization middleware can
    read ``role`` and ``is_active`` without touching the database. Tokens
    issued without those keys force a fallback lookup.
    """
    settings = get_settings()
    expire = datetime.utcnow() + timedelta(
        minutes=expires_minutes or settings.jwt_expires_minutes
    )
    to_encode = {
        "sub": subject,
        "exp": expire,
        "typ": ACCESS_TOKEN_TYPE,
        "user_metadata": dict(user_metadata or {}),
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_password_reset_token(subject: str) -> str:
    settings = get_settings()
    expire = datetime.utcnow() + timedelta(minutes=settings.password_reset_expires_minutes)
    to_encode = {"sub": subject, "exp": expire, "typ": PASSWORD_RESET_TOKEN_TYPE}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when it is invalid, expired or of another type."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("typ") != expected_type or not payload.get("sub"):
        return None
    return payload


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    return decode_token(token, ACCESS_TOKEN_TYPE)
