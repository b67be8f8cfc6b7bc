"""
Auth API routes.

Every action answers with an ``ActionResult``. Rate-limited requests get a
429 carrying the remaining budget and the time until the window resets.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_rate_limiter
from app.api.middleware import read_session_token
from app.core.config import get_settings
from app.core.security import (
    PASSWORD_RESET_TOKEN_TYPE,
    create_access_token,
    create_password_reset_token,
    decode_access_token,
    decode_token,
)
from app.models import User
from app.schemas.auth import (
    ActionResult,
    AuthStatus,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
)
from app.services import users as user_service
from app.services.rate_limit import RateLimiter, RateLimitResult, get_client_ip

router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger()


def _failure(status_code: int, error: str, limit: Optional[RateLimitResult] = None) -> JSONResponse:
    result = ActionResult(success=False, error=error)
    if limit is not None:
        result.remaining = limit.remaining
        result.reset_in_ms = limit.reset_in_ms
    return JSONResponse(status_code=status_code, content=result.model_dump(exclude_none=True))


def _rate_limited(limit: RateLimitResult) -> JSONResponse:
    return _failure(status.HTTP_429_TOO_MANY_REQUESTS, limit.error or "Too many requests", limit)


def set_session_cookie(response: Response, user: User) -> None:
    settings = get_settings()
    token = create_access_token(str(user.id), user.auth_metadata)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.jwt_expires_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def clear_session_cookies(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(settings.session_cookie_name)
    response.delete_cookie(settings.activity_cookie_name)


@router.post("/login", response_model=ActionResult, response_model_exclude_none=True)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    ip = get_client_ip(request)
    limit = limiter.check_login(ip)
    if not limit.success:
        return _rate_limited(limit)

    user = user_service.authenticate(db, payload.email, payload.password)
    if user is None:
        return _failure(status.HTTP_401_UNAUTHORIZED, "Invalid email or password", limit)
    if not user.is_active:
        logger.info("auth.login_deactivated", user_id=user.id)
        return _failure(
            status.HTTP_403_FORBIDDEN,
            "Your account has been deactivated. Please contact an administrator.",
        )

    user_service.record_login(db, user)
    set_session_cookie(response, user)
    logger.info("auth.login", user_id=user.id)
    return ActionResult(
        success=True,
        remaining=limit.remaining,
        must_change_password=user.must_change_password,
    )


@router.post("/logout", response_model=ActionResult, response_model_exclude_none=True)
def logout(response: Response):
    clear_session_cookies(response)
    return ActionResult(success=True)


@router.post("/forgot-password", response_model=ActionResult, response_model_exclude_none=True)
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Always succeeds so callers cannot probe which emails are registered."""
    ip = get_client_ip(request)
    limit = limiter.check_password_reset(ip)
    if not limit.success:
        return _rate_limited(limit)

    user = user_service.get_user_by_email(db, payload.email)
    if user is not None and user.is_active:
        token = create_password_reset_token(str(user.id))
        # Delivery is handled outside this service
        logger.info("auth.password_reset_requested", user_id=user.id, reset_token=token)
    return ActionResult(success=True, remaining=limit.remaining)


@router.post("/reset-password", response_model=ActionResult, response_model_exclude_none=True)
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    claims = decode_token(payload.token, PASSWORD_RESET_TOKEN_TYPE)
    user = None
    if claims is not None:
        try:
            user = user_service.get_user(db, int(claims["sub"]))
        except (TypeError, ValueError):
            user = None
    if user is None:
        return _failure(status.HTTP_400_BAD_REQUEST, "Reset link is invalid or has expired")

    user_service.change_password(db, user, payload.new_password)
    return ActionResult(success=True)


@router.post("/change-password", response_model=ActionResult, response_model_exclude_none=True)
def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    limit = limiter.check_password_change(str(current_user.id))
    if not limit.success:
        return _rate_limited(limit)

    user = user_service.change_password(
        db,
        current_user,
        payload.new_password,
        clear_must_change_flag=payload.clear_must_change_flag,
    )
    # Claims include must_change_password, so the session token is reissued
    set_session_cookie(response, user)
    return ActionResult(
        success=True,
        remaining=limit.remaining,
        must_change_password=user.must_change_password,
    )


@router.get("/status", response_model=AuthStatus)
def auth_status(request: Request, db: Session = Depends(get_db)):
    token = read_session_token(request)
    payload = decode_access_token(token) if token else None
    if payload is None:
        return AuthStatus(is_authenticated=False)
    try:
        user = user_service.get_user(db, int(payload["sub"]))
    except (TypeError, ValueError):
        user = None
    if user is None or not user.is_active:
        return AuthStatus(is_authenticated=False)
    return AuthStatus(
        is_authenticated=True,
        must_change_password=user.must_change_password,
        email=user.email,
    )


@router.post("/refresh", response_model=ActionResult, response_model_exclude_none=True)
def refresh_session(response: Response, current_user: User = Depends(get_current_user)):
    """Reissue the session token from the user's current auth metadata."""
    set_session_cookie(response, current_user)
    return ActionResult(success=True, must_change_password=current_user.must_change_password)
