"""Session and role checks applied to every incoming request."""
import asyncio
from typing import Optional
from urllib.parse import urlencode

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

from app.core.config import get_settings
from app.core.security import decode_access_token
from app.services import user_status
from app.services.route_access import (
    SIGNED_IN_REDIRECTS,
    AccessOutcome,
    can_access_route,
    evaluate_access,
    is_public_path,
    needs_lookup,
    resolve_identity,
    split_api_path,
)

logger = structlog.get_logger()


def read_session_token(request: Request) -> Optional[str]:
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def _redirect(path: str, error: Optional[str] = None) -> RedirectResponse:
    url = f"{path}?{urlencode({'error': error})}" if error else path
    return RedirectResponse(url=url)


class RouteAuthorizationMiddleware(BaseHTTPMiddleware):
    """
    Redirect requests the acting user may not make.

    - no valid session on a protected path: login page
    - account deactivated: session cookies cleared, login page with an error
    - role not allowed on the path: landing page with an "unauthorized" error,
      or a 403 when the landing page would refuse the role as well
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        settings = get_settings()
        path = request.url.path
        token = read_session_token(request)
        payload = decode_access_token(token) if token else None

        if is_public_path(path, settings.api_prefix):
            if payload is not None and path in SIGNED_IN_REDIRECTS:
                return _redirect(settings.landing_path)
            return await call_next(request)

        if payload is None:
            response = _redirect(settings.login_path)
            if token:
                response.delete_cookie(settings.session_cookie_name)
            return response

        stored = None
        if needs_lookup(payload):
            stored = await run_in_threadpool(user_status.load_user_status, str(payload["sub"]))
        identity = resolve_identity(payload, stored)

        _, route_path = split_api_path(path, settings.api_prefix)
        outcome = evaluate_access(route_path, identity)

        if outcome is AccessOutcome.DEACTIVATED:
            logger.info("auth.deactivated_signout", user_id=identity.user_id)
            response = _redirect(settings.login_path, "account_deactivated")
            response.delete_cookie(settings.session_cookie_name)
            response.delete_cookie(settings.activity_cookie_name)
            return response

        if outcome is AccessOutcome.UNAUTHORIZED:
            logger.info(
                "auth.route_denied", user_id=identity.user_id, role=identity.role, path=path
            )
            if not can_access_route(settings.landing_path, identity.role):
                # Redirecting to a page that also refuses the role would loop.
                return JSONResponse({"detail": "unauthorized"}, status_code=403)
            return _redirect(settings.landing_path, "unauthorized")

        request.state.identity = identity
        response = await call_next(request)

        # Keyed by user id: another account on the same browser gets its own interval.
        if request.cookies.get(settings.activity_cookie_name) != identity.user_id:
            schedule_activity_touch(identity.user_id)
            response.set_cookie(
                settings.activity_cookie_name,
                identity.user_id,
                max_age=settings.activity_update_interval_seconds,
                httponly=True,
                samesite="lax",
                secure=settings.session_cookie_secure,
            )
        return response


def schedule_activity_touch(user_id: str) -> None:
    loop = asyncio.get_running_loop()
    # Not awaited so the write never delays the response.
    loop.run_in_executor(None, user_status.touch_last_active, user_id)
