"""
Route authorization decisions.

A request path is checked against a static table of route prefixes and the
roles allowed on them. The acting user's role and active flag come from the
session token claims; legacy tokens that lack either value are completed by
a single user row read by the caller.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from app.models.user import UserRole

ALL_ROLES: FrozenSet[str] = frozenset(role.value for role in UserRole)

ROUTE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "/dashboard": ALL_ROLES,
    # Clients only see their assigned projects
    "/projects": ALL_ROLES,
    "/projects/new": frozenset({"admin", "pm"}),
    "/clients": frozenset({"admin", "pm"}),
    "/users": frozenset({"admin"}),
    "/reports": frozenset({"admin", "pm", "management", "client"}),
    "/finance": frozenset({"admin", "management"}),
    "/settings": frozenset({"admin"}),
}

PUBLIC_PATHS: FrozenSet[str] = frozenset({"/"})
PUBLIC_PREFIXES: Tuple[str, ...] = (
    "/login",
    "/forgot-password",
    "/reset-password",
    "/auth/callback",
    "/media",
)
# Signed-in users are sent to the landing page instead of these.
SIGNED_IN_REDIRECTS: FrozenSet[str] = frozenset({"/login", "/forgot-password"})
API_PUBLIC_PREFIXES: Tuple[str, ...] = ("/auth", "/health")


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def can_access_route(path: str, role: Optional[str]) -> bool:
    """
    Return whether ``role`` may open ``path``.

    Exact table entries win; otherwise the longest registered prefix that
    covers the path applies. Paths with no entry are open to every role.
    """
    allowed = ROUTE_PERMISSIONS.get(path)
    if allowed is None:
        best: Optional[str] = None
        for prefix in ROUTE_PERMISSIONS:
            if _matches(path, prefix) and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return True
        allowed = ROUTE_PERMISSIONS[best]
    return role in allowed


def split_api_path(path: str, api_prefix: str) -> Tuple[bool, str]:
    """Return (is_api, path relative to the API prefix)."""
    if api_prefix and _matches(path, api_prefix):
        return True, path[len(api_prefix):] or "/"
    return False, path


def is_public_path(path: str, api_prefix: str) -> bool:
    is_api, route_path = split_api_path(path, api_prefix)
    if is_api:
        return any(_matches(route_path, prefix) for prefix in API_PUBLIC_PREFIXES)
    if path in PUBLIC_PATHS:
        return True
    return any(_matches(path, prefix) for prefix in PUBLIC_PREFIXES)


@dataclass(frozen=True)
class UserStatus:
    role: Optional[str]
    is_active: Optional[bool]


@dataclass(frozen=True)
class SessionIdentity:
    user_id: str
    role: Optional[str]
    is_active: Optional[bool]
    from_claims: bool


def status_from_claims(payload: Mapping[str, Any]) -> UserStatus:
    metadata = payload.get("user_metadata") or {}
    role = metadata.get("role")
    is_active = metadata.get("is_active")
    return UserStatus(
        role=role if isinstance(role, str) else None,
        is_active=is_active if isinstance(is_active, bool) else None,
    )


def needs_lookup(payload: Mapping[str, Any]) -> bool:
    """True for legacy sessions whose claims lack the role or the active flag."""
    claims = status_from_claims(payload)
    return claims.role is None or claims.is_active is None


def resolve_identity(
    payload: Mapping[str, Any],
    stored: Optional[UserStatus] = None,
) -> SessionIdentity:
    """
    Build the acting identity from token claims.

    ``stored`` is the user row read for legacy sessions and only fills in
    values the claims lack. Without it (missing row or failed lookup) those
    values stay unknown.
    """
    user_id = str(payload["sub"])
    claims = status_from_claims(payload)
    if claims.role is not None and claims.is_active is not None:
        return SessionIdentity(user_id, claims.role, claims.is_active, from_claims=True)

    if stored is None:
        return SessionIdentity(user_id, claims.role, claims.is_active, from_claims=False)
    return SessionIdentity(
        user_id,
        claims.role if claims.role is not None else stored.role,
        claims.is_active if claims.is_active is not None else stored.is_active,
        from_claims=False,
    )


class AccessOutcome(str, Enum):
    ALLOW = "allow"
    DEACTIVATED = "deactivated"
    UNAUTHORIZED = "unauthorized"


def evaluate_access(route_path: str, identity: SessionIdentity) -> AccessOutcome:
    # Only an explicit False signs the user out; unknown is treated as active.
    if identity.is_active is False:
        return AccessOutcome.DEACTIVATED
    # Unknown role passes; role-gated handlers re-read it from the database.
    if identity.role is None:
        return AccessOutcome.ALLOW
    if not can_access_route(route_path, identity.role):
        return AccessOutcome.UNAUTHORIZED
    return AccessOutcome.ALLOW
