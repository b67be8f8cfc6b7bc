from app.schemas.user import (
    UserBase,
    UserInvite,
    UserUpdate,
    UserActiveUpdate,
    UserOut,
    UserInviteResponse,
    MetadataSyncResponse,
)
from app.schemas.auth import (
    LoginRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ChangePasswordRequest,
    ActionResult,
    AuthStatus,
)
from app.schemas.project import (
    ProjectCreate,
    ProjectOut,
    AssignmentCreate,
    AssignmentOut,
    ScopeItemCreate,
    ScopeItemOut,
    DashboardOut,
)
from app.schemas.drawing import DrawingRevisionOut, DrawingOut, DrawingUploadResponse

__all__ = [
    "UserBase",
    "UserInvite",
    "UserUpdate",
    "UserActiveUpdate",
    "UserOut",
    "UserInviteResponse",
    "MetadataSyncResponse",
    "LoginRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "ChangePasswordRequest",
    "ActionResult",
    "AuthStatus",
    "ProjectCreate",
    "ProjectOut",
    "AssignmentCreate",
    "AssignmentOut",
    "ScopeItemCreate",
    "ScopeItemOut",
    "DashboardOut",
    "DrawingRevisionOut",
    "DrawingOut",
    "DrawingUploadResponse",
]
