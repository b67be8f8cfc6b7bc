from typing import Optional

from pydantic import BaseModel, EmailStr, constr

Password = constr(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: constr(min_length=1, max_length=72)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: Password


class ChangePasswordRequest(BaseModel):
    new_password: Password
    clear_must_change_flag: bool = False


class ActionResult(BaseModel):
    """Outcome of an auth action; rate-limited failures carry the window state."""

    success: bool
    error: Optional[str] = None
    remaining: Optional[int] = None
    reset_in_ms: Optional[int] = None
    must_change_password: Optional[bool] = None


class AuthStatus(BaseModel):
    is_authenticated: bool
    must_change_password: bool = False
    email: Optional[str] = None
