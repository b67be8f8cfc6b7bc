from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, constr

from app.models.user import UserRole


class UserBase(BaseModel):
    email: EmailStr


class UserInvite(UserBase):
    name: constr(min_length=1, max_length=255)
    phone: Optional[constr(max_length=64)] = None
    role: UserRole


class UserUpdate(BaseModel):
    name: constr(min_length=1, max_length=255)
    phone: Optional[constr(max_length=64)] = None
    role: UserRole


class UserActiveUpdate(BaseModel):
    is_active: bool


class UserOut(UserBase):
    id: int
    name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    must_change_password: bool
    last_login_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserInviteResponse(BaseModel):
    user: UserOut
    temporary_password: str


class MetadataSyncResponse(BaseModel):
    success: bool
    synced: int
    failed: int
    errors: List[str] = []
