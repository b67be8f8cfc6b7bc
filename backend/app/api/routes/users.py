"""User administration routes (admin only)."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_rate_limiter, require_roles
from app.models import User, UserRole
from app.schemas.user import (
    MetadataSyncResponse,
    UserActiveUpdate,
    UserInvite,
    UserInviteResponse,
    UserOut,
    UserUpdate,
)
from app.services import users as user_service
from app.services.rate_limit import RateLimiter

router = APIRouter(prefix="/users", tags=["users"])

require_admin = require_roles(UserRole.ADMIN.value)


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = user_service.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=List[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return db.query(User).order_by(User.name.asc()).all()


@router.post("/invite", response_model=UserInviteResponse, status_code=status.HTTP_201_CREATED)
def invite_user(
    payload: UserInvite,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    limit = limiter.check_user_creation(str(current_user.id))
    if not limit.success:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=limit.error)

    try:
        user, temporary_password = user_service.invite_user(
            db,
            email=payload.email,
            name=payload.name,
            phone=payload.phone,
            role=payload.role.value,
        )
    except user_service.UserServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"user": user, "temporary_password": temporary_password}


@router.post("/sync-metadata", response_model=MetadataSyncResponse)
def sync_metadata(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Copy every user's role and active flag into their session claims source."""
    report = user_service.sync_all_users_metadata(db)
    return MetadataSyncResponse(
        success=report.success,
        synced=report.synced,
        failed=report.failed,
        errors=report.errors[:10],
    )


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    return user_service.update_user(
        db, user, name=payload.name, phone=payload.phone, role=payload.role.value
    )


@router.post("/{user_id}/active", response_model=UserOut)
def set_user_active(
    user_id: int,
    payload: UserActiveUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    if user.id == current_user.id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    return user_service.set_user_active(db, user, payload.is_active)
