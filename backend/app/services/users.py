"""
User Service

Account management and the ``auth_metadata`` that session tokens carry.
Whenever a user's role or active flag changes the metadata must be synced,
otherwise newly issued tokens keep stale claims until the next sync.
"""
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models import User
from app.services.sanitize import sanitize_text

logger = structlog.get_logger()


class UserServiceError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class SyncReport:
    success: bool = True
    synced: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


def build_auth_metadata(user: User, current: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    metadata = dict(current or {})
    metadata.update(
        {
            "role": user.role,
            "is_active": bool(user.is_active),
            "must_change_password": bool(user.must_change_password),
            "metadata_synced_at": datetime.utcnow().isoformat(),
        }
    )
    return metadata


def sync_user_auth_metadata(db: Session, user: User) -> None:
    """Copy profile role and flags into the metadata embedded in new tokens."""
    user.auth_metadata = build_auth_metadata(user, user.auth_metadata)
    db.commit()


def sync_all_users_metadata(db: Session) -> SyncReport:
    report = SyncReport()
    users = db.execute(select(User).order_by(User.id)).scalars().all()
    for user in users:
        try:
            sync_user_auth_metadata(db, user)
        except SQLAlchemyError as e:
            db.rollback()
            report.failed += 1
            report.errors.append(f"{user.id}: {e}")
            logger.warning("users.metadata_sync_failed", user_id=user.id, error=str(e))
        else:
            report.synced += 1
    report.success = report.failed == 0
    logger.info("users.metadata_synced", synced=report.synced, failed=report.failed)
    return report


def generate_temporary_password(length: int = 14) -> str:
    alphabet = string.ascii_letters + string.digits
    body = "".join(secrets.choice(alphabet) for _ in range(length))
    return f"Temp{body}!"


def invite_user(
    db: Session,
    *,
    email: str,
    name: str,
    role: str,
    phone: Optional[str] = None,
) -> Tuple[User, str]:
    """Create an account with a temporary password that must be changed on first login."""
    normalized_email = email.strip().lower()
    if get_user_by_email(db, normalized_email) is not None:
        raise UserServiceError("A user with this email already exists", status_code=409)

    temp_password = generate_temporary_password()
    user = User(
        email=normalized_email,
        name=sanitize_text(name),
        phone=sanitize_text(phone) or None,
        role=role,
        is_active=True,
        must_change_password=True,
        password_hash=hash_password(temp_password),
    )
    user.auth_metadata = build_auth_metadata(user)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise UserServiceError("A user with this email already exists", status_code=409) from exc
    db.refresh(user)
    logger.info("users.invited", user_id=user.id, role=role)
    return user, temp_password


def update_user(
    db: Session,
    user: User,
    *,
    name: str,
    role: str,
    phone: Optional[str] = None,
) -> User:
    user.name = sanitize_text(name)
    user.phone = sanitize_text(phone) or None
    user.role = role
    db.commit()
    try:
        sync_user_auth_metadata(db, user)
    except SQLAlchemyError as e:
        # Sessions fall back to the users table when claims are missing
        db.rollback()
        logger.warning("users.metadata_sync_failed", user_id=user.id, error=str(e))
    db.refresh(user)
    return user


def set_user_active(db: Session, user: User, is_active: bool) -> User:
    user.is_active = is_active
    user.auth_metadata = build_auth_metadata(user, user.auth_metadata)
    db.commit()
    db.refresh(user)
    logger.info("users.active_changed", user_id=user.id, is_active=is_active)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def record_login(db: Session, user: User) -> None:
    user.last_login_at = datetime.utcnow()
    db.commit()


def change_password(db: Session, user: User, new_password: str, clear_must_change_flag: bool = False) -> User:
    user.password_hash = hash_password(new_password)
    if clear_must_change_flag:
        user.must_change_password = False
        user.auth_metadata = build_auth_metadata(user, user.auth_metadata)
    db.commit()
    db.refresh(user)
    logger.info("users.password_changed", user_id=user.id)
    return user
