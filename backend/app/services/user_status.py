"""Database reads and writes performed by the authorization middleware."""
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import SessionLocal
from app.models import User
from app.services.route_access import UserStatus

logger = structlog.get_logger()


def _parse_user_id(user_id: str) -> Optional[int]:
    try:
        return int(user_id)
    except (TypeError, ValueError):
        return None


def load_user_status(user_id: str) -> Optional[UserStatus]:
    """Fallback lookup of role and active flag for sessions without claims."""
    pk = _parse_user_id(user_id)
    if pk is None:
        return None
    db = SessionLocal()
    try:
        row = db.execute(select(User.role, User.is_active).where(User.id == pk)).first()
    except SQLAlchemyError as e:
        logger.warning("auth.status_lookup_failed", user_id=user_id, error=str(e))
        return None
    finally:
        db.close()
    if row is None:
        return None
    return UserStatus(role=row.role, is_active=row.is_active)


def touch_last_active(user_id: str) -> None:
    """Record user activity. Runs detached from the request; never raises."""
    pk = _parse_user_id(user_id)
    if pk is None:
        return
    db = SessionLocal()
    try:
        db.execute(update(User).where(User.id == pk).values(last_active_at=datetime.utcnow()))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("activity.touch_failed", user_id=user_id, error=str(e))
    finally:
        db.close()
