from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import TimestampMixin

if TYPE_CHECKING:
    from app.models.drawing import Drawing
    from app.models.project import Project


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_DESIGN = "in_design"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    IN_PRODUCTION = "in_production"
    COMPLETE = "complete"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class ScopeItem(Base, TimestampMixin):
    __tablename__ = "scope_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )
    item_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), default=ItemStatus.PENDING.value, nullable=False)

    project: Mapped["Project"] = relationship("Project", back_populates="scope_items")
    drawing: Mapped[Optional["Drawing"]] = relationship(
        "Drawing", back_populates="item", uselist=False, cascade="all, delete-orphan"
    )
