from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import TimestampMixin

if TYPE_CHECKING:
    from app.models.scope_item import ScopeItem


class DrawingStatus(str, Enum):
    NOT_UPLOADED = "not_uploaded"
    UPLOADED = "uploaded"
    SENT_TO_CLIENT = "sent_to_client"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPROVED_WITH_COMMENTS = "approved_with_comments"


class Drawing(Base, TimestampMixin):
    """One drawing per scope item; each upload adds a lettered revision."""

    __tablename__ = "drawings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("scope_items.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    status: Mapped[str] = mapped_column(String(32), default=DrawingStatus.NOT_UPLOADED.value, nullable=False)
    current_revision: Mapped[Optional[str]] = mapped_column(String(8))

    item: Mapped["ScopeItem"] = relationship("ScopeItem", back_populates="drawing")
    revisions: Mapped[List["DrawingRevision"]] = relationship(
        "DrawingRevision",
        back_populates="drawing",
        cascade="all, delete-orphan",
        order_by="DrawingRevision.id",
    )


class DrawingRevision(Base, TimestampMixin):
    __tablename__ = "drawing_revisions"
    __table_args__ = (UniqueConstraint("drawing_id", "revision", name="uq_drawing_revision"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    drawing_id: Mapped[int] = mapped_column(
        ForeignKey("drawings.id", ondelete="CASCADE"), index=True, nullable=False
    )
    revision: Mapped[str] = mapped_column(String(8), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer)
    cad_file_url: Mapped[Optional[str]] = mapped_column(String(1024))
    cad_file_name: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    uploaded_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    drawing: Mapped["Drawing"] = relationship("Drawing", back_populates="revisions")
