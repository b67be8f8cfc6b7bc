"""
Drawing Upload Service

Each upload for a scope item becomes the next lettered revision of that
item's drawing (A, B, C...). The first upload creates the drawing record.
"""
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Drawing, DrawingRevision, DrawingStatus, ItemStatus, ScopeItem, User
from app.services import storage
from app.services.file_validation import CAD_CONFIG, DRAWING_CONFIG, validate_file
from app.services.revisions import get_next_revision
from app.services.sanitize import sanitize_file_name, sanitize_text

logger = structlog.get_logger()


class DrawingUploadError(Exception):
    """Raised when an upload is rejected before or while it is stored."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class UploadedFile:
    file_name: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def get_drawing_for_item(db: Session, item_id: int) -> Optional[Drawing]:
    return db.execute(select(Drawing).where(Drawing.item_id == item_id)).scalar_one_or_none()


def upload_drawing_revision(
    db: Session,
    *,
    item: ScopeItem,
    uploaded_by: User,
    drawing_file: UploadedFile,
    cad_file: Optional[UploadedFile] = None,
    notes: Optional[str] = None,
) -> Tuple[Drawing, DrawingRevision]:
    """
    Store a new drawing revision for ``item``.

    The drawing goes back to "uploaded" (clearing any previous approval) and
    a pending scope item moves to "in_design".
    """
    drawing_check = validate_file(
        drawing_file.file_name, drawing_file.size, drawing_file.content_type, DRAWING_CONFIG
    )
    if not drawing_check.valid:
        raise DrawingUploadError(drawing_check.error or "Invalid file")

    cad_check = None
    if cad_file is not None:
        cad_check = validate_file(cad_file.file_name, cad_file.size, cad_file.content_type, CAD_CONFIG)
        if not cad_check.valid:
            raise DrawingUploadError(cad_check.error or "Invalid CAD file")

    drawing = get_drawing_for_item(db, item.id)
    revision = get_next_revision(drawing.current_revision if drawing else None)
    timestamp = int(time.time() * 1000)

    stored_keys: List[str] = []
    pdf_name = drawing_check.sanitized_name or sanitize_file_name(drawing_file.file_name)
    pdf_key = storage.drawing_object_key(item.project_id, item.id, revision, timestamp, pdf_name)
    file_url = storage.save_file(pdf_key, drawing_file.data)
    stored_keys.append(pdf_key)

    cad_url = None
    cad_name = None
    if cad_file is not None and cad_check is not None:
        cad_name = cad_check.sanitized_name or sanitize_file_name(cad_file.file_name)
        cad_key = storage.drawing_object_key(item.project_id, item.id, revision, timestamp, cad_name)
        cad_url = storage.save_file(cad_key, cad_file.data)
        stored_keys.append(cad_key)

    try:
        if drawing is None:
            drawing = Drawing(item_id=item.id)
            db.add(drawing)
        drawing.status = DrawingStatus.UPLOADED.value
        drawing.current_revision = revision
        db.flush()

        revision_row = DrawingRevision(
            drawing_id=drawing.id,
            revision=revision,
            file_url=file_url,
            file_name=pdf_name,
            file_size=drawing_file.size,
            cad_file_url=cad_url,
            cad_file_name=cad_name,
            notes=sanitize_text(notes) or None,
            uploaded_by=uploaded_by.id,
        )
        db.add(revision_row)

        if item.status == ItemStatus.PENDING.value:
            item.status = ItemStatus.IN_DESIGN.value

        db.commit()
    except IntegrityError as exc:
        db.rollback()
        for key in stored_keys:
            storage.delete_file(key)
        logger.warning("drawing.revision_conflict", item_id=item.id, revision=revision)
        raise DrawingUploadError(
            f"Revision {revision} was uploaded concurrently. Please retry.", status_code=409
        ) from exc

    db.refresh(drawing)
    db.refresh(revision_row)
    logger.info(
        "drawing.revision_uploaded",
        item_id=item.id,
        drawing_id=drawing.id,
        revision=revision,
        uploaded_by=uploaded_by.id,
    )
    return drawing, revision_row
