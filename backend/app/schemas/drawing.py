from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class DrawingRevisionOut(BaseModel):
    id: int
    revision: str
    file_url: str
    file_name: str
    file_size: Optional[int] = None
    cad_file_url: Optional[str] = None
    cad_file_name: Optional[str] = None
    notes: Optional[str] = None
    uploaded_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DrawingOut(BaseModel):
    id: int
    item_id: int
    status: str
    current_revision: Optional[str] = None
    revisions: List[DrawingRevisionOut] = []

    model_config = ConfigDict(from_attributes=True)


class DrawingUploadResponse(BaseModel):
    drawing: DrawingOut
    revision: DrawingRevisionOut
