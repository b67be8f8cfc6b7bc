from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.models import Project, ScopeItem, User, UserRole
from app.schemas.drawing import DrawingOut, DrawingUploadResponse
from app.schemas.project import (
    AssignmentCreate,
    AssignmentOut,
    ProjectCreate,
    ProjectOut,
    ScopeItemCreate,
    ScopeItemOut,
)
from app.services import drawings as drawing_service
from app.services import projects as project_service

router = APIRouter(prefix="/projects", tags=["projects"])

ADMIN = UserRole.ADMIN.value
PM = UserRole.PM.value
PRODUCTION = UserRole.PRODUCTION.value


def _get_project_or_404(db: Session, project_id: int, user: User) -> Project:
    project = project_service.get_visible_project(db, project_id, user)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _get_item_or_404(db: Session, project: Project, item_id: int) -> ScopeItem:
    item = (
        db.query(ScopeItem)
        .filter(ScopeItem.id == item_id, ScopeItem.project_id == project.id)
        .first()
    )
    if not item:
        raise HTTPException(status_code=404, detail="Scope item not found")
    return item


def _read_upload(upload: UploadFile) -> drawing_service.UploadedFile:
    return drawing_service.UploadedFile(
        file_name=upload.filename or "",
        content_type=upload.content_type,
        data=upload.file.read(),
    )


@router.get("", response_model=List[ProjectOut])
def list_projects(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        project_service.visible_projects(db, current_user)
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )


@router.post("/new", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ADMIN, PM)),
):
    try:
        return project_service.create_project(
            db,
            creator=current_user,
            project_code=payload.project_code,
            name=payload.name,
            description=payload.description,
            status=payload.status.value,
        )
    except project_service.ProjectServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_project_or_404(db, project_id, current_user)


@router.post(
    "/{project_id}/assignments",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
def assign_user(
    project_id: int,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ADMIN)),
):
    project = _get_project_or_404(db, project_id, current_user)
    user = db.get(User, payload.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        return project_service.assign_user(db, project, user)
    except project_service.ProjectServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{project_id}/scope", response_model=List[ScopeItemOut])
def list_scope_items(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = _get_project_or_404(db, project_id, current_user)
    return (
        db.query(ScopeItem)
        .filter(ScopeItem.project_id == project.id)
        .order_by(ScopeItem.item_code.asc())
        .all()
    )


@router.post(
    "/{project_id}/scope",
    response_model=ScopeItemOut,
    status_code=status.HTTP_201_CREATED,
)
def create_scope_item(
    project_id: int,
    payload: ScopeItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ADMIN, PM)),
):
    project = _get_project_or_404(db, project_id, current_user)
    return project_service.create_scope_item(
        db,
        project,
        item_code=payload.item_code,
        name=payload.name,
        description=payload.description,
    )


@router.post(
    "/{project_id}/scope/{item_id}/drawings",
    response_model=DrawingUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_drawing(
    project_id: int,
    item_id: int,
    file: UploadFile = File(...),
    cad_file: Optional[UploadFile] = File(None),
    notes: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ADMIN, PM, PRODUCTION)),
):
    """Upload the next revision of an item's drawing, with an optional CAD source file."""
    project = _get_project_or_404(db, project_id, current_user)
    item = _get_item_or_404(db, project, item_id)
    try:
        drawing, revision = drawing_service.upload_drawing_revision(
            db,
            item=item,
            uploaded_by=current_user,
            drawing_file=_read_upload(file),
            cad_file=_read_upload(cad_file) if cad_file is not None else None,
            notes=notes,
        )
    except drawing_service.DrawingUploadError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"drawing": drawing, "revision": revision}


@router.get("/{project_id}/scope/{item_id}/drawings", response_model=DrawingOut)
def get_drawing(
    project_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = _get_project_or_404(db, project_id, current_user)
    item = _get_item_or_404(db, project, item_id)
    drawing = drawing_service.get_drawing_for_item(db, item.id)
    if not drawing:
        raise HTTPException(status_code=404, detail="No drawing uploaded for this item")
    return drawing
