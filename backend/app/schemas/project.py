from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, constr

from app.models.project import ProjectStatus


class ProjectCreate(BaseModel):
    project_code: constr(min_length=1, max_length=64)
    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.TENDER


class ProjectOut(BaseModel):
    id: int
    project_code: str
    name: str
    description: Optional[str] = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssignmentCreate(BaseModel):
    user_id: int


class AssignmentOut(BaseModel):
    id: int
    project_id: int
    user_id: int

    model_config = ConfigDict(from_attributes=True)


class ScopeItemCreate(BaseModel):
    item_code: constr(min_length=1, max_length=64)
    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None


class ScopeItemOut(BaseModel):
    id: int
    project_id: int
    item_code: str
    name: str
    description: Optional[str] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class DashboardOut(BaseModel):
    total_projects: int
    projects_by_status: Dict[str, int]
