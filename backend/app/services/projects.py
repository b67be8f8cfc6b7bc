"""
Project Service

Project visibility follows assignment: admins and management see every
project, everyone else only the projects they are assigned to.
"""
from typing import Dict, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.models import Project, ProjectAssignment, ScopeItem, User, UserRole
from app.services.sanitize import sanitize_text

logger = structlog.get_logger()

UNRESTRICTED_ROLES = frozenset({UserRole.ADMIN.value, UserRole.MANAGEMENT.value})


class ProjectServiceError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def visible_projects(db: Session, user: User) -> Query:
    query = db.query(Project)
    if user.role in UNRESTRICTED_ROLES:
        return query
    return query.join(ProjectAssignment, ProjectAssignment.project_id == Project.id).filter(
        ProjectAssignment.user_id == user.id
    )


def get_visible_project(db: Session, project_id: int, user: User) -> Optional[Project]:
    return visible_projects(db, user).filter(Project.id == project_id).first()


def create_project(
    db: Session,
    *,
    creator: User,
    project_code: str,
    name: str,
    description: Optional[str] = None,
    status: str,
) -> Project:
    """Create a project and assign its creator to it."""
    project = Project(
        project_code=sanitize_text(project_code),
        name=sanitize_text(name),
        description=sanitize_text(description) or None,
        status=status,
    )
    db.add(project)
    try:
        db.flush()
        db.add(ProjectAssignment(project_id=project.id, user_id=creator.id))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ProjectServiceError("A project with this code already exists", status_code=409) from exc
    db.refresh(project)
    logger.info("project.created", project_id=project.id, created_by=creator.id)
    return project


def assign_user(db: Session, project: Project, user: User) -> ProjectAssignment:
    assignment = ProjectAssignment(project_id=project.id, user_id=user.id)
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ProjectServiceError("User is already assigned to this project", status_code=409) from exc
    db.refresh(assignment)
    return assignment


def create_scope_item(
    db: Session,
    project: Project,
    *,
    item_code: str,
    name: str,
    description: Optional[str] = None,
) -> ScopeItem:
    item = ScopeItem(
        project_id=project.id,
        item_code=sanitize_text(item_code),
        name=sanitize_text(name),
        description=sanitize_text(description) or None,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def count_by_status(db: Session, user: User) -> Dict[str, int]:
    rows = (
        visible_projects(db, user)
        .with_entities(Project.status, func.count(Project.id))
        .group_by(Project.status)
        .all()
    )
    return {status: count for status, count in rows}
