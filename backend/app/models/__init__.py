from app.models.user import User, UserRole
from app.models.project import Project, ProjectAssignment, ProjectStatus
from app.models.scope_item import ItemStatus, ScopeItem
from app.models.drawing import Drawing, DrawingRevision, DrawingStatus

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectAssignment",
    "ProjectStatus",
    "ScopeItem",
    "ItemStatus",
    "Drawing",
    "DrawingRevision",
    "DrawingStatus",
]
