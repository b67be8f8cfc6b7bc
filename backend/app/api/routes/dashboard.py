from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models import User
from app.schemas.project import DashboardOut
from app.services import projects as project_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardOut)
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Project counts by status, limited to the projects the user can see."""
    by_status = project_service.count_by_status(db, current_user)
    return DashboardOut(total_projects=sum(by_status.values()), projects_by_status=by_status)
