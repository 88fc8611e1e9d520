"""Dashboard endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import MaterialRequest, User
from ..security import scope_requests
from ..services.dashboard import build_dashboard_metrics

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/metrics")
def get_metrics(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Summary counts over the caller's visible requests."""
    rows = scope_requests(
        db.query(MaterialRequest.status, MaterialRequest.priority),
        current_user,
    ).all()
    return build_dashboard_metrics(rows)
