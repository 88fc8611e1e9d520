"""Approval endpoints (admin only)."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..database import get_db
from ..models import User
from ..schemas import DecisionRequest, MaterialRequestDetail, MaterialRequestResponse, PendingCountResponse
from ..use_cases.request_lifecycle import decide_request_use_case, list_pending_use_case, pending_count_use_case

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/pending", response_model=list[MaterialRequestResponse])
def get_pending(
    current_user: User = Depends(PermissionChecker("canApproveRequests")),
    db: Session = Depends(get_db),
):
    return list_pending_use_case(db=db)


@router.get("/pending/count", response_model=PendingCountResponse)
def get_pending_count(
    current_user: User = Depends(PermissionChecker("canApproveRequests")),
    db: Session = Depends(get_db),
):
    return PendingCountResponse(count=pending_count_use_case(db=db))


@router.post("", response_model=MaterialRequestDetail)
def decide(
    data: DecisionRequest,
    current_user: User = Depends(PermissionChecker("canApproveRequests")),
    db: Session = Depends(get_db),
):
    """Approve or reject a submitted request."""
    return decide_request_use_case(
        request_id=data.request_id,
        action=data.action,
        comment=data.comment,
        request_type=data.request_type,
        current_user=current_user,
        db=db,
    )
