"""Material request endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    MaterialRequestCreate,
    MaterialRequestDetail,
    MaterialRequestResponse,
    MaterialRequestUpdate,
)
from ..use_cases.request_lifecycle import (
    create_request_use_case,
    delete_request_use_case,
    get_request_use_case,
    list_requests_use_case,
    update_request_use_case,
)

router = APIRouter(prefix="/requests", tags=["requests"])


@router.get("", response_model=list[MaterialRequestResponse])
def get_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins see every request, everybody else only their own."""
    return list_requests_use_case(current_user=current_user, db=db)


@router.post("", response_model=MaterialRequestDetail, status_code=201)
def create_request(
    data: MaterialRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return create_request_use_case(data=data, current_user=current_user, db=db)


@router.get("/{request_id}", response_model=MaterialRequestDetail)
def get_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_request_use_case(request_id=request_id, current_user=current_user, db=db)


@router.patch("/{request_id}", response_model=MaterialRequestDetail)
def update_request(
    request_id: UUID,
    data: MaterialRequestUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return update_request_use_case(request_id=request_id, data=data, current_user=current_user, db=db)


@router.delete("/{request_id}")
def delete_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    delete_request_use_case(request_id=request_id, current_user=current_user, db=db)
    return {"success": True}
