"""User endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
from ..database import get_db
from ..models import User
from ..schemas import UserCreate, UserResponse, UserUpdate
from ..auth import PermissionChecker
from ..use_cases.user_admin import create_user_use_case, delete_user_use_case, update_user_use_case

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
def get_users(
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Get all users."""
    users = db.query(User).order_by(User.full_name).all()
    return [UserResponse.model_validate(u) for u in users]


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    data: UserCreate,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Create a user; they must change the password on first login."""
    user = create_user_use_case(data=data, current_user=current_user, db=db)
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    data: UserUpdate,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    user = update_user_use_case(user_id=user_id, data=data, current_user=current_user, db=db)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}")
def delete_user(
    user_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    delete_user_use_case(user_id=user_id, current_user=current_user, db=db)
    return {"success": True}
