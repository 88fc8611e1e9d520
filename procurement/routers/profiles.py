"""Profile directory (display names for any authenticated user)."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import ProfileResponse

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=list[ProfileResponse])
def get_profiles(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    users = db.query(User).order_by(User.full_name).all()
    return [
        ProfileResponse(
            id=u.id,
            user_id=u.id,
            full_name=u.full_name,
            designation=u.designation or "",
            phone=u.phone or "",
        )
        for u in users
    ]
