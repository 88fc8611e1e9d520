"""Auth endpoints."""
import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import create_user_token, get_current_user_allow_password_change
from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import ChangePasswordRequest, LoginRequest, TokenResponse, UserResponse
from ..use_cases.user_admin import authenticate_user_use_case, change_password_use_case, logout_use_case

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_no_store(response: Response) -> None:
    # Reduce the chance of logging/caching tokens.
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_user_token(user),
        expires_in=int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60,
        user=UserResponse.model_validate(user),
        must_change_password=bool(user.must_change_password),
    )


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Exchange email/password for a bearer token."""
    user = authenticate_user_use_case(email=data.email, password=data.password, db=db)
    _set_no_store(response)
    logger.info("auth.login email=%s", user.email)
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user_allow_password_change)):
    """Current user; reachable while a password change is pending."""
    return UserResponse.model_validate(current_user)


@router.post("/logout")
def logout(
    current_user: User = Depends(get_current_user_allow_password_change),
    db: Session = Depends(get_db),
):
    logout_use_case(current_user=current_user, db=db)
    return {"success": True}


@router.post("/change-password", response_model=TokenResponse)
def change_password(
    data: ChangePasswordRequest,
    response: Response,
    current_user: User = Depends(get_current_user_allow_password_change),
    db: Session = Depends(get_db),
):
    """Change own password; previously issued tokens stop working."""
    user = change_password_use_case(
        current_password=data.current_password,
        new_password=data.new_password,
        current_user=current_user,
        db=db,
    )
    _set_no_store(response)
    return _token_response(user)
