"""Material category endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..domain_errors import BackendError
from ..models import MaterialCategory, User
from ..schemas import CategoryCreate, CategoryResponse
from ..security import require_entity
from ..services.catalog import category_slug, validate_category_name

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryResponse])
def get_categories(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return db.query(MaterialCategory).order_by(MaterialCategory.name).all()


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    data: CategoryCreate,
    current_user: User = Depends(PermissionChecker("canManageCategories")),
    db: Session = Depends(get_db),
):
    name = validate_category_name(data.name)
    category = MaterialCategory(name=name, slug=category_slug(name))
    db.add(category)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BackendError(
            code="CATEGORY_EXISTS",
            http_status=409,
            message="Category already exists",
        ) from exc
    db.refresh(category)
    return category


@router.delete("/{category_id}")
def delete_category(
    category_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageCategories")),
    db: Session = Depends(get_db),
):
    category = require_entity(
        db,
        MaterialCategory,
        entity_id=category_id,
        code="CATEGORY_NOT_FOUND",
        not_found="Category not found",
    )
    db.delete(category)
    db.commit()
    return {"success": True}
