"""Project endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, check_permission, get_current_user
from ..config import settings
from ..database import get_db
from ..domain_errors import AuthorizationError, BackendError
from ..models import MaterialRequest, Project, User
from ..schemas import ApprovedItemResponse, ProjectCreate, ProjectResponse, ProjectUpdate
from ..security import require_entity
from ..services.catalog import validate_project_fields, validate_project_status
from ..use_cases.request_lifecycle import project_approved_items_use_case

router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)


def _get_project(db: Session, project_id: UUID) -> Project:
    return require_entity(db, Project, entity_id=project_id, code="PROJECT_NOT_FOUND", not_found="Project not found")


@router.get("", response_model=list[ProjectResponse])
def get_projects(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return db.query(Project).order_by(Project.name).all()


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins create projects; requesters only when the deployment allows it."""
    if not check_permission(current_user, "canManageProjects") and not settings.ALLOW_REQUESTER_PROJECT_CREATE:
        raise AuthorizationError(code="PROJECT_CREATE_FORBIDDEN", message="Admin access required")
    name, location = validate_project_fields(name=data.name, location=data.location)
    project = Project(name=name, location=location, status=validate_project_status(data.status) or "active")
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("project.created name=%s by=%s", project.name, current_user.email)
    return project


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    current_user: User = Depends(PermissionChecker("canManageProjects")),
    db: Session = Depends(get_db),
):
    project = _get_project(db, project_id)
    name, location = validate_project_fields(
        name=data.name if data.name is not None else project.name,
        location=data.location if data.location is not None else project.location,
    )
    project.name = name
    project.location = location
    status = validate_project_status(data.status)
    if status is not None:
        project.status = status
    db.commit()
    db.refresh(project)
    return project


@router.delete("/{project_id}")
def delete_project(
    project_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageProjects")),
    db: Session = Depends(get_db),
):
    project = _get_project(db, project_id)
    in_use = db.query(MaterialRequest.id).filter(MaterialRequest.project_id == project.id).first()
    if in_use is not None:
        raise BackendError(
            code="PROJECT_IN_USE",
            http_status=409,
            message="Project has material requests and cannot be deleted",
        )
    db.delete(project)
    db.commit()
    logger.info("project.deleted id=%s by=%s", project_id, current_user.email)
    return {"success": True}


@router.get("/{project_id}/approved-items", response_model=list[ApprovedItemResponse])
def get_project_approved_items(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Items of every approved request raised against the project."""
    return project_approved_items_use_case(project_id=project_id, db=db)
