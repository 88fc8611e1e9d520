"""Security helpers (RBAC and object-level access checks)."""

from __future__ import annotations

from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from .auth import check_permission, is_admin
from .domain_errors import AuthorizationError, NotFoundError
from .models import MaterialRequest, User
from .services.request_rules import can_view_request

T = TypeVar("T")


def require_permission(user: User, permission: str) -> None:
    """Enforce a role permission server-side."""
    if not check_permission(user, permission):
        raise AuthorizationError(
            code="PERMISSION_DENIED",
            message=f"Permission denied: {permission} required",
        )


def require_entity(db: Session, model: type[T], *, entity_id: UUID, code: str, not_found: str) -> T:
    """Load an entity by id or raise 404."""
    entity = db.query(model).filter(getattr(model, "id") == entity_id).first()  # noqa: B009
    if not entity:
        raise NotFoundError(code=code, message=not_found)
    return entity


def require_visible_request(db: Session, *, request_id: UUID, current_user: User) -> MaterialRequest:
    """Load a request the caller may see (own request, or any for admins)."""
    request = require_entity(
        db,
        MaterialRequest,
        entity_id=request_id,
        code="REQUEST_NOT_FOUND",
        not_found="Request not found",
    )
    if not can_view_request(request, caller_id=current_user.id, is_admin=is_admin(current_user)):
        raise AuthorizationError(code="REQUEST_ACCESS_DENIED", message="Forbidden")
    return request


def scope_requests(query, current_user: User):
    """Apply request visibility: admins see everything, others their own rows."""
    if check_permission(current_user, "canViewAllRequests"):
        return query
    return query.filter(MaterialRequest.requester_id == current_user.id)
