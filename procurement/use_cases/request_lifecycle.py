"""Material request use-cases (create, decide, delete, list) for the REST server."""
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import is_admin
from ..domain_errors import BackendError, NotFoundError, ValidationError
from ..models import (
    Approval,
    AuditEvent,
    Counter,
    MaterialRequest,
    MaterialRequestItem,
    Project,
    User,
)
from ..schemas import MaterialRequestCreate, MaterialRequestUpdate
from ..security import require_entity, require_visible_request, scope_requests
from ..services.denormalize import enrich_requests
from ..services.request_rules import (
    APPROVED,
    CLOSED,
    DECISION_STATUS,
    DEFAULT_REQUEST_TYPE,
    DRAFT,
    REQUEST_NUMBER_COUNTER,
    SUBMITTED,
    ensure_can_delete,
    ensure_can_edit,
    ensure_decidable,
    ensure_submittable,
    format_request_number,
    normalize_priority,
    validate_decision,
    validate_new_request,
    validate_status_patch,
    validate_status_transition,
)

logger = logging.getLogger(__name__)

_REQUEST_COLUMNS = (
    "id",
    "request_number",
    "project_id",
    "request_type",
    "priority",
    "required_date",
    "remarks",
    "requester_id",
    "status",
    "created_at",
    "updated_at",
)


def request_to_dict(request: MaterialRequest) -> dict[str, Any]:
    return {column: getattr(request, column) for column in _REQUEST_COLUMNS}


def item_to_dict(item: MaterialRequestItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "request_id": item.request_id,
        "category": item.category,
        "name": item.name,
        "specification": item.specification,
        "quantity": item.quantity,
        "unit": item.unit,
        "preferred_brand": item.preferred_brand,
    }


def _audit(db: Session, *, action: str, request: MaterialRequest, current_user: User, details: dict | None = None) -> None:
    db.add(
        AuditEvent(
            action=action,
            entity_type="material_request",
            entity_id=request.id,
            entity_name=request.request_number,
            user_id=current_user.id,
            user_name=current_user.full_name,
            details=details or {},
        )
    )


def _commit(db: Session, *, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("material_request.%s failed", action)
        raise BackendError(code="REQUEST_PERSISTENCE_FAILED", message=f"Failed to {action} request") from exc


def next_request_number(db: Session) -> str:
    """Increment the request-number counter inside the caller's transaction."""
    counter = (
        db.query(Counter)
        .filter(Counter.name == REQUEST_NUMBER_COUNTER)
        .with_for_update()
        .first()
    )
    if counter is None:
        counter = Counter(name=REQUEST_NUMBER_COUNTER, value=0)
        db.add(counter)
    counter.value = int(counter.value or 0) + 1
    db.flush()
    return format_request_number(counter.value)


def _denormalize(db: Session, requests: Iterable[MaterialRequest]) -> list[dict[str, Any]]:
    rows = list(requests)
    if not rows:
        return []
    project_ids = {r.project_id for r in rows}
    requester_ids = {r.requester_id for r in rows}
    request_ids = [r.id for r in rows]

    projects = [
        {"id": p.id, "name": p.name}
        for p in db.query(Project).filter(Project.id.in_(project_ids)).all()
    ]
    profiles = [
        {"id": u.id, "full_name": u.full_name, "designation": u.designation}
        for u in db.query(User).filter(User.id.in_(requester_ids)).all()
    ]
    counts = dict(
        db.query(MaterialRequestItem.request_id, func.count(MaterialRequestItem.id))
        .filter(MaterialRequestItem.request_id.in_(request_ids))
        .group_by(MaterialRequestItem.request_id)
        .all()
    )
    return enrich_requests(
        [request_to_dict(r) for r in rows],
        projects=projects,
        profiles=profiles,
        item_counts=counts,
    )


def _detail(db: Session, request: MaterialRequest) -> dict[str, Any]:
    payload = _denormalize(db, [request])[0]
    requester = request.requester
    payload["requester_phone"] = (requester.phone if requester else "") or ""
    payload["items"] = [item_to_dict(item) for item in request.items]
    approvals = sorted(request.approvals, key=lambda a: (a.created_at is None, a.created_at))
    payload["approvals"] = [
        {
            "id": approval.id,
            "request_id": approval.request_id,
            "user_id": approval.user_id,
            "user_name": approval.user.full_name if approval.user else "Unknown",
            "action": approval.action,
            "comment": approval.comment,
            "created_at": approval.created_at,
        }
        for approval in approvals
    ]
    return payload


def create_request_use_case(
    *,
    data: MaterialRequestCreate,
    current_user: User,
    db: Session,
) -> dict[str, Any]:
    items = validate_new_request(project_id=data.project_id, items=data.items, as_draft=data.as_draft)
    priority = normalize_priority(data.priority)
    require_entity(
        db,
        Project,
        entity_id=data.project_id,
        code="PROJECT_NOT_FOUND",
        not_found="Project not found",
    )

    try:
        request = MaterialRequest(
            request_number=next_request_number(db),
            project_id=data.project_id,
            request_type=(data.request_type or DEFAULT_REQUEST_TYPE).strip() or DEFAULT_REQUEST_TYPE,
            priority=priority,
            required_date=data.required_date,
            remarks=data.remarks or "",
            requester_id=current_user.id,
            status=DRAFT if data.as_draft else SUBMITTED,
        )
        db.add(request)
        db.flush()
        for item in items:
            db.add(MaterialRequestItem(request_id=request.id, **item))
        _audit(
            db,
            action="request_created",
            request=request,
            current_user=current_user,
            details={"status": request.status, "items": len(items)},
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("material_request.create failed")
        raise BackendError(code="REQUEST_PERSISTENCE_FAILED", message="Failed to create request") from exc
    _commit(db, action="create")
    db.refresh(request)
    logger.info(
        "material_request.created number=%s status=%s items=%d",
        request.request_number,
        request.status,
        len(items),
    )
    return _detail(db, request)


def get_request_use_case(*, request_id: UUID, current_user: User, db: Session) -> dict[str, Any]:
    request = require_visible_request(db, request_id=request_id, current_user=current_user)
    return _detail(db, request)


def list_requests_use_case(*, current_user: User, db: Session) -> list[dict[str, Any]]:
    query = scope_requests(db.query(MaterialRequest), current_user)
    requests = query.order_by(MaterialRequest.created_at.desc(), MaterialRequest.request_number.desc()).all()
    return _denormalize(db, requests)


def list_pending_use_case(*, db: Session) -> list[dict[str, Any]]:
    requests = (
        db.query(MaterialRequest)
        .filter(MaterialRequest.status == SUBMITTED)
        .order_by(MaterialRequest.created_at.desc(), MaterialRequest.request_number.desc())
        .all()
    )
    return _denormalize(db, requests)


def pending_count_use_case(*, db: Session) -> int:
    return int(
        db.query(func.count(MaterialRequest.id)).filter(MaterialRequest.status == SUBMITTED).scalar() or 0
    )


def _change_status(
    db: Session,
    *,
    request: MaterialRequest,
    current_user: User,
    next_status: str,
    action: str,
) -> None:
    validate_status_transition(
        current_status=request.status,
        next_status=next_status,
        is_admin=is_admin(current_user),
    )
    if next_status == SUBMITTED:
        ensure_submittable(items_count=len(request.items))
    previous = request.status
    request.status = next_status
    _audit(
        db,
        action=action,
        request=request,
        current_user=current_user,
        details={"from": previous, "to": next_status},
    )


def submit_request_use_case(*, request_id: UUID, current_user: User, db: Session) -> dict[str, Any]:
    request = require_visible_request(db, request_id=request_id, current_user=current_user)
    ensure_can_edit(request, caller_id=current_user.id, is_admin=is_admin(current_user))
    _change_status(db, request=request, current_user=current_user, next_status=SUBMITTED, action="request_submitted")
    _commit(db, action="submit")
    db.refresh(request)
    logger.info("material_request.submitted number=%s", request.request_number)
    return _detail(db, request)


def close_request_use_case(*, request_id: UUID, current_user: User, db: Session) -> dict[str, Any]:
    request = require_visible_request(db, request_id=request_id, current_user=current_user)
    _change_status(db, request=request, current_user=current_user, next_status=CLOSED, action="request_closed")
    _commit(db, action="close")
    db.refresh(request)
    logger.info("material_request.closed number=%s", request.request_number)
    return _detail(db, request)


def update_request_use_case(
    *,
    request_id: UUID,
    data: MaterialRequestUpdate,
    current_user: User,
    db: Session,
) -> dict[str, Any]:
    request = require_visible_request(db, request_id=request_id, current_user=current_user)
    fields = data.model_dump(exclude_unset=True)
    next_status = fields.pop("status", None)
    if next_status is not None:
        next_status = validate_status_patch(next_status)

    if fields:
        ensure_can_edit(request, caller_id=current_user.id, is_admin=is_admin(current_user))
        if "priority" in fields:
            fields["priority"] = normalize_priority(fields["priority"])
        if "request_type" in fields:
            fields["request_type"] = (fields["request_type"] or "").strip() or DEFAULT_REQUEST_TYPE
        if "remarks" in fields:
            fields["remarks"] = fields["remarks"] or ""
        for key, value in fields.items():
            setattr(request, key, value)
        _audit(db, action="request_updated", request=request, current_user=current_user, details={"fields": sorted(fields)})

    if next_status is not None:
        if next_status == SUBMITTED:
            ensure_can_edit(request, caller_id=current_user.id, is_admin=is_admin(current_user))
            _change_status(db, request=request, current_user=current_user, next_status=SUBMITTED, action="request_submitted")
        else:
            _change_status(db, request=request, current_user=current_user, next_status=CLOSED, action="request_closed")

    _commit(db, action="update")
    db.refresh(request)
    return _detail(db, request)


def decide_request_use_case(
    *,
    request_id: UUID,
    action: str,
    comment: str | None,
    request_type: str | None,
    current_user: User,
    db: Session,
) -> dict[str, Any]:
    """Approve or reject a submitted request and record the decision."""
    decision = validate_decision(action=action, comment=comment)
    request = require_entity(
        db,
        MaterialRequest,
        entity_id=request_id,
        code="REQUEST_NOT_FOUND",
        not_found="Request not found",
    )
    ensure_decidable(request)
    validate_status_transition(
        current_status=request.status,
        next_status=DECISION_STATUS[decision],
        is_admin=is_admin(current_user),
    )

    values: dict[str, Any] = {MaterialRequest.status: DECISION_STATUS[decision]}
    if request_type and request_type.strip():
        values[MaterialRequest.request_type] = request_type.strip()

    try:
        # Conditional on the current status so that a concurrent second decision loses.
        updated = (
            db.query(MaterialRequest)
            .filter(MaterialRequest.id == request.id, MaterialRequest.status == SUBMITTED)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            raise ValidationError(
                code="REQUEST_NOT_SUBMITTED",
                message="Request has already been decided",
            )
        db.add(
            Approval(
                request_id=request.id,
                user_id=current_user.id,
                action=decision,
                comment=(comment or "").strip() or None,
            )
        )
        _audit(
            db,
            action=f"request_{decision}",
            request=request,
            current_user=current_user,
            details={"comment": comment or "", "request_type": request_type},
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("material_request.decide failed")
        raise BackendError(code="REQUEST_PERSISTENCE_FAILED", message="Failed to record decision") from exc
    _commit(db, action="decide")
    db.refresh(request)
    logger.info("material_request.%s number=%s by=%s", decision, request.request_number, current_user.email)
    return _detail(db, request)


def delete_request_use_case(*, request_id: UUID, current_user: User, db: Session) -> None:
    request = require_entity(
        db,
        MaterialRequest,
        entity_id=request_id,
        code="REQUEST_NOT_FOUND",
        not_found="Request not found",
    )
    ensure_can_delete(request, caller_id=current_user.id, is_admin=is_admin(current_user))
    _audit(
        db,
        action="request_deleted",
        request=request,
        current_user=current_user,
        details={"status": request.status},
    )
    number = request.request_number
    db.delete(request)
    _commit(db, action="delete")
    logger.info("material_request.deleted number=%s by=%s", number, current_user.email)


def project_approved_items_use_case(*, project_id: UUID, db: Session) -> list[dict[str, Any]]:
    """Flatten the items of every approved request of a project."""
    project = db.query(Project).filter(Project.id == project_id).first()
    if project is None:
        raise NotFoundError(code="PROJECT_NOT_FOUND", message="Project not found")

    requests = (
        db.query(MaterialRequest)
        .filter(MaterialRequest.project_id == project_id, MaterialRequest.status == APPROVED)
        .order_by(MaterialRequest.created_at.desc())
        .all()
    )
    if not requests:
        return []
    request_ids = [r.id for r in requests]
    approved_at = dict(
        db.query(Approval.request_id, func.max(Approval.created_at))
        .filter(Approval.request_id.in_(request_ids), Approval.action == "approved")
        .group_by(Approval.request_id)
        .all()
    )

    flattened: list[dict[str, Any]] = []
    for request in requests:
        for item in request.items:
            flattened.append(
                {
                    **item_to_dict(item),
                    "request_number": request.request_number,
                    "request_created_at": request.created_at,
                    "approved_at": approved_at.get(request.id),
                }
            )
    return flattened
