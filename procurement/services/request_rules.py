"""Material request lifecycle rules (status machine, ownership, item validation)."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping
from uuid import UUID

from ..domain_errors import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_UNITS: tuple[str, ...] = ("nos", "bags", "kg", "ton", "m3")
DEFAULT_UNIT = "nos"
PRIORITIES: tuple[str, ...] = ("normal", "urgent")
DEFAULT_REQUEST_TYPE = "stock_request"
REQUEST_NUMBER_PREFIX = "REQ-"
REQUEST_NUMBER_COUNTER = "request_number"

DRAFT = "draft"
SUBMITTED = "submitted"
APPROVED = "approved"
REJECTED = "rejected"
CLOSED = "closed"

REQUESTER_DELETABLE_STATUSES: frozenset[str] = frozenset({DRAFT, SUBMITTED})
REQUESTER_EDITABLE_STATUSES: frozenset[str] = REQUESTER_DELETABLE_STATUSES
PATCHABLE_STATUSES: frozenset[str] = frozenset({SUBMITTED, CLOSED})
_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    DRAFT: {SUBMITTED},
    SUBMITTED: {APPROVED, REJECTED},
    APPROVED: {CLOSED},
    REJECTED: set(),
    CLOSED: set(),
}
# Transitions that only an admin may perform.
_ADMIN_TRANSITIONS: set[tuple[str, str]] = {
    (SUBMITTED, APPROVED),
    (SUBMITTED, REJECTED),
    (APPROVED, CLOSED),
}
DECISION_STATUS: dict[str, str] = {"approved": APPROVED, "rejected": REJECTED}


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _same_id(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)


def normalize_status(status: str | None) -> str:
    if not status:
        return DRAFT
    return status.strip().lower()


def format_request_number(sequence: int) -> str:
    return f"{REQUEST_NUMBER_PREFIX}{sequence:06d}"


def validate_status_transition(*, current_status: str | None, next_status: str, is_admin: bool) -> str:
    """Return the normalised next status or raise if the move is illegal."""
    current = normalize_status(current_status)
    nxt = normalize_status(next_status)

    if nxt not in _ALLOWED_TRANSITIONS.get(current, set()):
        raise ValidationError(
            code="REQUEST_INVALID_TRANSITION",
            message=f"Invalid request status transition: {current} -> {nxt}",
            details={"from": current, "to": nxt},
        )
    if (current, nxt) in _ADMIN_TRANSITIONS and not is_admin:
        raise AuthorizationError(
            code="REQUEST_TRANSITION_FORBIDDEN",
            message="Only admins can perform this status change",
        )
    return nxt


def validate_status_patch(status: str | None) -> str:
    """A status patch may only submit or close; decisions go through approvals."""
    nxt = normalize_status(status)
    if nxt not in PATCHABLE_STATUSES:
        raise ValidationError(
            code="REQUEST_STATUS_NOT_PATCHABLE",
            message="Use the approvals endpoint to approve or reject a request",
            details={"status": nxt},
        )
    return nxt


def ensure_decidable(request: Any) -> None:
    """Approve/reject are legal only from ``submitted``."""
    status = normalize_status(_field(request, "status"))
    if status != SUBMITTED:
        raise ValidationError(
            code="REQUEST_NOT_SUBMITTED",
            message=f"Only submitted requests can be decided (current status: {status})",
            details={"status": status},
        )


def validate_decision(*, action: str, comment: str | None) -> str:
    action_norm = (action or "").strip().lower()
    if action_norm not in DECISION_STATUS:
        raise ValidationError(
            code="APPROVAL_INVALID_ACTION",
            message="Action must be 'approved' or 'rejected'",
        )
    if action_norm == "rejected" and not (comment or "").strip():
        raise ValidationError(
            code="REJECTION_COMMENT_REQUIRED",
            message="A comment is required to reject a request",
        )
    return action_norm


def can_view_request(request: Any, *, caller_id: Any, is_admin: bool) -> bool:
    return is_admin or _same_id(_field(request, "requester_id"), caller_id)


def can_delete_request(request: Any, *, caller_id: Any, is_admin: bool) -> bool:
    if is_admin:
        return True
    if not _same_id(_field(request, "requester_id"), caller_id):
        return False
    return normalize_status(_field(request, "status")) in REQUESTER_DELETABLE_STATUSES


def ensure_can_delete(request: Any, *, caller_id: Any, is_admin: bool) -> None:
    if not can_delete_request(request, caller_id=caller_id, is_admin=is_admin):
        raise AuthorizationError(
            code="REQUEST_DELETE_FORBIDDEN",
            message="You can only delete your own draft or submitted requests",
        )


def ensure_can_edit(request: Any, *, caller_id: Any, is_admin: bool) -> None:
    if is_admin:
        return
    if not _same_id(_field(request, "requester_id"), caller_id):
        raise AuthorizationError(code="REQUEST_ACCESS_DENIED", message="Forbidden")
    if normalize_status(_field(request, "status")) not in REQUESTER_EDITABLE_STATUSES:
        raise AuthorizationError(
            code="REQUEST_LOCKED",
            message="Decided requests can no longer be edited",
        )


def normalize_unit(unit: str | None) -> str:
    normalized = (unit or "").strip().lower()
    if normalized in ALLOWED_UNITS:
        return normalized
    logger.debug("request_item.unit_fallback unit=%r -> %s", unit, DEFAULT_UNIT)
    return DEFAULT_UNIT


def normalize_priority(priority: str | None) -> str:
    value = (priority or "normal").strip().lower()
    if value not in PRIORITIES:
        raise ValidationError(
            code="REQUEST_INVALID_PRIORITY",
            message="Priority must be 'normal' or 'urgent'",
        )
    return value


def parse_item_quantity(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise ValidationError(code="REQUEST_ITEM_QUANTITY_INVALID", message="Quantity must be a number")
    try:
        qty = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise ValidationError(code="REQUEST_ITEM_QUANTITY_INVALID", message="Quantity must be a number")
    if not math.isfinite(qty) or qty <= 0:
        raise ValidationError(
            code="REQUEST_ITEM_QUANTITY_INVALID",
            message="Quantity must be greater than 0",
        )
    return qty


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_item(item: Any) -> dict[str, Any]:
    category = (_field(item, "category") or "").strip()
    name = (_field(item, "name") or "").strip()
    if not category or not name:
        raise ValidationError(
            code="REQUEST_ITEM_INCOMPLETE",
            message="Each item needs a category and a name",
        )
    return {
        "category": category,
        "name": name,
        "specification": _optional_text(_field(item, "specification")),
        "quantity": parse_item_quantity(_field(item, "quantity")),
        "unit": normalize_unit(_field(item, "unit")),
        "preferred_brand": _optional_text(_field(item, "preferred_brand")),
    }


def validate_new_request(
    *,
    project_id: Any,
    items: Iterable[Any] | None,
    as_draft: bool,
) -> list[dict[str, Any]]:
    """Validate a request before anything is persisted; return normalised items."""
    if not project_id:
        raise ValidationError(code="REQUEST_PROJECT_REQUIRED", message="Please select a project")
    normalized = [normalize_item(item) for item in (items or [])]
    if not normalized and not as_draft:
        raise ValidationError(
            code="REQUEST_ITEMS_REQUIRED",
            message="Please add at least one material item",
        )
    return normalized


def ensure_submittable(*, items_count: int) -> None:
    if items_count < 1:
        raise ValidationError(
            code="REQUEST_ITEMS_REQUIRED",
            message="Please add at least one material item",
        )


def coerce_uuid(value: Any, *, field: str = "id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(code="INVALID_IDENTIFIER", message=f"Invalid {field}")
