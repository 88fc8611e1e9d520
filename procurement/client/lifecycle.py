"""Client-side request lifecycle: validate and authorize, then call the facade."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Optional

from ..domain_errors import AuthorizationError, ValidationError
from ..services.request_rules import (
    CLOSED,
    DEFAULT_REQUEST_TYPE,
    DRAFT,
    SUBMITTED,
    ensure_can_delete,
    ensure_can_edit,
    ensure_decidable,
    ensure_submittable,
    normalize_priority,
    validate_decision,
    validate_new_request,
    validate_status_transition,
)
from .auth_provider import AuthProvider
from .facade import DataAccessFacade

logger = logging.getLogger(__name__)


class RequestLifecycle:
    """draft -> submitted -> approved | rejected, approved -> closed.

    Every check that can be made locally is made before the backend is
    called; the backend still enforces the same rules.
    """

    def __init__(self, facade: DataAccessFacade, auth: AuthProvider):
        self.facade = facade
        self.auth = auth

    def _require_admin(self, action: str):
        state = self.auth.require_user()
        if not state.is_admin:
            raise AuthorizationError(code="ADMIN_REQUIRED", message=f"Only admins can {action} requests")
        return state

    def create(
        self,
        *,
        project_id: Optional[str],
        items: Iterable[Any],
        priority: str = "normal",
        required_date: Optional[date | str] = None,
        remarks: str = "",
        request_type: Optional[str] = None,
        as_draft: bool = False,
    ) -> dict[str, Any]:
        self.auth.require_user()
        normalized = validate_new_request(project_id=project_id, items=items, as_draft=as_draft)
        payload = {
            "project_id": str(project_id),
            "priority": normalize_priority(priority),
            "required_date": required_date.isoformat() if isinstance(required_date, date) else (required_date or None),
            "remarks": remarks or "",
            "request_type": request_type or DEFAULT_REQUEST_TYPE,
            "status": DRAFT if as_draft else SUBMITTED,
            "items": normalized,
        }
        created = self.facade.create_request(payload)
        logger.info("request.created number=%s status=%s", created.get("request_number"), payload["status"])
        return created

    def list_requests(self) -> list[dict[str, Any]]:
        state = self.auth.require_user()
        return self.facade.list_requests(caller_id=state.user_id, is_admin=state.is_admin)

    def pending(self) -> list[dict[str, Any]]:
        self._require_admin("review")
        return self.facade.list_pending()

    def pending_count(self) -> int:
        self._require_admin("review")
        return self.facade.pending_count()

    def get(self, request_id: str) -> dict[str, Any]:
        state = self.auth.require_user()
        request = self.facade.get_request(request_id)
        if not state.is_admin and str(request.get("requester_id")) != state.user_id:
            raise AuthorizationError(code="REQUEST_ACCESS_DENIED", message="Forbidden")
        return request

    def approve(self, request_id: str, *, comment: Optional[str] = None, request_type: Optional[str] = None) -> dict[str, Any]:
        return self._decide(request_id, action="approved", comment=comment, request_type=request_type)

    def reject(self, request_id: str, *, comment: str) -> dict[str, Any]:
        return self._decide(request_id, action="rejected", comment=comment)

    def _decide(self, request_id: str, *, action: str, comment: Optional[str], request_type: Optional[str] = None):
        self._require_admin("approve or reject")
        decision = validate_decision(action=action, comment=comment)
        ensure_decidable(self.facade.get_request(request_id))
        result = self.facade.decide_request(request_id, action=decision, comment=comment, request_type=request_type)
        logger.info("request.%s id=%s", decision, request_id)
        return result

    def submit(self, request_id: str) -> dict[str, Any]:
        state = self.auth.require_user()
        request = self.facade.get_request(request_id)
        ensure_can_edit(request, caller_id=state.user_id, is_admin=state.is_admin)
        validate_status_transition(current_status=request.get("status"), next_status=SUBMITTED, is_admin=state.is_admin)
        ensure_submittable(items_count=int(request.get("items_count") or len(request.get("items") or [])))
        return self.facade.update_request(request_id, {"status": SUBMITTED})

    def close(self, request_id: str) -> dict[str, Any]:
        state = self._require_admin("close")
        request = self.facade.get_request(request_id)
        validate_status_transition(current_status=request.get("status"), next_status=CLOSED, is_admin=state.is_admin)
        return self.facade.update_request(request_id, {"status": CLOSED})

    def update(self, request_id: str, **fields: Any) -> dict[str, Any]:
        """Patch priority, remarks, required_date or request_type."""
        allowed = {"priority", "remarks", "required_date", "request_type"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError(
                code="REQUEST_FIELD_NOT_EDITABLE",
                message=f"Fields not editable: {', '.join(sorted(unknown))}",
            )
        state = self.auth.require_user()
        request = self.facade.get_request(request_id)
        ensure_can_edit(request, caller_id=state.user_id, is_admin=state.is_admin)
        if "priority" in fields:
            fields["priority"] = normalize_priority(fields["priority"])
        if isinstance(fields.get("required_date"), date):
            fields["required_date"] = fields["required_date"].isoformat()
        return self.facade.update_request(request_id, fields)

    def delete(self, request_id: str) -> None:
        state = self.auth.require_user()
        request = self.facade.get_request(request_id)
        ensure_can_delete(request, caller_id=state.user_id, is_admin=state.is_admin)
        self.facade.delete_request(request_id, caller_id=state.user_id, is_admin=state.is_admin)
        logger.info("request.deleted id=%s", request_id)
