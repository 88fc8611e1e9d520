"""Backend for the managed Supabase project (``API_MODE=cloud``).

Row-level security on the project enforces ownership; multi-row writes go
through the ``create_material_request`` / ``decide_material_request`` RPCs
defined in ``supabase/migrations``.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping

from supabase import Client, PostgrestAPIError

from ..domain_errors import (
    AuthorizationError,
    BackendError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from ..services.catalog import category_slug
from ..services.dashboard import build_dashboard_metrics
from ..services.request_rules import APPROVED, REQUESTER_DELETABLE_STATUSES, SUBMITTED
from .base import DataBackend

logger = logging.getLogger(__name__)

_CONFLICT_CODES = {"23505", "23503"}
_VALIDATION_CODES = {"22023", "23514", "22P02", "23502"}
_NOT_FOUND_CODES = {"P0002", "PGRST116"}


def map_api_error(exc: PostgrestAPIError) -> DomainError:
    """Translate a PostgREST error into the domain taxonomy."""
    code = str(getattr(exc, "code", "") or "")
    message = getattr(exc, "message", None) or str(exc) or "Supabase request failed"
    details = {"postgres_code": code} if code else None
    if code == "42501":
        return AuthorizationError(code="PERMISSION_DENIED", message=message, details=details)
    if code in _CONFLICT_CODES:
        return BackendError(code="CONFLICT", http_status=409, message=message, details=details)
    if code in _VALIDATION_CODES:
        return ValidationError(code="VALIDATION_FAILED", message=message, details=details)
    if code in _NOT_FOUND_CODES:
        return NotFoundError(message=message, details=details)
    return BackendError(code="SUPABASE_ERROR", message=message, details=details)


def _users_not_supported() -> BackendError:
    return BackendError(
        code="USERS_NOT_SUPPORTED",
        http_status=501,
        message="User management is not available on the cloud backend",
    )


class SupabaseBackend(DataBackend):
    name = "cloud"
    denormalizes_requests = False

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, builder) -> Any:
        try:
            return builder.execute()
        except PostgrestAPIError as exc:
            logger.warning("supabase.error code=%s message=%s", getattr(exc, "code", None), getattr(exc, "message", exc))
            raise map_api_error(exc) from exc

    def _rows(self, builder) -> list[dict[str, Any]]:
        return list(self._execute(builder).data or [])

    def _one(self, builder, *, not_found: str) -> dict[str, Any]:
        rows = self._rows(builder)
        if not rows:
            raise NotFoundError(message=not_found)
        return rows[0]

    def _table(self, name: str):
        return self.client.table(name)

    # Projects
    def list_projects(self) -> list[dict[str, Any]]:
        return self._rows(self._table("projects").select("*").order("name"))

    def create_project(self, *, name: str, location: str, status: str = "active") -> dict[str, Any]:
        return self._one(
            self._table("projects").insert({"name": name, "location": location, "status": status}),
            not_found="Project was not created",
        )

    def update_project(self, project_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self._one(
            self._table("projects").update(dict(fields)).eq("id", project_id),
            not_found="Project not found",
        )

    def delete_project(self, project_id: str) -> None:
        self._execute(self._table("projects").delete().eq("id", project_id))

    def project_approved_items(self, project_id: str) -> list[dict[str, Any]]:
        requests = self._rows(
            self._table("material_requests")
            .select("id,request_number,created_at,material_request_items(*),approvals(action,created_at)")
            .eq("project_id", project_id)
            .eq("status", APPROVED)
            .order("created_at", desc=True)
        )
        flattened: list[dict[str, Any]] = []
        for request in requests:
            approved_times = [
                a.get("created_at")
                for a in request.get("approvals") or []
                if a.get("action") == "approved" and a.get("created_at")
            ]
            for item in request.get("material_request_items") or []:
                flattened.append(
                    {
                        **item,
                        "request_number": request.get("request_number"),
                        "request_created_at": request.get("created_at"),
                        "approved_at": max(approved_times) if approved_times else None,
                    }
                )
        return flattened

    # Categories
    def list_categories(self) -> list[dict[str, Any]]:
        return self._rows(self._table("material_categories").select("*").order("name"))

    def create_category(self, name: str) -> dict[str, Any]:
        return self._one(
            self._table("material_categories").insert({"name": name, "slug": category_slug(name)}),
            not_found="Category was not created",
        )

    def delete_category(self, category_id: str) -> None:
        self._execute(self._table("material_categories").delete().eq("id", category_id))

    # Requests and approvals
    def list_requests(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]:
        query = self._table("material_requests").select("*").order("created_at", desc=True)
        if not is_admin:
            query = query.eq("requester_id", caller_id)
        return self._rows(query)

    def get_request(self, request_id: str) -> dict[str, Any]:
        request = self._one(
            self._table("material_requests").select("*").eq("id", request_id).limit(1),
            not_found="Request not found",
        )
        request["items"] = self._rows(
            self._table("material_request_items").select("*").eq("request_id", request_id)
        )
        request["approvals"] = self._rows(
            self._table("approvals").select("*").eq("request_id", request_id).order("created_at")
        )
        return request

    def create_request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        params = {
            "p_project_id": payload["project_id"],
            "p_priority": payload.get("priority", "normal"),
            "p_required_date": payload.get("required_date"),
            "p_remarks": payload.get("remarks") or "",
            "p_request_type": payload.get("request_type"),
            "p_status": payload.get("status", SUBMITTED),
            "p_items": list(payload.get("items") or []),
        }
        created = self._execute(self.client.rpc("create_material_request", params)).data
        if isinstance(created, list):
            created = created[0] if created else None
        if not created:
            raise BackendError(code="REQUEST_NOT_CREATED", message="Request was not created")
        return created

    def update_request(self, request_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self._one(
            self._table("material_requests").update(dict(fields)).eq("id", request_id),
            not_found="Request not found",
        )

    def decide_request(
        self,
        request_id: str,
        *,
        action: str,
        comment: str | None,
        request_type: str | None = None,
    ) -> dict[str, Any]:
        result = self._execute(
            self.client.rpc(
                "decide_material_request",
                {
                    "p_request_id": request_id,
                    "p_action": action,
                    "p_comment": comment,
                    "p_request_type": request_type,
                },
            )
        ).data
        if isinstance(result, list):
            result = result[0] if result else {}
        return result or {}

    def delete_request(self, request_id: str, *, caller_id: str, is_admin: bool) -> None:
        query = self._table("material_requests").delete().eq("id", request_id)
        if not is_admin:
            # Mirrors the row-level policy so a forbidden delete is reported, not silently ignored.
            query = query.eq("requester_id", caller_id).in_("status", sorted(REQUESTER_DELETABLE_STATUSES))
        deleted = self._rows(query)
        if not deleted:
            if is_admin:
                raise NotFoundError(code="REQUEST_NOT_FOUND", message="Request not found")
            raise AuthorizationError(
                code="REQUEST_DELETE_FORBIDDEN",
                message="You can only delete your own draft or submitted requests",
            )

    def list_pending(self) -> list[dict[str, Any]]:
        return self._rows(
            self._table("material_requests").select("*").eq("status", SUBMITTED).order("created_at", desc=True)
        )

    def pending_count(self) -> int:
        response = self._execute(
            self._table("material_requests").select("id", count="exact").eq("status", SUBMITTED)
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])

    def list_request_items(self, request_ids: Iterable[str]) -> list[dict[str, Any]]:
        ids = [str(i) for i in request_ids]
        if not ids:
            return []
        return self._rows(self._table("material_request_items").select("request_id").in_("request_id", ids))

    # Profiles and users
    def list_profiles(self) -> list[dict[str, Any]]:
        return self._rows(self._table("profiles").select("*"))

    def list_users(self) -> list[dict[str, Any]]:
        """Auth users are only reachable through the ``list-users`` edge function."""
        payload = self.client.functions.invoke("list-users", invoke_options={"responseType": "json"})
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode("utf-8")
        if isinstance(payload, str):
            payload = json.loads(payload or "{}")
        if isinstance(payload, dict) and payload.get("error"):
            raise BackendError(code="LIST_USERS_FAILED", message=str(payload["error"]))
        users = payload.get("users", []) if isinstance(payload, dict) else payload
        return list(users or [])

    def create_user(self, data: Mapping[str, Any]) -> dict[str, Any]:
        raise _users_not_supported()

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        raise _users_not_supported()

    def delete_user(self, user_id: str) -> None:
        raise _users_not_supported()

    # Stock ledger
    def list_stock(self) -> list[dict[str, Any]]:
        return self._rows(self._table("stock_items").select("*").order("created_at", desc=True))

    def receive_stock(self, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        self._execute(self._table("stock_items").insert(rows))
        return len(rows)

    def deduct_stock(self, rows: list[dict[str, Any]], *, request_id: str | None = None) -> int:
        if not rows:
            return 0
        tagged = [{**row, "request_id": row.get("request_id") or request_id} for row in rows]
        self._execute(self._table("stock_items").insert(tagged))
        return len(rows)

    def edit_stock_row(self, row_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        return self._one(
            self._table("stock_items").update(dict(patch)).eq("id", row_id),
            not_found="Stock row not found",
        )

    # Dashboard
    def dashboard_metrics(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]:
        query = self._table("material_requests").select("status,priority")
        if not is_admin:
            query = query.eq("requester_id", caller_id)
        return build_dashboard_metrics(self._rows(query))
