"""Single entry point for data access, independent of the active backend."""
from __future__ import annotations

import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Mapping

from ..domain_errors import BackendError, DomainError
from ..services.dashboard import normalize_metrics
from ..services.denormalize import UNKNOWN_USER, enrich_requests, index_profiles
from ..services.request_rules import validate_status_patch
from ..services.stock_ledger import validate_row_patch
from .base import DataBackend

logger = logging.getLogger(__name__)


def _wrap_backend_errors(method: Callable) -> Callable:
    """Re-raise anything that is not already a DomainError as BackendError."""

    @functools.wraps(method)
    def wrapper(self: "DataAccessFacade", *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except DomainError:
            raise
        except Exception as exc:
            logger.exception("facade.%s failed on %s backend", method.__name__, self.backend.name)
            raise BackendError(code="BACKEND_FAILURE", message=str(exc) or exc.__class__.__name__) from exc

    return wrapper


class DataAccessFacade:
    """Projects, categories, requests, approvals, stock, dashboard, profiles and users.

    Status patches and stock-row edits are checked here so both backends
    accept the same writes.

    Request reads come back denormalized (``project_name``,
    ``requester_name``, ``requester_designation``, ``items_count``) whichever
    backend is active.
    """

    def __init__(self, backend: DataBackend, *, max_workers: int = 3):
        self.backend = backend
        self.max_workers = max_workers

    # Projects
    @_wrap_backend_errors
    def list_projects(self) -> list[dict[str, Any]]:
        return self.backend.list_projects()

    @_wrap_backend_errors
    def create_project(self, *, name: str, location: str, status: str = "active") -> dict[str, Any]:
        return self.backend.create_project(name=name, location=location, status=status)

    @_wrap_backend_errors
    def update_project(self, project_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self.backend.update_project(str(project_id), fields)

    @_wrap_backend_errors
    def delete_project(self, project_id: str) -> None:
        self.backend.delete_project(str(project_id))

    @_wrap_backend_errors
    def project_approved_items(self, project_id: str) -> list[dict[str, Any]]:
        return self.backend.project_approved_items(str(project_id))

    # Categories
    @_wrap_backend_errors
    def list_categories(self) -> list[dict[str, Any]]:
        return self.backend.list_categories()

    @_wrap_backend_errors
    def create_category(self, name: str) -> dict[str, Any]:
        return self.backend.create_category(name)

    @_wrap_backend_errors
    def delete_category(self, category_id: str) -> None:
        self.backend.delete_category(str(category_id))

    # Requests
    def _lookups(self, request_ids: Iterable[str]) -> tuple[list, list, list]:
        """Fetch projects, profiles and item rows concurrently."""
        ids = list(request_ids)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            projects = pool.submit(self.backend.list_projects)
            profiles = pool.submit(self.backend.list_profiles)
            items = pool.submit(self.backend.list_request_items, ids)
            return projects.result(), profiles.result(), items.result()

    def _denormalize(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if self.backend.denormalizes_requests or not rows:
            return rows
        projects, profiles, items = self._lookups(str(r.get("id")) for r in rows)
        return enrich_requests(rows, projects=projects, profiles=profiles, item_rows=items)

    @_wrap_backend_errors
    def list_requests(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]:
        rows = self.backend.list_requests(caller_id=str(caller_id), is_admin=is_admin)
        return self._denormalize(rows)

    @_wrap_backend_errors
    def list_pending(self) -> list[dict[str, Any]]:
        return self._denormalize(self.backend.list_pending())

    @_wrap_backend_errors
    def pending_count(self) -> int:
        return self.backend.pending_count()

    @_wrap_backend_errors
    def get_request(self, request_id: str) -> dict[str, Any]:
        detail = self.backend.get_request(str(request_id))
        if self.backend.denormalizes_requests:
            return detail

        with ThreadPoolExecutor(max_workers=2) as pool:
            projects = pool.submit(self.backend.list_projects)
            profiles = pool.submit(self.backend.list_profiles)
            project_rows, profile_rows = projects.result(), profiles.result()

        items = detail.get("items") or []
        enriched = enrich_requests(
            [detail],
            projects=project_rows,
            profiles=profile_rows,
            item_counts={detail.get("id"): len(items)},
        )[0]
        by_user = index_profiles(profile_rows)
        requester = by_user.get(str(detail.get("requester_id"))) or {}
        enriched["requester_phone"] = requester.get("phone") or ""
        enriched["approvals"] = [
            {**a, "user_name": (by_user.get(str(a.get("user_id"))) or {}).get("full_name") or UNKNOWN_USER}
            for a in detail.get("approvals") or []
        ]
        return enriched

    @_wrap_backend_errors
    def create_request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.backend.create_request(payload)

    @_wrap_backend_errors
    def update_request(self, request_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        fields = dict(fields)
        if "status" in fields:
            fields["status"] = validate_status_patch(fields["status"])
        return self.backend.update_request(str(request_id), fields)

    @_wrap_backend_errors
    def decide_request(
        self,
        request_id: str,
        *,
        action: str,
        comment: str | None,
        request_type: str | None = None,
    ) -> dict[str, Any]:
        return self.backend.decide_request(str(request_id), action=action, comment=comment, request_type=request_type)

    @_wrap_backend_errors
    def delete_request(self, request_id: str, *, caller_id: str, is_admin: bool) -> None:
        self.backend.delete_request(str(request_id), caller_id=str(caller_id), is_admin=is_admin)

    # Profiles and users
    @_wrap_backend_errors
    def list_profiles(self) -> list[dict[str, Any]]:
        return self.backend.list_profiles()

    @_wrap_backend_errors
    def list_users(self) -> list[dict[str, Any]]:
        return self.backend.list_users()

    @_wrap_backend_errors
    def create_user(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self.backend.create_user(data)

    @_wrap_backend_errors
    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self.backend.update_user(str(user_id), fields)

    @_wrap_backend_errors
    def delete_user(self, user_id: str) -> None:
        self.backend.delete_user(str(user_id))

    # Stock
    @_wrap_backend_errors
    def list_stock(self) -> list[dict[str, Any]]:
        return self.backend.list_stock()

    @_wrap_backend_errors
    def receive_stock(self, rows: list[dict[str, Any]]) -> int:
        return self.backend.receive_stock(rows)

    @_wrap_backend_errors
    def deduct_stock(self, rows: list[dict[str, Any]], *, request_id: str | None = None) -> int:
        return self.backend.deduct_stock(rows, request_id=str(request_id) if request_id else None)

    @_wrap_backend_errors
    def edit_stock_row(self, row_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        return self.backend.edit_stock_row(str(row_id), validate_row_patch(patch))

    # Dashboard
    def dashboard_metrics(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]:
        """Dashboard degrades to zero counts instead of failing the page."""
        try:
            raw = self.backend.dashboard_metrics(caller_id=str(caller_id), is_admin=is_admin)
        except Exception:
            logger.warning("facade.dashboard_metrics failed on %s backend; showing zeros", self.backend.name, exc_info=True)
            raw = []
        return normalize_metrics(raw)
