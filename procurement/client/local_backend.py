"""Backend talking to the bundled token-authenticated REST API."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from ..domain_errors import BackendError, DomainError, error_for_status
from .base import DataBackend

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def error_from_response(response: Any) -> DomainError:
    """Turn an HTTP error response into the domain error taxonomy."""
    message: Optional[str] = None
    code: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            message = detail
        elif isinstance(detail, list):
            # FastAPI request validation errors.
            message = "Validation failed"
            details = {"errors": detail}
        message = message or body.get("error") or body.get("message")
        code = body.get("code")
        if details is None and isinstance(body.get("details"), dict):
            details = body["details"]
    if not message:
        text = getattr(response, "text", "") or ""
        message = text[:200] or f"HTTP {response.status_code}"
    return error_for_status(int(response.status_code), message=message, code=code, details=details)


class LocalApiBackend(DataBackend):
    """REST client for the self-hosted server (``API_MODE=local``).

    ``http`` is anything with a ``requests``-style ``request`` method; the
    FastAPI ``TestClient`` qualifies, which is how the tests drive it.
    """

    name = "local"
    denormalizes_requests = True

    def __init__(self, base_url: str, *, token_store, http: Any = None, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if authenticated:
            token = self.token_store.load()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        url = f"{self.base_url}/api{path}"
        try:
            response = self.http.request(
                method,
                url,
                json=_jsonable(json) if json is not None else None,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("local_api.unreachable method=%s path=%s error=%s", method, path, exc)
            raise BackendError(code="BACKEND_UNREACHABLE", http_status=503, message=str(exc)) from exc

        if response.status_code >= 400:
            error = error_from_response(response)
            logger.debug("local_api.error method=%s path=%s status=%s code=%s", method, path, response.status_code, error.code)
            raise error
        if not response.content:
            return None
        return response.json()

    # Auth
    def login(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/auth/login", json={"email": email, "password": password}, authenticated=False)

    def me(self) -> dict[str, Any]:
        return self._request("GET", "/auth/me")

    def logout(self) -> None:
        self._request("POST", "/auth/logout")

    def change_password(self, current_password: str, new_password: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/auth/change-password",
            json={"current_password": current_password, "new_password": new_password},
        )

    # Projects
    def list_projects(self) -> list[dict[str, Any]]:
        return self._request("GET", "/projects")

    def create_project(self, *, name: str, location: str, status: str = "active") -> dict[str, Any]:
        return self._request("POST", "/projects", json={"name": name, "location": location, "status": status})

    def update_project(self, project_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/projects/{project_id}", json=dict(fields))

    def delete_project(self, project_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}")

    def project_approved_items(self, project_id: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/projects/{project_id}/approved-items")

    # Categories
    def list_categories(self) -> list[dict[str, Any]]:
        return self._request("GET", "/categories")

    def create_category(self, name: str) -> dict[str, Any]:
        return self._request("POST", "/categories", json={"name": name})

    def delete_category(self, category_id: str) -> None:
        self._request("DELETE", f"/categories/{category_id}")

    # Requests and approvals
    def list_requests(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]:
        # The server scopes by the token's user.
        return self._request("GET", "/requests")

    def get_request(self, request_id: str) -> dict[str, Any]:
        return self._request("GET", f"/requests/{request_id}")

    def create_request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        body = dict(payload)
        body["as_draft"] = body.pop("status", "submitted") == "draft"
        return self._request("POST", "/requests", json=body)

    def update_request(self, request_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"/requests/{request_id}", json=dict(fields))

    def decide_request(
        self,
        request_id: str,
        *,
        action: str,
        comment: str | None,
        request_type: str | None = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/approvals",
            json={"request_id": request_id, "action": action, "comment": comment, "request_type": request_type},
        )

    def delete_request(self, request_id: str, *, caller_id: str, is_admin: bool) -> None:
        self._request("DELETE", f"/requests/{request_id}")

    def list_pending(self) -> list[dict[str, Any]]:
        return self._request("GET", "/approvals/pending")

    def pending_count(self) -> int:
        return int((self._request("GET", "/approvals/pending/count") or {}).get("count", 0))

    # Profiles and users
    def list_profiles(self) -> list[dict[str, Any]]:
        return self._request("GET", "/profiles")

    def list_users(self) -> list[dict[str, Any]]:
        return self._request("GET", "/users")

    def create_user(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/users", json=dict(data))

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/users/{user_id}", json=dict(fields))

    def delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/users/{user_id}")

    # Stock ledger
    def list_stock(self) -> list[dict[str, Any]]:
        return self._request("GET", "/stock")

    def receive_stock(self, rows: list[dict[str, Any]]) -> int:
        result = self._request("POST", "/stock", json={"items": rows})
        return int(result.get("count", len(rows)))

    def deduct_stock(self, rows: list[dict[str, Any]], *, request_id: str | None = None) -> int:
        result = self._request("POST", "/stock/deduct", json={"items": rows, "request_id": request_id})
        return int(result.get("count", len(rows)))

    def edit_stock_row(self, row_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"/stock/{row_id}", json=dict(patch))

    # Dashboard
    def dashboard_metrics(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]:
        return self._request("GET", "/dashboard/metrics")
