"""Contract shared by the local REST and Supabase data backends."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping


class DataBackend(ABC):
    """One operation set per resource; rows are plain dicts.

    ``denormalizes_requests`` tells the facade whether request rows already
    carry ``project_name``/``requester_name``/``requester_designation``/
    ``items_count`` or whether it has to join them client-side.
    """

    name: str = "backend"
    denormalizes_requests: bool = False

    # Projects
    @abstractmethod
    def list_projects(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def create_project(self, *, name: str, location: str, status: str = "active") -> dict[str, Any]: ...

    @abstractmethod
    def update_project(self, project_id: str, fields: Mapping[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def delete_project(self, project_id: str) -> None: ...

    @abstractmethod
    def project_approved_items(self, project_id: str) -> list[dict[str, Any]]: ...

    # Categories
    @abstractmethod
    def list_categories(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def create_category(self, name: str) -> dict[str, Any]: ...

    @abstractmethod
    def delete_category(self, category_id: str) -> None: ...

    # Requests and approvals
    @abstractmethod
    def list_requests(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]: ...

    @abstractmethod
    def get_request(self, request_id: str) -> dict[str, Any]: ...

    @abstractmethod
    def create_request(self, payload: Mapping[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def update_request(self, request_id: str, fields: Mapping[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def decide_request(
        self,
        request_id: str,
        *,
        action: str,
        comment: str | None,
        request_type: str | None = None,
    ) -> dict[str, Any]: ...

    @abstractmethod
    def delete_request(self, request_id: str, *, caller_id: str, is_admin: bool) -> None: ...

    @abstractmethod
    def list_pending(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def pending_count(self) -> int: ...

    def list_request_items(self, request_ids: Iterable[str]) -> list[dict[str, Any]]:
        """Item rows (at least ``request_id``) for client-side item counts."""
        raise NotImplementedError(f"{self.name} backend returns denormalized requests")

    # Profiles and users
    @abstractmethod
    def list_profiles(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def list_users(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def create_user(self, data: Mapping[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def delete_user(self, user_id: str) -> None: ...

    # Stock ledger
    @abstractmethod
    def list_stock(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def receive_stock(self, rows: list[dict[str, Any]]) -> int: ...

    @abstractmethod
    def deduct_stock(self, rows: list[dict[str, Any]], *, request_id: str | None = None) -> int: ...

    @abstractmethod
    def edit_stock_row(self, row_id: str, patch: Mapping[str, Any]) -> dict[str, Any]: ...

    # Dashboard
    @abstractmethod
    def dashboard_metrics(self, *, caller_id: str, is_admin: bool) -> list[dict[str, Any]]: ...
