"""Client-side stock ledger operations."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..domain_errors import AuthorizationError
from ..services.stock_ledger import (
    DEDUCT,
    RECEIVE,
    StockBalance,
    balance_of,
    build_ledger_rows,
    compute_balances,
    validate_row_patch,
)
from .auth_provider import AuthProvider
from .facade import DataAccessFacade

logger = logging.getLogger(__name__)


class StockLedger:
    def __init__(self, facade: DataAccessFacade, auth: AuthProvider):
        self.facade = facade
        self.auth = auth

    def _require_admin(self):
        state = self.auth.require_user()
        if not state.is_admin:
            raise AuthorizationError(code="ADMIN_REQUIRED", message="Only admins can change stock")
        return state

    def rows(self) -> list[dict[str, Any]]:
        self.auth.require_user()
        return self.facade.list_stock()

    def receive(self, rows: Any) -> int:
        """Record a goods receipt: one positive row per input line."""
        state = self._require_admin()
        ledger_rows = build_ledger_rows(rows, direction=RECEIVE, created_by=state.user_id)
        count = self.facade.receive_stock(ledger_rows)
        logger.info("stock.received rows=%d", count)
        return count

    def deduct(self, rows: Any, *, request_id: Optional[str] = None) -> int:
        """Record an issue: one negative row per input line."""
        state = self._require_admin()
        ledger_rows = build_ledger_rows(rows, direction=DEDUCT, created_by=state.user_id, request_id=request_id)
        count = self.facade.deduct_stock(ledger_rows, request_id=request_id)
        logger.info("stock.deducted rows=%d request=%s", count, request_id)
        return count

    def edit(self, row_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        self._require_admin()
        return self.facade.edit_stock_row(row_id, validate_row_patch(patch))

    def balances(self) -> list[StockBalance]:
        return compute_balances(self.rows())

    def balance_of(self, name: str, unit: str) -> float:
        return balance_of(self.balances(), name=name, unit=unit)
