"""Stock ledger helpers.

The ledger is an append-only list of signed quantity rows: receipts (GRN) are
positive, issues against requests are negative. Balances are never stored;
:func:`compute_balances` derives them from the full ledger on every read.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping

from ..domain_errors import ValidationError

RECEIVE = "receive"
DEDUCT = "deduct"
DESCRIPTIVE_FIELDS: tuple[str, ...] = ("date", "item", "description", "unit", "category")


@dataclass(frozen=True)
class StockBalance:
    name: str
    unit: str
    total_qty: float
    category: str | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "unit": self.unit,
            "total_qty": self.total_qty,
            "category": self.category,
            "description": self.description,
        }


def _field(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_quantity(value: Any) -> float:
    """Coerce user input to a number; anything unparseable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        qty = float(value.strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(qty):
        return 0.0
    return qty


def signed_quantity(value: Any, *, direction: str) -> float:
    qty = abs(coerce_quantity(value))
    if direction == DEDUCT:
        return -qty if qty else 0.0
    return qty


def build_ledger_rows(
    rows: Any,
    *,
    direction: str,
    created_by: Any = None,
    request_id: Any = None,
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Turn raw receipt/issue input into ledger rows ready to insert."""
    if direction not in (RECEIVE, DEDUCT):
        raise ValueError(f"Unknown ledger direction: {direction}")
    if not isinstance(rows, (list, tuple)):
        raise ValidationError(code="STOCK_ITEMS_NOT_A_LIST", message="items must be an array")

    default_date = (today or date.today()).isoformat()
    result: list[dict[str, Any]] = []
    for index, row in enumerate(rows):
        item = _text(_field(row, "item"))
        description = _text(_field(row, "description"))
        if not item and not description:
            raise ValidationError(
                code="STOCK_ROW_NAME_REQUIRED",
                message="Each stock row needs an item or a description",
                details={"row": index},
            )
        category = _text(_field(row, "category")) or None
        if direction == RECEIVE and (request_id or _field(row, "request_id")):
            raise ValidationError(
                code="STOCK_RECEIPT_REQUEST_NOT_ALLOWED",
                message="Only deductions can be linked to a request",
                details={"row": index},
            )
        row_request_id = _field(row, "request_id") or request_id
        result.append(
            {
                "date": _text(_field(row, "date")) or default_date,
                "item": item,
                "description": description,
                "qty": signed_quantity(_field(row, "qty"), direction=direction),
                "unit": _text(_field(row, "unit")),
                "category": category,
                "request_id": str(row_request_id) if row_request_id else None,
                "created_by": str(created_by) if created_by else None,
            }
        )
    return result


def validate_row_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """Only descriptive fields of a ledger row may be edited in place."""
    if "qty" in patch or "quantity" in patch:
        raise ValidationError(
            code="STOCK_QTY_IMMUTABLE",
            message="Quantities cannot be edited; record a compensating receipt or deduction instead",
        )
    unknown = set(patch) - set(DESCRIPTIVE_FIELDS)
    if unknown:
        raise ValidationError(
            code="STOCK_FIELD_NOT_EDITABLE",
            message=f"Fields not editable: {', '.join(sorted(unknown))}",
        )
    cleaned: dict[str, Any] = {}
    for key, value in patch.items():
        if value is None:
            continue
        cleaned[key] = _text(value) or (None if key == "category" else "")
    return cleaned


def balance_key(row: Any) -> tuple[str, str] | None:
    name = _text(_field(row, "item")) or _text(_field(row, "description"))
    if not name:
        return None
    return name, _text(_field(row, "unit")).lower()


def compute_balances(rows: Iterable[Any]) -> list[StockBalance]:
    """Aggregate ledger rows into on-hand balances per (name, unit).

    Groups whose net quantity is zero or negative are left out. The result
    does not depend on row order.
    """
    quantities: dict[tuple[str, str], list[float]] = {}
    categories: dict[tuple[str, str], set[str]] = {}
    descriptions: dict[tuple[str, str], set[str]] = {}

    for row in rows:
        key = balance_key(row)
        if key is None:
            continue
        quantities.setdefault(key, []).append(coerce_quantity(_field(row, "qty")))
        category = _text(_field(row, "category"))
        if category:
            categories.setdefault(key, set()).add(category)
        description = _text(_field(row, "description"))
        if description:
            descriptions.setdefault(key, set()).add(description)

    balances: list[StockBalance] = []
    for key, values in quantities.items():
        total = math.fsum(values)
        if total <= 0:
            continue
        name, unit = key
        balances.append(
            StockBalance(
                name=name,
                unit=unit,
                total_qty=total,
                category=min(categories[key]) if key in categories else None,
                description=min(descriptions[key]) if key in descriptions else None,
            )
        )
    balances.sort(key=lambda entry: (entry.name.casefold(), entry.name, entry.unit))
    return balances


def balance_of(balances: Iterable[StockBalance], *, name: str, unit: str) -> float:
    wanted = (_text(name), _text(unit).lower())
    for entry in balances:
        if (entry.name, entry.unit) == wanted:
            return entry.total_qty
    return 0.0
