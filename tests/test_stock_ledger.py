from __future__ import annotations

import itertools
from datetime import date
from types import SimpleNamespace
from uuid import uuid4

import pytest

from procurement.domain_errors import ValidationError
from procurement.services.stock_ledger import (
    DEDUCT,
    RECEIVE,
    StockBalance,
    balance_of,
    build_ledger_rows,
    coerce_quantity,
    compute_balances,
    validate_row_patch,
)


def _row(item: str, qty, unit: str = "bags", **extra):
    return {"item": item, "qty": qty, "unit": unit, **extra}


def test_cement_receipt_and_issue_nets_to_seventy() -> None:
    ledger = [_row("Cement", 100), _row("Cement", -30)]
    assert compute_balances(ledger) == [StockBalance(name="Cement", unit="bags", total_qty=70)]


def test_one_entry_per_group_and_non_positive_groups_dropped() -> None:
    ledger = [
        _row("Cement", 50),
        _row("Cement", 25),
        _row("Steel", 2, unit="ton"),
        _row("Steel", -2, unit="ton"),
        _row("Sand", 3, unit="m3"),
        _row("Sand", -5, unit="m3"),
        _row("Cement", 10, unit="kg"),
    ]
    balances = compute_balances(ledger)
    assert [(b.name, b.unit, b.total_qty) for b in balances] == [
        ("Cement", "bags", 75),
        ("Cement", "kg", 10),
    ]


def test_balances_do_not_depend_on_row_order() -> None:
    ledger = [
        _row("Cement", 0.1),
        _row("Cement", 0.2),
        _row("Cement", 0.3),
        _row("Bricks", 500, unit="nos", category="Bricks"),
        _row("Bricks", -120, unit="nos"),
        SimpleNamespace(item="", description="River sand", qty=4, unit="m3", category=None),
    ]
    expected = compute_balances(ledger)
    for permutation in itertools.permutations(ledger):
        assert compute_balances(list(permutation)) == expected


def test_rows_without_name_are_skipped_and_description_is_fallback_name() -> None:
    ledger = [
        {"item": "", "description": "", "qty": 99, "unit": "nos"},
        {"item": None, "description": "Binding wire", "qty": 5, "unit": "KG"},
    ]
    balances = compute_balances(ledger)
    assert len(balances) == 1
    assert balances[0].name == "Binding wire"
    assert balances[0].unit == "kg"
    assert balances[0].description == "Binding wire"


def test_unparseable_quantities_count_as_zero() -> None:
    assert coerce_quantity("abc") == 0
    assert coerce_quantity(None) == 0
    assert coerce_quantity(True) == 0
    assert coerce_quantity(" 7.5 ") == 7.5
    balances = compute_balances([_row("Cement", "10"), _row("Cement", "oops")])
    assert balances[0].total_qty == 10


def test_balance_of_looks_up_by_name_and_unit() -> None:
    balances = compute_balances([_row("Cement", 40)])
    assert balance_of(balances, name="Cement", unit="BAGS") == 40
    assert balance_of(balances, name="Cement", unit="kg") == 0


@pytest.mark.parametrize("qty", [5, -5, "5", "-5"])
def test_deduct_always_writes_non_positive_quantity(qty) -> None:
    rows = build_ledger_rows([{"item": "Cement", "qty": qty, "unit": "bags"}], direction=DEDUCT)
    assert rows[0]["qty"] == -5


def test_receive_stores_magnitude() -> None:
    rows = build_ledger_rows([{"item": "Cement", "qty": -12, "unit": "bags"}], direction=RECEIVE)
    assert rows[0]["qty"] == 12


def test_build_rows_fills_defaults_and_links() -> None:
    request_id = uuid4()
    user_id = uuid4()
    rows = build_ledger_rows(
        [{"description": "TMT 12mm", "qty": 1, "unit": "ton", "category": " "}],
        direction=DEDUCT,
        created_by=user_id,
        request_id=request_id,
        today=date(2026, 3, 1),
    )
    assert rows == [
        {
            "date": "2026-03-01",
            "item": "",
            "description": "TMT 12mm",
            "qty": -1.0,
            "unit": "ton",
            "category": None,
            "request_id": str(request_id),
            "created_by": str(user_id),
        }
    ]


def test_build_rows_requires_list_and_a_name() -> None:
    with pytest.raises(ValidationError) as exc_info:
        build_ledger_rows({"item": "Cement"}, direction=RECEIVE)
    assert exc_info.value.code == "STOCK_ITEMS_NOT_A_LIST"

    with pytest.raises(ValidationError) as exc_info:
        build_ledger_rows([_row("Cement", 1), {"qty": 1}], direction=RECEIVE)
    assert exc_info.value.code == "STOCK_ROW_NAME_REQUIRED"
    assert exc_info.value.details == {"row": 1}


@pytest.mark.parametrize(
    ("rows", "request_id"),
    [
        ([_row("Cement", 5)], uuid4()),
        ([_row("Cement", 5), {"item": "Sand", "qty": 2, "request_id": str(uuid4())}], None),
    ],
)
def test_receipts_cannot_be_linked_to_a_request(rows, request_id) -> None:
    with pytest.raises(ValidationError) as exc_info:
        build_ledger_rows(rows, direction=RECEIVE, request_id=request_id)
    assert exc_info.value.code == "STOCK_RECEIPT_REQUEST_NOT_ALLOWED"


def test_row_patch_rejects_quantity_and_unknown_fields() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_row_patch({"qty": 3})
    assert exc_info.value.code == "STOCK_QTY_IMMUTABLE"

    with pytest.raises(ValidationError) as exc_info:
        validate_row_patch({"request_id": "x"})
    assert exc_info.value.code == "STOCK_FIELD_NOT_EDITABLE"

    assert validate_row_patch({"description": " Fe 500 ", "category": "", "unit": None}) == {
        "description": "Fe 500",
        "category": None,
    }
