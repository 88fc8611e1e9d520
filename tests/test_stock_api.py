from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from procurement.models import AuditEvent, MaterialRequest, StockItem

from .conftest import auth_headers, request_payload


def test_receive_deduct_and_balances(client, db, admin, requester, project) -> None:
    received = client.post(
        "/api/stock",
        json={
            "items": [
                {"item": "Cement", "description": "OPC 53", "qty": 100, "unit": "bags", "category": "Cement"},
                {"item": "Sand", "qty": "6", "unit": "m3"},
            ]
        },
        headers=auth_headers(admin),
    )
    assert received.status_code == 201, received.text
    assert received.json() == {"success": True, "count": 2}

    request = client.post("/api/requests", json=request_payload(project.id), headers=auth_headers(requester)).json()
    deducted = client.post(
        "/api/stock/deduct",
        json={"items": [{"item": "Cement", "qty": 30, "unit": "bags"}, {"item": "Sand", "qty": -6, "unit": "m3"}], "request_id": request["id"]},
        headers=auth_headers(admin),
    )
    assert deducted.status_code == 201, deducted.text

    issued = db.query(StockItem).filter(StockItem.qty < 0).all()
    assert sorted(row.qty for row in issued) == [-30.0, -6.0]
    assert all(str(row.request_id) == request["id"] for row in issued)
    assert all(row.created_by == admin.id for row in issued)

    balances = client.get("/api/stock/balances", headers=auth_headers(requester)).json()
    assert balances == [
        {"name": "Cement", "unit": "bags", "total_qty": 70.0, "category": "Cement", "description": "OPC 53"},
    ]

    ledger = client.get("/api/stock", headers=auth_headers(requester)).json()
    assert len(ledger) == 4

    actions = {e.action for e in db.query(AuditEvent).filter(AuditEvent.entity_type == "stock").all()}
    assert actions == {"stock_received", "stock_deducted"}


def test_stock_writes_are_admin_only(client, requester) -> None:
    response = client.post(
        "/api/stock",
        json={"items": [{"item": "Cement", "qty": 1, "unit": "bags"}]},
        headers=auth_headers(requester),
    )
    assert response.status_code == 403


def test_rows_without_name_are_rejected(client, admin) -> None:
    response = client.post(
        "/api/stock",
        json={"items": [{"item": "Cement", "qty": 1}, {"qty": 2}]},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "STOCK_ROW_NAME_REQUIRED"
    assert response.json()["details"] == {"row": 1}


def test_edit_row_descriptive_fields_only(client, admin) -> None:
    client.post(
        "/api/stock",
        json={"items": [{"item": "Cement", "qty": 10, "unit": "bags"}]},
        headers=auth_headers(admin),
    )
    row_id = client.get("/api/stock", headers=auth_headers(admin)).json()[0]["id"]

    edited = client.patch(f"/api/stock/{row_id}", json={"description": "PPC"}, headers=auth_headers(admin))
    assert edited.status_code == 200
    assert edited.json()["description"] == "PPC"
    assert edited.json()["qty"] == 10.0

    qty_edit = client.patch(f"/api/stock/{row_id}", json={"qty": 5}, headers=auth_headers(admin))
    assert qty_edit.status_code == 400
    assert qty_edit.json()["code"] == "STOCK_QTY_IMMUTABLE"


def test_deleting_a_request_keeps_its_ledger_rows(client, db, admin, requester, project) -> None:
    request = client.post("/api/requests", json=request_payload(project.id), headers=auth_headers(requester)).json()
    client.post(
        "/api/stock/deduct",
        json={"items": [{"item": "Cement", "qty": 3, "unit": "bags"}], "request_id": request["id"]},
        headers=auth_headers(admin),
    )

    assert client.delete(f"/api/requests/{request['id']}", headers=auth_headers(admin)).status_code == 200

    rows = db.query(StockItem).all()
    assert len(rows) == 1
    assert rows[0].request_id is None
    assert rows[0].qty == -3.0


def test_receipt_rows_never_carry_a_request(client, db, admin, requester, project) -> None:
    request = client.post("/api/requests", json=request_payload(project.id), headers=auth_headers(requester)).json()

    response = client.post(
        "/api/stock",
        json={"items": [{"item": "Cement", "qty": 10, "unit": "bags", "request_id": request["id"]}]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201, response.text
    (row,) = db.query(StockItem).all()
    assert row.qty == 10.0
    assert row.request_id is None


def test_ledger_table_refuses_positive_rows_tagged_with_a_request(db, admin, requester, project) -> None:
    request = MaterialRequest(
        request_number="REQ-000042",
        project_id=project.id,
        requester_id=requester.id,
        status="approved",
    )
    db.add(request)
    db.commit()

    db.add(StockItem(item="Cement", qty=5, unit="bags", request_id=request.id, created_by=admin.id))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
