from __future__ import annotations

import pytest
from supabase import PostgrestAPIError

from procurement.client.supabase_backend import SupabaseBackend, map_api_error
from procurement.domain_errors import AuthorizationError, BackendError, NotFoundError, ValidationError

from .dummies import DummyClient, DummyFunctions, DummyResp


def _api_error(code: str, message: str = "boom") -> PostgrestAPIError:
    return PostgrestAPIError({"message": message, "code": code, "hint": None, "details": None})


@pytest.mark.parametrize(
    ("pg_code", "expected_type", "expected_code", "status"),
    [
        ("42501", AuthorizationError, "PERMISSION_DENIED", 403),
        ("23505", BackendError, "CONFLICT", 409),
        ("23503", BackendError, "CONFLICT", 409),
        ("22023", ValidationError, "VALIDATION_FAILED", 400),
        ("P0002", NotFoundError, "NOT_FOUND", 404),
        ("XX000", BackendError, "SUPABASE_ERROR", 500),
    ],
)
def test_map_api_error(pg_code, expected_type, expected_code, status) -> None:
    error = map_api_error(_api_error(pg_code, "rejected by database"))
    assert type(error) is expected_type
    assert error.code == expected_code
    assert error.http_status == status
    assert error.message == "rejected by database"
    assert error.details == {"postgres_code": pg_code}


def test_requester_list_is_filtered_by_owner() -> None:
    client = DummyClient({"material_requests": [{"id": "r1"}]})
    backend = SupabaseBackend(client)

    assert backend.list_requests(caller_id="u1", is_admin=False) == [{"id": "r1"}]
    assert client.queries[-1].called("eq") == [("eq", ("requester_id", "u1"), {})]

    backend.list_requests(caller_id="admin", is_admin=True)
    assert client.queries[-1].called("eq") == []


def test_requester_delete_mirrors_row_policy() -> None:
    client = DummyClient({"material_requests": []})
    backend = SupabaseBackend(client)

    with pytest.raises(AuthorizationError) as exc_info:
        backend.delete_request("r1", caller_id="u1", is_admin=False)

    assert exc_info.value.code == "REQUEST_DELETE_FORBIDDEN"
    query = client.queries[-1]
    assert ("eq", ("requester_id", "u1"), {}) in query.calls
    assert ("in_", ("status", ["draft", "submitted"]), {}) in query.calls


def test_admin_delete_of_missing_request_is_not_found() -> None:
    backend = SupabaseBackend(DummyClient({"material_requests": []}))
    with pytest.raises(NotFoundError):
        backend.delete_request("r1", caller_id="admin", is_admin=True)


def test_successful_delete() -> None:
    backend = SupabaseBackend(DummyClient({"material_requests": [{"id": "r1"}]}))
    backend.delete_request("r1", caller_id="u1", is_admin=False)


def test_create_request_goes_through_rpc() -> None:
    client = DummyClient({"rpc:create_material_request": [{"id": "r1", "request_number": "REQ-000007"}]})
    backend = SupabaseBackend(client)

    created = backend.create_request(
        {
            "project_id": "p1",
            "priority": "urgent",
            "required_date": "2026-03-10",
            "remarks": "",
            "request_type": "stock_request",
            "status": "draft",
            "items": [{"category": "Cement", "name": "OPC", "quantity": 10.0, "unit": "bags"}],
        }
    )

    assert created["request_number"] == "REQ-000007"
    _, (name, params), _ = client.queries[-1].calls[0]
    assert name == "create_material_request"
    assert params["p_status"] == "draft"
    assert params["p_priority"] == "urgent"
    assert params["p_items"][0]["quantity"] == 10.0


def test_create_request_without_result_is_a_backend_error() -> None:
    backend = SupabaseBackend(DummyClient({"rpc:create_material_request": []}))
    with pytest.raises(BackendError) as exc_info:
        backend.create_request({"project_id": "p1", "items": []})
    assert exc_info.value.code == "REQUEST_NOT_CREATED"


def test_decide_maps_rpc_errors() -> None:
    client = DummyClient({"rpc:decide_material_request": _api_error("22023", "Request is not pending")})
    backend = SupabaseBackend(client)

    with pytest.raises(ValidationError) as exc_info:
        backend.decide_request("r1", action="approved", comment=None)
    assert exc_info.value.message == "Request is not pending"


def test_pending_count_uses_exact_count() -> None:
    client = DummyClient({"material_requests": DummyResp([], count=4)})
    backend = SupabaseBackend(client)

    assert backend.pending_count() == 4
    assert client.queries[-1].called("select") == [("select", ("id",), {"count": "exact"})]


def test_get_request_attaches_items_and_approvals() -> None:
    client = DummyClient(
        {
            "material_requests": [{"id": "r1", "status": "submitted"}],
            "material_request_items": [{"id": "i1", "request_id": "r1"}],
            "approvals": [],
        }
    )
    request = SupabaseBackend(client).get_request("r1")
    assert request["items"] == [{"id": "i1", "request_id": "r1"}]
    assert request["approvals"] == []


def test_get_missing_request_is_not_found() -> None:
    with pytest.raises(NotFoundError):
        SupabaseBackend(DummyClient({"material_requests": []})).get_request("nope")


def test_list_users_parses_edge_function_payload() -> None:
    functions = DummyFunctions(b'{"users": [{"id": "u1", "email": "ravi@company.com", "role": "user"}]}')
    backend = SupabaseBackend(DummyClient(functions=functions))

    assert backend.list_users() == [{"id": "u1", "email": "ravi@company.com", "role": "user"}]
    assert functions.invocations == [("list-users", {"responseType": "json"})]


def test_list_users_reports_function_error() -> None:
    backend = SupabaseBackend(DummyClient(functions=DummyFunctions('{"error": "Forbidden"}')))
    with pytest.raises(BackendError) as exc_info:
        backend.list_users()
    assert exc_info.value.code == "LIST_USERS_FAILED"


@pytest.mark.parametrize("call", ["create", "update", "delete"])
def test_user_writes_are_not_supported(call) -> None:
    backend = SupabaseBackend(DummyClient())
    with pytest.raises(BackendError) as exc_info:
        if call == "create":
            backend.create_user({"email": "x@company.com"})
        elif call == "update":
            backend.update_user("u1", {"role": "admin"})
        else:
            backend.delete_user("u1")
    assert exc_info.value.code == "USERS_NOT_SUPPORTED"
    assert exc_info.value.http_status == 501


def test_deduct_tags_rows_with_request() -> None:
    client = DummyClient()
    backend = SupabaseBackend(client)

    count = backend.deduct_stock([{"item": "Cement", "qty": -5.0, "request_id": None}], request_id="r9")

    assert count == 1
    (_, (rows,), _), = client.queries[-1].called("insert")
    assert rows == [{"item": "Cement", "qty": -5.0, "request_id": "r9"}]


def test_stock_insert_permission_error() -> None:
    backend = SupabaseBackend(DummyClient({"stock_items": _api_error("42501", "new row violates row-level security")}))
    with pytest.raises(AuthorizationError):
        backend.receive_stock([{"item": "Cement", "qty": 1.0}])


def test_dashboard_metrics_are_computed_from_scoped_rows() -> None:
    client = DummyClient(
        {"material_requests": [{"status": "submitted", "priority": "urgent"}, {"status": "approved", "priority": "normal"}]}
    )
    metrics = SupabaseBackend(client).dashboard_metrics(caller_id="u1", is_admin=False)
    assert {m["label"]: m["value"] for m in metrics} == {
        "Total Requests": 2,
        "Pending Approval": 1,
        "Approved": 1,
        "Urgent": 1,
    }
    assert ("eq", ("requester_id", "u1"), {}) in client.queries[-1].calls


def test_project_approved_items_flattens_nested_rows() -> None:
    client = DummyClient(
        {
            "material_requests": [
                {
                    "id": "r1",
                    "request_number": "REQ-000001",
                    "created_at": "2026-03-01T10:00:00+00:00",
                    "material_request_items": [{"id": "i1", "request_id": "r1", "name": "OPC"}],
                    "approvals": [
                        {"action": "approved", "created_at": "2026-03-02T09:00:00+00:00"},
                    ],
                }
            ]
        }
    )
    items = SupabaseBackend(client).project_approved_items("p1")
    assert items == [
        {
            "id": "i1",
            "request_id": "r1",
            "name": "OPC",
            "request_number": "REQ-000001",
            "request_created_at": "2026-03-01T10:00:00+00:00",
            "approved_at": "2026-03-02T09:00:00+00:00",
        }
    ]
