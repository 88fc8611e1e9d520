from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
import requests

from procurement.client.auth_provider import SIGNED_OUT, TokenAuthProvider
from procurement.client.facade import DataAccessFacade
from procurement.client.ledger import StockLedger
from procurement.client.lifecycle import RequestLifecycle
from procurement.client.local_backend import LocalApiBackend, error_from_response
from procurement.client.token_store import FileTokenStore, MemoryTokenStore
from procurement.domain_errors import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    NotFoundError,
    ValidationError,
)

CEMENT = {"category": "Cement", "name": "OPC 53 grade", "quantity": 50, "unit": "bags"}


def _session(client, token_store=None):
    store = token_store if token_store is not None else MemoryTokenStore()
    backend = LocalApiBackend("http://testserver", token_store=store, http=client)
    auth = TokenAuthProvider(backend, store)
    facade = DataAccessFacade(backend)
    return SimpleNamespace(
        store=store,
        backend=backend,
        auth=auth,
        facade=facade,
        requests=RequestLifecycle(facade, auth),
        stock=StockLedger(facade, auth),
    )


@pytest.fixture
def admin_session(client, admin):
    session = _session(client)
    assert session.auth.sign_in("admin@company.com", "password123").ok
    return session


@pytest.fixture
def requester_session(client, requester):
    session = _session(client)
    assert session.auth.sign_in("ravi@company.com", "password123").ok
    return session


def test_request_to_stock_issue_journey(admin_session, requester_session, project) -> None:
    created = requester_session.requests.create(project_id=str(project.id), items=[CEMENT], priority="urgent")
    assert created["status"] == "submitted"
    assert created["request_number"].startswith("REQ-")

    listed = requester_session.requests.list_requests()
    assert [(r["id"], r["project_name"], r["items_count"]) for r in listed] == [
        (created["id"], "Green Valley Apartments", 1)
    ]
    assert admin_session.requests.pending_count() == 1

    admin_session.stock.receive([{"item": "Cement", "qty": 100, "unit": "bags", "category": "Cement"}])

    approved = admin_session.requests.approve(created["id"], comment="Go ahead")
    assert approved["status"] == "approved"
    assert approved["approvals"][0]["user_name"] == "Site Admin"

    with pytest.raises(ValidationError) as exc_info:
        admin_session.requests.reject(created["id"], comment="too late")
    assert exc_info.value.code == "REQUEST_NOT_SUBMITTED"

    assert admin_session.stock.deduct([{"item": "Cement", "qty": 30, "unit": "bags"}], request_id=created["id"]) == 1
    assert requester_session.stock.balance_of("Cement", "bags") == 70

    metrics = {m["label"]: m["value"] for m in requester_session.facade.dashboard_metrics(
        caller_id=requester_session.auth.state.user_id, is_admin=False
    )}
    assert metrics == {"Total Requests": 1, "Pending Approval": 0, "Approved": 1, "Urgent": 1}

    closed = admin_session.requests.close(created["id"])
    assert closed["status"] == "closed"


def test_client_side_validation_happens_before_any_call(requester_session, project, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(requester_session.facade, "create_request", lambda payload: calls.append(payload))

    with pytest.raises(ValidationError) as exc_info:
        requester_session.requests.create(project_id=str(project.id), items=[])

    assert exc_info.value.code == "REQUEST_ITEMS_REQUIRED"
    assert calls == []


def test_draft_then_submit(requester_session, project) -> None:
    draft = requester_session.requests.create(project_id=str(project.id), items=[CEMENT], as_draft=True)
    assert draft["status"] == "draft"

    submitted = requester_session.requests.submit(draft["id"])
    assert submitted["status"] == "submitted"


def test_requester_limits(admin_session, requester_session, project) -> None:
    created = requester_session.requests.create(project_id=str(project.id), items=[CEMENT])

    with pytest.raises(AuthorizationError) as exc_info:
        requester_session.requests.approve(created["id"])
    assert exc_info.value.code == "ADMIN_REQUIRED"

    with pytest.raises(AuthorizationError):
        requester_session.stock.receive([{"item": "Cement", "qty": 1, "unit": "bags"}])

    admin_session.requests.approve(created["id"])
    with pytest.raises(AuthorizationError) as exc_info:
        requester_session.requests.delete(created["id"])
    assert exc_info.value.code == "REQUEST_DELETE_FORBIDDEN"


def test_server_errors_map_onto_taxonomy(requester_session, other_requester, client, project) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        requester_session.requests.create(project_id=str(uuid4()), items=[CEMENT])
    assert exc_info.value.code == "PROJECT_NOT_FOUND"

    created = requester_session.requests.create(project_id=str(project.id), items=[CEMENT])
    stranger = _session(client)
    assert stranger.auth.sign_in("anita@company.com", "password123").ok
    with pytest.raises(AuthorizationError) as exc_info:
        stranger.requests.get(created["id"])
    assert exc_info.value.code == "REQUEST_ACCESS_DENIED"


def test_sign_in_failure_and_sign_out(client, requester) -> None:
    session = _session(client)

    failed = session.auth.sign_in("ravi@company.com", "wrong-password")
    assert not failed.ok
    assert isinstance(failed.error, AuthenticationError)
    assert session.store.load() is None

    assert session.auth.sign_in("ravi@company.com", "password123").ok
    token = session.store.load()
    assert token

    session.auth.sign_out()
    assert session.store.load() is None
    assert session.auth.state == SIGNED_OUT
    with pytest.raises(AuthenticationError):
        session.requests.list_requests()

    # The old token was revoked server-side by the logout.
    assert client.get("/api/requests", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_start_restores_or_clears_stored_token(client, requester, tmp_path) -> None:
    path = tmp_path / "token.json"
    first = _session(client, FileTokenStore(path))
    assert first.auth.sign_in("ravi@company.com", "password123").ok

    restored = _session(client, FileTokenStore(path))
    state = restored.auth.start()
    assert state.user_id == str(requester.id)
    assert state.profile["full_name"] == "Ravi Kumar"
    assert state.loading is False

    stale = _session(client, MemoryTokenStore("not-a-jwt"))
    assert stale.auth.start() == SIGNED_OUT
    assert stale.store.load() is None


def test_forced_password_change_through_provider(client, make_user) -> None:
    make_user("new@company.com", password="temporary1", must_change_password=True)
    session = _session(client)

    result = session.auth.sign_in("new@company.com", "temporary1")
    assert result.ok
    assert result.state.must_change_password is True

    with pytest.raises(AuthorizationError):
        session.requests.list_requests()

    state = session.auth.change_password("temporary1", "brand-new-pass")
    assert state.must_change_password is False
    assert session.requests.list_requests() == []


class _Offline:
    def request(self, *args, **kwargs):
        raise requests.ConnectionError("connection refused")


def test_unreachable_server_is_a_backend_error() -> None:
    backend = LocalApiBackend("http://localhost:1", token_store=MemoryTokenStore(), http=_Offline())
    with pytest.raises(BackendError) as exc_info:
        backend.list_projects()
    assert exc_info.value.code == "BACKEND_UNREACHABLE"
    assert exc_info.value.http_status == 503


def test_error_from_response_handles_validation_lists_and_plain_text() -> None:
    class _Response:
        def __init__(self, status_code, body=None, text=""):
            self.status_code = status_code
            self._body = body
            self.text = text

        def json(self):
            if self._body is None:
                raise ValueError("no json")
            return self._body

    error = error_from_response(_Response(422, {"detail": [{"loc": ["body", "items"], "msg": "field required"}]}))
    assert isinstance(error, ValidationError)
    assert error.details == {"errors": [{"loc": ["body", "items"], "msg": "field required"}]}

    error = error_from_response(_Response(502, text="Bad Gateway"))
    assert isinstance(error, BackendError)
    assert error.message == "Bad Gateway"


def test_start_while_server_is_down_keeps_token_and_signs_out() -> None:
    store = MemoryTokenStore("stored-token")
    backend = LocalApiBackend("http://localhost:1", token_store=store, http=_Offline())
    auth = TokenAuthProvider(backend, store)

    assert auth.start() == SIGNED_OUT
    assert store.load() == "stored-token"
