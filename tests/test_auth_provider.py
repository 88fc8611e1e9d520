from __future__ import annotations

import pytest
from supabase import AuthError

from procurement.client.auth_provider import SIGNED_OUT, AuthState, SessionAuthProvider
from procurement.domain_errors import AuthenticationError

from .dummies import DummyAuth, DummyClient, session_for


def _provider(*, session=None, profiles=None, roles=None, sign_in_error=None):
    auth = DummyAuth(session=session, sign_in_error=sign_in_error)
    client = DummyClient({"profiles": profiles or [], "user_roles": roles or []}, auth=auth)
    return SessionAuthProvider(client), auth, client


def test_initial_state_is_loading() -> None:
    provider, _, _ = _provider()
    assert provider.state.loading is True
    assert provider.state.user is None


def test_start_without_session_is_signed_out() -> None:
    provider, auth, _ = _provider()

    state = provider.start()

    assert state == SIGNED_OUT
    assert state.loading is False
    assert len(auth.listeners) == 1


def test_missing_profile_keeps_loading() -> None:
    provider, _, _ = _provider(session=session_for("u1"), roles=[{"user_id": "u1", "role": "user"}])

    state = provider.start()

    assert state.user_id == "u1"
    assert state.loading is True
    assert state.profile is None
    assert state.role == "user"


def test_complete_session_resolves_profile_and_role() -> None:
    provider, _, client = _provider(
        session=session_for("u1"),
        profiles=[{"user_id": "u1", "full_name": "Site Admin", "must_change_password": True}],
        roles=[{"user_id": "u1", "role": "admin"}],
    )
    seen: list[AuthState] = []
    provider.subscribe(seen.append)

    state = provider.start()

    assert state.loading is False
    assert state.is_admin is True
    assert state.must_change_password is True
    assert state.profile["full_name"] == "Site Admin"
    assert seen == [state]
    assert ("eq", ("user_id", "u1"), {}) in client.queries_for("profiles")[0].calls


def test_auth_events_update_state_and_unsubscribe_stops_notifications() -> None:
    provider, auth, _ = _provider(
        session=session_for("u1"),
        profiles=[{"user_id": "u1", "full_name": "Ravi"}],
        roles=[{"user_id": "u1", "role": "user"}],
    )
    seen: list[AuthState] = []
    unsubscribe = provider.subscribe(seen.append)
    provider.start()

    auth.listeners[0]("SIGNED_OUT", None)
    assert provider.state == SIGNED_OUT
    assert seen[-1] == SIGNED_OUT

    unsubscribe()
    auth.listeners[0]("SIGNED_IN", session_for("u1"))
    assert len(seen) == 2


def test_sign_in_failure_is_returned_not_raised() -> None:
    provider, _, _ = _provider(sign_in_error=AuthError("Invalid login credentials", None))

    result = provider.sign_in("ravi@company.com", "wrong")

    assert result.ok is False
    assert isinstance(result.error, AuthenticationError)
    assert result.error.code == "INVALID_CREDENTIALS"
    assert result.error.message == "Invalid login credentials"


def test_sign_out_clears_state() -> None:
    provider, auth, _ = _provider(
        session=session_for("u1"),
        profiles=[{"user_id": "u1", "full_name": "Ravi"}],
        roles=[{"user_id": "u1", "role": "user"}],
    )
    provider.start()

    provider.sign_out()

    assert auth.signed_out is True
    assert provider.state == SIGNED_OUT
    with pytest.raises(AuthenticationError):
        provider.require_user()


def test_change_password_verifies_current_and_clears_flag() -> None:
    provider, auth, client = _provider(
        session=session_for("u1", "ravi@company.com"),
        profiles=[{"user_id": "u1", "full_name": "Ravi", "must_change_password": True}],
        roles=[{"user_id": "u1", "role": "user"}],
    )
    provider.start()

    provider.change_password("temporary1", "brand-new-pass")

    assert auth.sign_ins == [{"email": "ravi@company.com", "password": "temporary1"}]
    assert auth.updates == [{"password": "brand-new-pass"}]
    update_queries = [q for q in client.queries_for("profiles") if q.called("update")]
    assert update_queries[0].called("update") == [("update", ({"must_change_password": False},), {})]


def test_change_password_with_wrong_current_password() -> None:
    provider, auth, _ = _provider(
        session=session_for("u1"),
        profiles=[{"user_id": "u1", "full_name": "Ravi"}],
        roles=[{"user_id": "u1", "role": "user"}],
    )
    provider.start()
    auth.sign_in_error = AuthError("Invalid login credentials", None)

    with pytest.raises(AuthenticationError) as exc_info:
        provider.change_password("wrong", "brand-new-pass")

    assert exc_info.value.code == "PASSWORD_CHANGE_FAILED"
    assert auth.updates == []


def test_sign_out_drops_the_auth_subscription() -> None:
    provider, auth, _ = _provider(
        session=session_for("u1"),
        profiles=[{"user_id": "u1", "full_name": "Ravi"}],
        roles=[{"user_id": "u1", "role": "user"}],
    )
    provider.start()
    assert len(auth.listeners) == 1

    provider.sign_out()

    assert auth.listeners == []
    assert provider._subscription is None

    provider.start()
    assert len(auth.listeners) == 1
