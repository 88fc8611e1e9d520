"""Authentication state for the client, one variant per backend.

Both variants expose the same contract: ``start``, ``sign_in``, ``sign_out``,
``refresh_profile``, ``change_password`` and an observable :class:`AuthState`.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

from supabase import AuthError, Client, PostgrestAPIError

from ..domain_errors import AuthenticationError, BackendError, DomainError
from .local_backend import LocalApiBackend

logger = logging.getLogger(__name__)

Listener = Callable[["AuthState"], None]


@dataclass(frozen=True)
class AuthState:
    user: Optional[dict[str, Any]] = None
    profile: Optional[dict[str, Any]] = None
    role: Optional[str] = None
    must_change_password: bool = False
    loading: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def user_id(self) -> Optional[str]:
        return str(self.user["id"]) if self.user and self.user.get("id") else None


@dataclass(frozen=True)
class SignInResult:
    error: Optional[DomainError] = None
    state: Optional[AuthState] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None


SIGNED_OUT = AuthState(loading=False)


class AuthProvider(ABC):
    def __init__(self) -> None:
        self._state = AuthState()
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> AuthState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: AuthState) -> AuthState:
        with self._lock:
            self._state = state
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)
        return state

    def require_user(self) -> AuthState:
        state = self._state
        if not state.user_id:
            raise AuthenticationError(message="Please sign in first")
        return state

    @abstractmethod
    def start(self) -> AuthState: ...

    @abstractmethod
    def sign_in(self, email: str, password: str) -> SignInResult: ...

    @abstractmethod
    def sign_out(self) -> None: ...

    @abstractmethod
    def refresh_profile(self) -> AuthState: ...

    @abstractmethod
    def change_password(self, current_password: str, new_password: str) -> AuthState: ...


def _state_from_local_user(user: dict[str, Any]) -> AuthState:
    return AuthState(
        user={"id": user["id"], "email": user.get("email")},
        profile={
            "id": user["id"],
            "user_id": user["id"],
            "full_name": user.get("full_name") or "",
            "designation": user.get("designation") or "",
            "phone": user.get("phone") or "",
        },
        role=user.get("role"),
        must_change_password=bool(user.get("must_change_password")),
        loading=False,
    )


class TokenAuthProvider(AuthProvider):
    """Bearer-token auth against the local REST server."""

    def __init__(self, backend: LocalApiBackend, token_store) -> None:
        super().__init__()
        self.backend = backend
        self.token_store = token_store

    def start(self) -> AuthState:
        if not self.token_store.load():
            return self._set_state(SIGNED_OUT)
        try:
            user = self.backend.me()
        except AuthenticationError:
            logger.info("auth.stored_token_rejected; clearing it")
            self.token_store.clear()
            return self._set_state(SIGNED_OUT)
        except DomainError as exc:
            # Server unreachable or failing: the token may still be good, keep it for the next start.
            logger.warning("auth.stored_token_unverified code=%s", exc.code)
            return self._set_state(SIGNED_OUT)
        return self._set_state(_state_from_local_user(user))

    def sign_in(self, email: str, password: str) -> SignInResult:
        try:
            payload = self.backend.login(email, password)
        except DomainError as exc:
            return SignInResult(error=exc)
        self.token_store.save(payload["token"])
        state = self._set_state(_state_from_local_user(payload["user"]))
        return SignInResult(state=state)

    def sign_out(self) -> None:
        if self.token_store.load():
            try:
                self.backend.logout()
            except DomainError as exc:
                # The token is discarded locally either way.
                logger.warning("auth.logout_failed code=%s", exc.code)
        self.token_store.clear()
        self._set_state(SIGNED_OUT)

    def refresh_profile(self) -> AuthState:
        return self._set_state(_state_from_local_user(self.backend.me()))

    def change_password(self, current_password: str, new_password: str) -> AuthState:
        payload = self.backend.change_password(current_password, new_password)
        self.token_store.save(payload["token"])
        return self._set_state(_state_from_local_user(payload["user"]))


class SessionAuthProvider(AuthProvider):
    """Supabase session auth; profile and role come from their own tables."""

    def __init__(self, client: Client) -> None:
        super().__init__()
        self.client = client
        self._subscription = None

    def start(self) -> AuthState:
        if self._subscription is None:
            self._subscription = self.client.auth.on_auth_state_change(self._on_auth_change)
        return self._apply_session(self.client.auth.get_session())

    def _on_auth_change(self, event: str, session: Any) -> None:
        logger.debug("auth.session_event event=%s", event)
        try:
            self._apply_session(session)
        except DomainError:
            logger.exception("auth.session_refresh_failed event=%s", event)

    def _fetch_single(self, table: str, user_id: str) -> Optional[dict[str, Any]]:
        try:
            rows = self.client.table(table).select("*").eq("user_id", user_id).limit(1).execute().data
        except PostgrestAPIError as exc:
            raise BackendError(code="PROFILE_LOAD_FAILED", message=getattr(exc, "message", None) or str(exc)) from exc
        return rows[0] if rows else None

    def _apply_session(self, session: Any) -> AuthState:
        user = getattr(session, "user", None) if session is not None else None
        if user is None:
            return self._set_state(SIGNED_OUT)

        user_id = str(user.id)
        base = AuthState(user={"id": user_id, "email": getattr(user, "email", None)}, loading=True)
        profile = self._fetch_single("profiles", user_id)
        role_row = self._fetch_single("user_roles", user_id)
        if profile is None or role_row is None:
            # Signed in but the profile or role row is not there yet.
            logger.warning("auth.profile_incomplete user=%s profile=%s role=%s", user_id, profile is not None, role_row is not None)
            return self._set_state(replace(base, profile=profile, role=(role_row or {}).get("role")))

        return self._set_state(
            replace(
                base,
                profile=profile,
                role=role_row.get("role"),
                must_change_password=bool(profile.get("must_change_password")),
                loading=False,
            )
        )

    def sign_in(self, email: str, password: str) -> SignInResult:
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            return SignInResult(error=AuthenticationError(code="INVALID_CREDENTIALS", message=getattr(exc, "message", None) or str(exc)))
        try:
            state = self._apply_session(response.session)
        except DomainError as exc:
            return SignInResult(error=exc)
        return SignInResult(state=state)

    def sign_out(self) -> None:
        try:
            self.client.auth.sign_out()
        except AuthError as exc:
            logger.warning("auth.sign_out_failed message=%s", getattr(exc, "message", exc))
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._set_state(SIGNED_OUT)

    def refresh_profile(self) -> AuthState:
        return self._apply_session(self.client.auth.get_session())

    def change_password(self, current_password: str, new_password: str) -> AuthState:
        state = self.require_user()
        try:
            # Current password must verify before the update.
            self.client.auth.sign_in_with_password({"email": state.user.get("email"), "password": current_password})
            self.client.auth.update_user({"password": new_password})
        except AuthError as exc:
            raise AuthenticationError(code="PASSWORD_CHANGE_FAILED", message=getattr(exc, "message", None) or str(exc)) from exc
        try:
            self.client.table("profiles").update({"must_change_password": False}).eq("user_id", state.user_id).execute()
        except PostgrestAPIError as exc:
            raise BackendError(code="PROFILE_UPDATE_FAILED", message=getattr(exc, "message", None) or str(exc)) from exc
        return self.refresh_profile()
