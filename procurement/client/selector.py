"""Composition root: pick the backend once from ``API_MODE`` and wire the client."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from supabase import Client, SupabaseException, create_client

from ..config import Settings, get_settings
from ..domain_errors import BackendError
from .auth_provider import AuthProvider, SessionAuthProvider, TokenAuthProvider
from .base import DataBackend
from .facade import DataAccessFacade
from .ledger import StockLedger
from .lifecycle import RequestLifecycle
from .local_backend import LocalApiBackend
from .supabase_backend import SupabaseBackend
from .token_store import FileTokenStore

logger = logging.getLogger(__name__)

LOCAL = "local"
CLOUD = "cloud"


@dataclass
class AppContext:
    mode: str
    backend: DataBackend
    facade: DataAccessFacade
    auth: AuthProvider
    requests: RequestLifecycle
    stock: StockLedger


def _supabase_client(settings: Settings) -> Client:
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise BackendError(
            code="BACKEND_NOT_CONFIGURED",
            message="SUPABASE_URL and SUPABASE_KEY are required when API_MODE=cloud",
        )
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    except SupabaseException as exc:
        logger.exception("Failed to initialise Supabase client")
        raise BackendError(code="BACKEND_NOT_CONFIGURED", message=str(exc)) from exc


def build_context(
    settings: Optional[Settings] = None,
    *,
    http: Any = None,
    token_store: Any = None,
    supabase_client: Optional[Client] = None,
) -> AppContext:
    """Select the backend exactly once; switching requires a new context."""
    settings = settings or get_settings()
    mode = settings.API_MODE.strip().lower()

    if mode == LOCAL:
        store = token_store if token_store is not None else FileTokenStore(settings.TOKEN_STORE_PATH)
        backend: DataBackend = LocalApiBackend(
            settings.API_URL,
            token_store=store,
            http=http,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        auth: AuthProvider = TokenAuthProvider(backend, store)
    elif mode == CLOUD:
        client = supabase_client if supabase_client is not None else _supabase_client(settings)
        backend = SupabaseBackend(client)
        auth = SessionAuthProvider(client)
    else:
        raise ValueError(f"Unknown API_MODE: {settings.API_MODE!r} (expected 'local' or 'cloud')")

    facade = DataAccessFacade(backend)
    logger.info("client.backend_selected mode=%s", mode)
    return AppContext(
        mode=mode,
        backend=backend,
        facade=facade,
        auth=auth,
        requests=RequestLifecycle(facade, auth),
        stock=StockLedger(facade, auth),
    )
