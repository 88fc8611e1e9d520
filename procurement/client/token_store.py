"""Durable storage for the local backend's bearer token."""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class MemoryTokenStore:
    """Process-local store (tests, short-lived scripts)."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Keeps the token in a small JSON file so a session survives restarts."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._cached: Optional[str] = None
        self._loaded = False

    def load(self) -> Optional[str]:
        with self._lock:
            if self._loaded:
                return self._cached
            self._loaded = True
            try:
                payload = json.loads(self.path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                return None
            except (OSError, ValueError):
                logger.warning("Ignoring unreadable token file %s", self.path)
                return None
            token = payload.get("token") if isinstance(payload, dict) else None
            self._cached = token if isinstance(token, str) and token else None
            return self._cached

    def save(self, token: str) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            # Owner-only from creation.
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps({"token": token}))
            os.replace(tmp, self.path)
            self._cached = token
            self._loaded = True

    def clear(self) -> None:
        with self._lock:
            self._cached = None
            self._loaded = True
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
