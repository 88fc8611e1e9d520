"""Logging setup for the API process."""
import logging

from .config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def configure_logging(level_name: str | None = None) -> None:
    """Configure root logging once; level comes from ``LOG_LEVEL``."""
    global _configured
    if _configured:
        return

    name = (level_name or settings.LOG_LEVEL or "INFO").upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    _configured = True
