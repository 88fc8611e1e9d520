"""Project and category rules."""

from __future__ import annotations

import re

from ..domain_errors import ValidationError

PROJECT_STATUSES: tuple[str, ...] = ("active", "completed")

_WHITESPACE = re.compile(r"\s+")


def category_slug(name: str) -> str:
    """``"Ready Mix Concrete"`` -> ``"ready_mix_concrete"``."""
    return _WHITESPACE.sub("_", (name or "").strip().lower())


def validate_category_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(code="CATEGORY_NAME_REQUIRED", message="Category name is required")
    return cleaned


def validate_project_fields(*, name: str | None, location: str | None) -> tuple[str, str]:
    clean_name = (name or "").strip()
    clean_location = (location or "").strip()
    if not clean_name or not clean_location:
        raise ValidationError(
            code="PROJECT_FIELDS_REQUIRED",
            message="Project name and location are required",
        )
    return clean_name, clean_location


def validate_project_status(status: str | None) -> str | None:
    if status is None:
        return None
    value = status.strip().lower()
    if value not in PROJECT_STATUSES:
        raise ValidationError(
            code="PROJECT_INVALID_STATUS",
            message="Project status must be 'active' or 'completed'",
        )
    return value
