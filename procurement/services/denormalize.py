"""Attach project/requester display fields and item counts to request rows.

Shared by the REST server and the client facade so both backends return the
same shape.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Mapping

UNKNOWN_PROJECT = "Unknown Project"
UNKNOWN_USER = "Unknown"


def _key(value: Any) -> str | None:
    return str(value) if value is not None else None


def index_projects(projects: Iterable[Mapping[str, Any]]) -> dict[str, Mapping[str, Any]]:
    return {_key(p.get("id")): p for p in projects if p.get("id") is not None}


def index_profiles(profiles: Iterable[Mapping[str, Any]]) -> dict[str, Mapping[str, Any]]:
    """Profiles are keyed by ``user_id`` when present (cloud), else by ``id``."""
    indexed: dict[str, Mapping[str, Any]] = {}
    for profile in profiles:
        user_id = profile.get("user_id") or profile.get("id")
        if user_id is not None:
            indexed[_key(user_id)] = profile
    return indexed


def count_items(item_rows: Iterable[Mapping[str, Any]]) -> Counter:
    return Counter(_key(row.get("request_id")) for row in item_rows)


def enrich_request(
    request: Mapping[str, Any],
    *,
    projects: Mapping[str, Mapping[str, Any]],
    profiles: Mapping[str, Mapping[str, Any]],
    item_counts: Mapping[str, int],
) -> dict[str, Any]:
    project = projects.get(_key(request.get("project_id"))) or {}
    profile = profiles.get(_key(request.get("requester_id"))) or {}
    return {
        **request,
        "project_name": project.get("name") or UNKNOWN_PROJECT,
        "requester_name": profile.get("full_name") or UNKNOWN_USER,
        "requester_designation": profile.get("designation") or "",
        "items_count": int(item_counts.get(_key(request.get("id")), 0)),
    }


def enrich_requests(
    requests: Iterable[Mapping[str, Any]],
    *,
    projects: Iterable[Mapping[str, Any]],
    profiles: Iterable[Mapping[str, Any]],
    item_rows: Iterable[Mapping[str, Any]] = (),
    item_counts: Mapping[Any, int] | None = None,
) -> list[dict[str, Any]]:
    """Pass either raw ``item_rows`` or precomputed ``item_counts`` keyed by request id."""
    project_map = index_projects(projects)
    profile_map = index_profiles(profiles)
    if item_counts is not None:
        counts: Mapping[str, int] = {_key(k): v for k, v in item_counts.items()}
    else:
        counts = count_items(item_rows)
    return [
        enrich_request(request, projects=project_map, profiles=profile_map, item_counts=counts)
        for request in requests
    ]
