"""Dashboard summary counts over a (role-scoped) request collection."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

TOTAL_LABEL = "Total Requests"
PENDING_LABEL = "Pending Approval"
APPROVED_LABEL = "Approved"
URGENT_LABEL = "Urgent"

_LAYOUT: tuple[tuple[str, str, bool], ...] = (
    (TOTAL_LABEL, "up", True),
    (PENDING_LABEL, "neutral", False),
    (APPROVED_LABEL, "up", True),
    (URGENT_LABEL, "down", True),
)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _metric(label: str, value: int) -> dict[str, Any]:
    for layout_label, trend, has_change in _LAYOUT:
        if layout_label == label:
            entry: dict[str, Any] = {"label": label, "value": value, "trend": trend}
            if has_change:
                entry["change"] = 0
            return entry
    raise KeyError(label)


def count_requests(requests: Iterable[Any]) -> dict[str, int]:
    counts = {TOTAL_LABEL: 0, PENDING_LABEL: 0, APPROVED_LABEL: 0, URGENT_LABEL: 0}
    for request in requests:
        counts[TOTAL_LABEL] += 1
        status = _field(request, "status")
        if status == "submitted":
            counts[PENDING_LABEL] += 1
        elif status == "approved":
            counts[APPROVED_LABEL] += 1
        if _field(request, "priority") == "urgent":
            counts[URGENT_LABEL] += 1
    return counts


def build_dashboard_metrics(requests: Iterable[Any]) -> list[dict[str, Any]]:
    counts = count_requests(requests)
    return [_metric(label, counts[label]) for label, _, _ in _LAYOUT]


def normalize_metrics(raw: Iterable[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    """Fill in any missing label with a zero count, keeping the fixed order."""
    values: dict[str, int] = {}
    for entry in raw or []:
        label = entry.get("label")
        try:
            values[label] = int(entry.get("value") or 0)
        except (TypeError, ValueError):
            values[label] = 0
    return [_metric(label, values.get(label, 0)) for label, _, _ in _LAYOUT]
