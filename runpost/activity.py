from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .errors import ActivityNotFound


def _first_present(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _optional_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class Activity:
    id: int
    category: str
    start_time: str
    distance: float | None
    duration: int
    calories: int

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Activity":
        activity_id = _first_present(payload, "logId", "id")
        if activity_id is None:
            raise ValueError("Activity payload is missing logId.")
        return cls(
            id=int(activity_id),
            category=str(_first_present(payload, "activityName", "category") or ""),
            start_time=str(payload.get("startTime") or ""),
            distance=_optional_float(payload.get("distance")),
            duration=int(payload.get("duration") or 0),
            calories=int(payload.get("calories") or 0),
        )


def select_latest(activities: Iterable[Activity], category: str) -> Activity:
    # Newest first is assumed; the list is not re-sorted here.
    selected = next((activity for activity in activities if activity.category == category), None)
    if selected is None:
        raise ActivityNotFound(category)
    return selected
