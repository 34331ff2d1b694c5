"""Tunable layout and scheduling settings."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class TimelineSettings:
    day_width: int = 48  # pixels per day in week view
    day_view_width: int = 120  # pixels per day in day view
    drag_threshold_px: int = 3
    # None keeps the "never" horizon at one calendar year from the seed start.
    never_horizon_days: Optional[int] = None
    max_occurrences: int = 500
    task_height: int = 28
    task_gap: int = 4
    min_row_height: int = 56
    row_padding: int = 16

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "TimelineSettings":
        """Build settings from a plain mapping, rejecting unknown or invalid keys."""
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown timeline settings: {', '.join(unknown)}")

        overrides = {}
        for name, raw in values.items():
            if raw is None and name == "never_horizon_days":
                overrides[name] = None
                continue
            value = _as_int(name, raw)
            if value <= 0 and name != "drag_threshold_px":
                raise ValueError(f"Setting {name} must be positive, got {raw!r}")
            if value < 0:
                raise ValueError(f"Setting {name} must not be negative, got {raw!r}")
            overrides[name] = value
        return replace(cls(), **overrides)


def _as_int(name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"Setting {name} must be a whole number, got {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw)
    raise ValueError(f"Setting {name} must be a whole number, got {raw!r}")


DEFAULT_SETTINGS = TimelineSettings()
