"""Translate pointer drags on a task bar into new date ranges."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from .config import DEFAULT_SETTINGS, TimelineSettings
from .dates import add_days
from .errors import DragStateError
from .models import DragMode


def pixels_to_days(pixel_delta: float, day_width: float, threshold: float = 0) -> int:
    """Bucket a horizontal pointer delta into whole days.

    Deltas within ``threshold`` pixels count as no movement; beyond that the
    delta rounds to the nearest day, halves away from zero.
    """
    if not math.isfinite(pixel_delta):
        raise ValueError(f"Pixel delta must be finite, got {pixel_delta!r}")
    if not math.isfinite(day_width) or day_width <= 0:
        raise ValueError(f"Day width must be positive, got {day_width!r}")
    if abs(pixel_delta) <= threshold:
        return 0
    days = math.floor(abs(pixel_delta) / day_width + 0.5)
    return int(math.copysign(days, pixel_delta)) if days else 0


def translate(start: date, end: date, mode: DragMode, days_delta: int) -> Tuple[date, date]:
    """Apply a drag of ``days_delta`` days and return the new ``(start, end)``.

    Resizes never invert the range: an edge dragged past the other one
    collapses the task to a single day.
    """
    if mode is DragMode.MOVE:
        return add_days(start, days_delta), add_days(end, days_delta)
    if mode is DragMode.RESIZE_LEFT:
        new_start = add_days(start, days_delta)
        if new_start > end:
            return end, end
        return new_start, end
    if mode is DragMode.RESIZE_RIGHT:
        new_end = add_days(end, days_delta)
        if new_end < start:
            return start, start
        return start, new_end
    raise ValueError(f"Unknown drag mode: {mode!r}")


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DragOutcome:
    """Result of releasing the pointer.

    ``dates`` is None when the release resolved to zero days; ``is_click`` is
    set when the pointer never left the threshold on a plain move, which the
    caller treats as "open the task" rather than a reschedule.
    """

    days_delta: int
    dates: Optional[Tuple[date, date]]
    is_click: bool = False

    @property
    def needs_commit(self) -> bool:
        return self.dates is not None


class DragSession:
    """Optimistic drag state for one task bar.

    Pointer moves only change the visual offset. The new dates are computed
    once on release, and the caller persists them while the session sits in
    ``committing``. Cancelling leaves the original dates untouched.
    """

    def __init__(
        self,
        start: date,
        end: date,
        *,
        day_width: Optional[float] = None,
        settings: TimelineSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.start = start
        self.end = end
        self.day_width = float(day_width if day_width is not None else settings.day_width)
        self.threshold = settings.drag_threshold_px
        self.state = DragState.IDLE
        self.mode: Optional[DragMode] = None
        self._origin_x = 0.0
        self._offset_x = 0.0
        self._has_moved = False
        self._pending: Optional[Tuple[date, date]] = None

    @property
    def offset(self) -> float:
        return self._offset_x

    def begin(self, mode: DragMode, pointer_x: float) -> None:
        if self.state not in (DragState.IDLE, DragState.CANCELLED):
            raise DragStateError(f"Cannot start a drag while {self.state.value}")
        self.state = DragState.DRAGGING
        self.mode = mode
        self._origin_x = float(pointer_x)
        self._offset_x = 0.0
        self._has_moved = False

    def update(self, pointer_x: float) -> float:
        """Track the pointer; returns the visual pixel offset."""
        if self.state is not DragState.DRAGGING:
            raise DragStateError(f"Cannot move a drag while {self.state.value}")
        self._offset_x = float(pointer_x) - self._origin_x
        if abs(self._offset_x) > self.threshold:
            self._has_moved = True
        return self._offset_x

    def preview(self) -> Tuple[float, float]:
        """Visual ``(left, width)`` pixel adjustments for the bar being dragged."""
        if self.state is not DragState.DRAGGING:
            return 0.0, 0.0
        if self.mode is DragMode.MOVE:
            return self._offset_x, 0.0
        if self.mode is DragMode.RESIZE_LEFT:
            return self._offset_x, -self._offset_x
        return 0.0, self._offset_x

    def release(self) -> DragOutcome:
        if self.state is not DragState.DRAGGING:
            raise DragStateError(f"Cannot release a drag while {self.state.value}")
        assert self.mode is not None
        days_delta = pixels_to_days(self._offset_x, self.day_width, self.threshold)
        if days_delta == 0:
            is_click = not self._has_moved and self.mode is DragMode.MOVE
            self._reset(DragState.IDLE)
            return DragOutcome(days_delta=0, dates=None, is_click=is_click)

        self._pending = translate(self.start, self.end, self.mode, days_delta)
        self.state = DragState.COMMITTING
        return DragOutcome(days_delta=days_delta, dates=self._pending)

    def cancel(self) -> None:
        if self.state is not DragState.DRAGGING:
            raise DragStateError(f"Cannot cancel a drag while {self.state.value}")
        self._reset(DragState.CANCELLED)

    def finish(self, succeeded: bool) -> Tuple[date, date]:
        """Leave ``committing``; on failure the pre-drag dates are kept."""
        if self.state is not DragState.COMMITTING:
            raise DragStateError(f"Nothing to commit while {self.state.value}")
        if succeeded and self._pending is not None:
            self.start, self.end = self._pending
        self._reset(DragState.IDLE)
        return self.start, self.end

    def _reset(self, state: DragState) -> None:
        self.state = state
        self.mode = None
        self._offset_x = 0.0
        self._has_moved = False
        self._pending = None
