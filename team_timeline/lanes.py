"""Stack overlapping tasks into lanes so bars in one row never collide."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from .config import DEFAULT_SETTINGS, TimelineSettings
from .models import GroupMode, LaneAssignment, Task


@dataclass(frozen=True)
class TimelineRow:
    """Tasks sharing one grouping key (assignee or project); None is unassigned."""

    key: Optional[str]
    tasks: tuple


@dataclass(frozen=True)
class RowLayout:
    key: Optional[str]
    assignments: tuple
    lane_count: int
    height: int


def _lane_order(task: Task):
    return (task.start, task.end, task.id)


def pack_lanes(tasks: Iterable[Task]) -> List[LaneAssignment]:
    """Assign every task the lowest lane whose previous occupant ended earlier.

    Tasks are visited by start date (then end date, then id) so the result
    doesn't depend on input order. Greedy first-fit over that order is optimal
    for intervals: the lane count equals the largest number of tasks active on
    any single day.
    """
    lane_ends: List[date] = []
    assignments: List[LaneAssignment] = []
    for task in sorted(tasks, key=_lane_order):
        for index, lane_end in enumerate(lane_ends):
            if lane_end < task.start:
                lane_ends[index] = task.end
                assignments.append(LaneAssignment(task=task, lane=index))
                break
        else:
            lane_ends.append(task.end)
            assignments.append(LaneAssignment(task=task, lane=len(lane_ends) - 1))
    return assignments


def lane_count(assignments: Sequence[LaneAssignment]) -> int:
    if not assignments:
        return 0
    return max(item.lane for item in assignments) + 1


def row_height(lanes: int, settings: TimelineSettings = DEFAULT_SETTINGS) -> int:
    """Pixel height of a row holding ``lanes`` stacked bars."""
    stacked = settings.row_padding + lanes * (settings.task_height + settings.task_gap)
    return max(settings.min_row_height, stacked)


def group_rows(tasks: Iterable[Task], mode: GroupMode) -> List[TimelineRow]:
    """Split tasks into rows keyed by assignee or project.

    A task with several assignees shows up in each of their rows. Rows are
    ordered by first appearance with the unassigned row last.
    """
    buckets: Dict[Optional[str], List[Task]] = {}
    for task in tasks:
        if mode is GroupMode.ASSIGNEE:
            keys = list(dict.fromkeys(task.assignee_ids)) or [None]
        else:
            keys = [task.project_id]
        for key in keys:
            buckets.setdefault(key, []).append(task)

    ordered = [key for key in buckets if key is not None]
    if None in buckets:
        ordered.append(None)
    return [TimelineRow(key=key, tasks=tuple(buckets[key])) for key in ordered]


def layout_rows(
    tasks: Iterable[Task],
    mode: GroupMode,
    settings: TimelineSettings = DEFAULT_SETTINGS,
) -> List[RowLayout]:
    layouts: List[RowLayout] = []
    for row in group_rows(tasks, mode):
        assignments = pack_lanes(row.tasks)
        lanes = lane_count(assignments)
        layouts.append(
            RowLayout(
                key=row.key,
                assignments=tuple(assignments),
                lane_count=lanes,
                height=row_height(max(1, lanes), settings),
            )
        )
    return layouts
