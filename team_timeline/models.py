"""Data models shared across the timeline application."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Frequency(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Ends(str, Enum):
    NEVER = "never"
    ON = "on"
    AFTER = "after"


class Scope(str, Enum):
    """Breadth of an edit or delete on a member of a series."""

    SINGLE = "single"
    FOLLOWING = "following"
    ALL = "all"


class DragMode(str, Enum):
    MOVE = "move"
    RESIZE_LEFT = "resize-left"
    RESIZE_RIGHT = "resize-right"


class GroupMode(str, Enum):
    ASSIGNEE = "assignee"
    PROJECT = "project"


# Fields copied from a seed task onto generated repeats.
PAYLOAD_FIELDS = (
    "title",
    "assignee_ids",
    "project_id",
    "status_id",
    "type_id",
    "priority",
    "tag_ids",
    "description",
)
DATE_FIELDS = ("start", "end")


@dataclass(frozen=True)
class Task:
    """Immutable snapshot of a single scheduled task."""

    id: str
    title: str
    start: date
    end: date
    assignee_ids: Tuple[str, ...] = ()
    project_id: Optional[str] = None
    repeat_id: Optional[str] = None
    status_id: Optional[str] = None
    type_id: Optional[str] = None
    priority: Optional[str] = None
    tag_ids: Tuple[str, ...] = ()
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Task {self.id!r} starts after it ends ({self.start} > {self.end})")
        # Accept lists from callers but keep the snapshot hashable.
        object.__setattr__(self, "assignee_ids", tuple(self.assignee_ids))
        object.__setattr__(self, "tag_ids", tuple(self.tag_ids))

    def duration_days(self) -> int:
        """Inclusive number of calendar days the task covers."""
        return (self.end - self.start).days + 1

    def payload(self) -> Dict[str, Any]:
        """Return the descriptive fields that travel with copies of the task."""
        return {name: getattr(self, name) for name in PAYLOAD_FIELDS}

    def with_fields(self, fields: Dict[str, Any]) -> "Task":
        return replace(self, **fields)


@dataclass(frozen=True)
class RecurrenceRule:
    """Transient repeat request as submitted by the repeat form."""

    frequency: Frequency
    ends: Ends = Ends.NEVER
    until: Optional[date] = None
    count: Optional[int] = None


@dataclass(frozen=True)
class LaneAssignment:
    task: Task
    lane: int


@dataclass(frozen=True)
class TaskUpdate:
    task_id: str
    fields: Dict[str, Any]


@dataclass
class MutationPlan:
    """Store instructions produced by the scope resolver."""

    updates: List[TaskUpdate] = field(default_factory=list)
    delete_ids: List[str] = field(default_factory=list)
