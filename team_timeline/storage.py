"""Record store interface plus CSV snapshot helpers."""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from .dates import parse_date, to_iso
from .errors import RecordStoreError
from .models import Task

logger = logging.getLogger(__name__)

_TASK_HEADER = [
    "id",
    "title",
    "start",
    "end",
    "assignee_ids",
    "project_id",
    "repeat_id",
    "status_id",
    "type_id",
    "priority",
    "tag_ids",
    "description",
]
_LIST_SEPARATOR = ";"


class RecordStore(Protocol):
    """Persistence collaborator the planner writes through."""

    def list_tasks(self) -> List[Task]:
        ...

    def insert_tasks(self, tasks: Sequence[Task]) -> List[Task]:
        """Insert the whole batch or nothing."""
        ...

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        ...

    def delete_tasks(self, ids: Sequence[str]) -> None:
        ...


class InMemoryRecordStore:
    """Dictionary backed store; every call validates before it writes."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: Dict[str, Task] = {}
        for task in tasks:
            self._tasks[task.id] = task

    def list_tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def insert_tasks(self, tasks: Sequence[Task]) -> List[Task]:
        batch = list(tasks)
        seen = set()
        for task in batch:
            if task.id in self._tasks or task.id in seen:
                raise RecordStoreError(f"Task {task.id} already exists")
            seen.add(task.id)
        for task in batch:
            self._tasks[task.id] = task
        logger.debug("Inserted %d tasks", len(batch))
        return batch

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        current = self._tasks.get(task_id)
        if current is None:
            raise RecordStoreError(f"Task {task_id} not found")
        try:
            updated = current.with_fields(fields)
        except (TypeError, ValueError) as exc:
            raise RecordStoreError(f"Rejected update of task {task_id}: {exc}") from exc
        self._tasks[task_id] = updated
        return updated

    def delete_tasks(self, ids: Sequence[str]) -> None:
        missing = [task_id for task_id in ids if task_id not in self._tasks]
        if missing:
            raise RecordStoreError(f"Tasks not found: {', '.join(missing)}")
        for task_id in ids:
            del self._tasks[task_id]
        logger.debug("Deleted %d tasks", len(ids))


def save_tasks(path: Path | str, tasks: Iterable[Task]) -> None:
    """Persist a task snapshot to CSV."""
    csv_path = Path(path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    rows = 0
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(_TASK_HEADER)
        for task in tasks:
            writer.writerow([
                task.id,
                task.title,
                to_iso(task.start),
                to_iso(task.end),
                _LIST_SEPARATOR.join(task.assignee_ids),
                _serialize_optional(task.project_id),
                _serialize_optional(task.repeat_id),
                _serialize_optional(task.status_id),
                _serialize_optional(task.type_id),
                _serialize_optional(task.priority),
                _LIST_SEPARATOR.join(task.tag_ids),
                _serialize_optional(task.description),
            ])
            rows += 1
    logger.info("Saved %d tasks to %s", rows, csv_path)


def load_tasks(path: Path | str) -> List[Task]:
    """Load a task snapshot from CSV."""
    csv_path = Path(path)
    with csv_path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle)
        header = next(reader, None)
        if header != _TASK_HEADER:
            raise ValueError("Invalid timeline CSV: missing task header")

        tasks: List[Task] = []
        for line_number, row in enumerate(reader, start=2):
            if not any(cell.strip() for cell in row):
                continue
            if len(row) < len(_TASK_HEADER):
                raise ValueError(f"Invalid timeline CSV: line {line_number} has {len(row)} columns")
            (
                task_id, title, start_raw, end_raw, assignees_raw, project_id,
                repeat_id, status_id, type_id, priority, tags_raw, description,
            ) = row[:len(_TASK_HEADER)]
            if not task_id.strip():
                raise ValueError(f"Invalid timeline CSV: line {line_number} has no id")
            tasks.append(
                Task(
                    id=task_id.strip(),
                    title=title,
                    start=parse_date(start_raw),
                    end=parse_date(end_raw),
                    assignee_ids=_parse_list(assignees_raw),
                    project_id=_parse_optional(project_id),
                    repeat_id=_parse_optional(repeat_id),
                    status_id=_parse_optional(status_id),
                    type_id=_parse_optional(type_id),
                    priority=_parse_optional(priority),
                    tag_ids=_parse_list(tags_raw),
                    description=_parse_optional(description),
                )
            )

    logger.info("Loaded %d tasks from %s", len(tasks), csv_path)
    return tasks


def _serialize_optional(value: Optional[str]) -> str:
    return "" if value is None else str(value)


def _parse_optional(value: str) -> Optional[str]:
    text = value.strip() if value is not None else ""
    return text or None


def _parse_list(value: str) -> tuple:
    return tuple(item.strip() for item in value.split(_LIST_SEPARATOR) if item.strip())
