"""Application state: the task snapshot and the operations that change it."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import DEFAULT_SETTINGS, TimelineSettings
from .dates import add_days
from .drag import translate
from .errors import RecordStoreError
from .lanes import RowLayout, layout_rows
from .models import DragMode, GroupMode, MutationPlan, RecurrenceRule, Scope, Task
from .recurrence import generate, new_id, validate_rule
from .scope import plan_delete, plan_update, series_of
from .storage import RecordStore

logger = logging.getLogger(__name__)

LayoutListener = Callable[[List[RowLayout]], None]


class Planner:
    """Owns the task snapshot shown on the timeline.

    Engine functions only ever see the immutable snapshot; every change goes
    through the record store first and the snapshot is rebuilt from what the
    store returns. Store errors propagate unchanged and leave the snapshot
    as it was.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        group_mode: GroupMode = GroupMode.ASSIGNEE,
        settings: TimelineSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.store = store
        self.settings = settings
        self._group_mode = group_mode
        self._tasks: Tuple[Task, ...] = tuple(store.list_tasks())
        self._listeners: List[LayoutListener] = []

    # --- Snapshot ------------------------------------------------------------

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return self._tasks

    @property
    def group_mode(self) -> GroupMode:
        return self._group_mode

    def set_group_mode(self, mode: GroupMode) -> None:
        if mode is self._group_mode:
            return
        self._group_mode = mode
        self._notify()

    def get(self, task_id: str) -> Task:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise KeyError(task_id)

    def refresh(self) -> None:
        """Reload the snapshot from the store."""
        self._tasks = tuple(self.store.list_tasks())
        self._notify()

    def replace_all(self, tasks: Sequence[Task]) -> None:
        """Swap the whole task list, e.g. after opening a file.

        Duplicate ids are rejected before the store is touched.
        """
        incoming = list(tasks)
        seen = set()
        for task in incoming:
            if task.id in seen:
                raise RecordStoreError(f"Task {task.id} appears more than once")
            seen.add(task.id)
        try:
            existing = [task.id for task in self.store.list_tasks()]
            if existing:
                self.store.delete_tasks(existing)
            self.store.insert_tasks(incoming)
        finally:
            self.refresh()

    def layout(self, mode: Optional[GroupMode] = None) -> List[RowLayout]:
        rows = layout_rows(self._tasks, mode or self._group_mode, self.settings)
        logger.debug("Laid out %d tasks into %d rows", len(self._tasks), len(rows))
        return rows

    def subscribe(self, listener: LayoutListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh layout after each committed change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        rows = self.layout()
        for listener in list(self._listeners):
            listener(rows)

    def _store_updated(self, updated: Sequence[Task]) -> None:
        by_id = {task.id: task for task in updated}
        self._tasks = tuple(by_id.pop(task.id, task) for task in self._tasks) + tuple(by_id.values())

    def _store_deleted(self, ids: Sequence[str]) -> None:
        removed = set(ids)
        self._tasks = tuple(task for task in self._tasks if task.id not in removed)

    # --- Operations ----------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        inserted = self.store.insert_tasks([task])
        self._store_updated(inserted)
        logger.info("Added task %s", task.id)
        self._notify()
        return inserted[0]

    def move_task(self, task_id: str, start: date, end: date) -> Task:
        updated = self.store.update_task(task_id, {"start": start, "end": end})
        self._store_updated([updated])
        logger.info("Moved task %s to %s..%s", task_id, start, end)
        self._notify()
        return updated

    def apply_drag(self, task_id: str, mode: DragMode, days_delta: int) -> Optional[Task]:
        """Commit a released drag; zero days is not a reschedule."""
        if days_delta == 0:
            return None
        task = self.get(task_id)
        start, end = translate(task.start, task.end, mode, days_delta)
        return self.move_task(task_id, start, end)

    def update_task(self, task_id: str, changes: Dict[str, Any], scope: Scope = Scope.SINGLE) -> List[Task]:
        target = self.get(task_id)
        plan = plan_update(target, self._tasks, changes, scope)
        return self._apply(plan, f"update of {task_id} ({scope.value})")

    def delete_task(self, task_id: str, scope: Scope = Scope.SINGLE) -> List[str]:
        target = self.get(task_id)
        plan = plan_delete(target, self._tasks, scope)
        self._apply(plan, f"delete of {task_id} ({scope.value})")
        return list(plan.delete_ids)

    def _apply(self, plan: MutationPlan, label: str) -> List[Task]:
        updated: List[Task] = []
        try:
            for update in plan.updates:
                updated.append(self.store.update_task(update.task_id, update.fields))
            if plan.delete_ids:
                self.store.delete_tasks(plan.delete_ids)
        except Exception:
            logger.warning("Record store rejected %s", label)
            # Keep whatever the store did accept in the snapshot.
            self._store_updated(updated)
            self._notify()
            raise
        self._store_updated(updated)
        self._store_deleted(plan.delete_ids)
        logger.info("Applied %s: %d updated, %d deleted", label, len(updated), len(plan.delete_ids))
        self._notify()
        return updated

    def duplicate_task(self, task_id: str) -> Task:
        """Copy a task into the slot right after it ends, outside any series."""
        task = self.get(task_id)
        start = add_days(task.end, 1)
        copy = replace(
            task,
            id=new_id(),
            start=start,
            end=add_days(start, task.duration_days() - 1),
            repeat_id=None,
        )
        return self.add_task(copy)

    def create_repeats(self, task_id: str, rule: RecurrenceRule) -> List[Task]:
        """Generate repeats of a task and insert them as one batch.

        A task that isn't part of a series yet is linked to the new series
        first. Returns the created tasks.
        """
        validate_rule(rule)
        seed = self.get(task_id)
        series_id = seed.repeat_id or new_id()
        existing = [task.start for task in series_of(seed, self._tasks)]
        batch = generate(
            seed,
            rule,
            repeat_id=series_id,
            existing_starts=existing,
            settings=self.settings,
        )

        linked_seed = seed.repeat_id is None
        if linked_seed:
            linked = self.store.update_task(seed.id, {"repeat_id": series_id})
            self._store_updated([linked])

        try:
            created = self.store.insert_tasks(batch)
        except Exception:
            logger.warning("Record store rejected %d repeats of task %s", len(batch), task_id)
            try:
                if linked_seed:
                    self.store.update_task(seed.id, {"repeat_id": None})
            finally:
                self.refresh()
            raise
        self._store_updated(created)
        logger.info("Created %d repeats of task %s", len(created), task_id)
        self._notify()
        return created
