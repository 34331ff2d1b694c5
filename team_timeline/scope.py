"""Decide which members of a series an edit or delete applies to."""
from __future__ import annotations

from dataclasses import fields as dataclass_fields
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Sequence

from .models import DATE_FIELDS, MutationPlan, Scope, Task, TaskUpdate

_EDITABLE_FIELDS = frozenset(item.name for item in dataclass_fields(Task)) - {"id"}


def _series_order(task: Task):
    return (task.start, task.id)


def requires_scope_prompt(task: Task) -> bool:
    """Only tasks that belong to a series ask which siblings to touch."""
    return task.repeat_id is not None


def series_of(target: Task, tasks: Iterable[Task]) -> List[Task]:
    """Every task sharing the target's repeat id, ordered by start date."""
    if target.repeat_id is None:
        return [target]
    members = [task for task in tasks if task.repeat_id == target.repeat_id]
    if all(task.id != target.id for task in members):
        members.append(target)
    return sorted(members, key=_series_order)


def has_following(target: Task, tasks: Iterable[Task]) -> bool:
    if target.repeat_id is None:
        return False
    return any(
        task.repeat_id == target.repeat_id and task.start > target.start for task in tasks
    )


def resolve_scope(target: Task, series: Sequence[Task], scope: Scope) -> List[str]:
    """Return the ids an edit or delete on ``target`` must reach.

    ``following`` covers the target and strictly later siblings; earlier
    repeats are never included.
    """
    if target.repeat_id is None or scope is Scope.SINGLE:
        return [target.id]

    members = [task for task in series if task.repeat_id == target.repeat_id and task.id != target.id]
    if scope is Scope.FOLLOWING:
        members = [task for task in members if task.start > target.start]
    elif scope is not Scope.ALL:
        raise ValueError(f"Unknown scope: {scope!r}")

    ordered = sorted(members + [target], key=_series_order)
    return [task.id for task in ordered]


def plan_update(
    target: Task,
    tasks: Iterable[Task],
    changes: Dict[str, Any],
    scope: Scope,
) -> MutationPlan:
    """Build the updates for an edit on ``target`` applied at ``scope``.

    Descriptive fields are copied as-is. A date change reaches siblings as the
    same day shift the target received on each edge.
    """
    unknown = sorted(set(changes) - _EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(unknown)}")

    new_start = changes.get("start", target.start)
    new_end = changes.get("end", target.end)
    if new_start > new_end:
        raise ValueError(f"Start {new_start} is after end {new_end}")

    series = series_of(target, tasks)
    by_id = {task.id: task for task in series}
    start_shift = new_start - target.start
    end_shift = new_end - target.end
    shared = {name: value for name, value in changes.items() if name not in DATE_FIELDS}

    plan = MutationPlan()
    for task_id in resolve_scope(target, series, scope):
        if task_id == target.id:
            plan.updates.append(TaskUpdate(task_id, dict(changes)))
            continue
        update = dict(shared)
        if start_shift or end_shift:
            update.update(_shift_dates(by_id[task_id], start_shift, end_shift))
        if update:
            plan.updates.append(TaskUpdate(task_id, update))
    return plan


def _shift_dates(task: Task, start_shift: timedelta, end_shift: timedelta) -> Dict[str, Any]:
    start = task.start + start_shift
    end = task.end + end_shift
    if end < start:
        end = start
    return {"start": start, "end": end}


def plan_delete(target: Task, tasks: Iterable[Task], scope: Scope) -> MutationPlan:
    series = series_of(target, tasks)
    return MutationPlan(delete_ids=resolve_scope(target, series, scope))
