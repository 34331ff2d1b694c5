from datetime import date
from pathlib import Path

import pytest

from team_timeline.errors import RecordStoreError
from team_timeline.models import Task
from team_timeline.storage import InMemoryRecordStore, load_tasks, save_tasks


def _task(task_id: str, start: str, end: str, **extra) -> Task:
    return Task(id=task_id, title=task_id.upper(), start=date.fromisoformat(start), end=date.fromisoformat(end), **extra)


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "timeline.csv"
    tasks = [
        _task("a", "2024-01-01", "2024-01-03", assignee_ids=("ann", "bob"), project_id="web", tag_ids=("ui",)),
        _task("b", "2024-01-08", "2024-01-08", repeat_id="r1", priority="high", description="Weekly, with notes"),
    ]

    save_tasks(path, tasks)

    assert load_tasks(path) == tasks


def test_save_writes_blank_cells_for_missing_fields(tmp_path: Path) -> None:
    path = tmp_path / "plain.csv"
    save_tasks(path, [_task("a", "2024-01-01", "2024-01-02")])

    text = path.read_text().splitlines()
    assert text[0] == "id,title,start,end,assignee_ids,project_id,repeat_id,status_id,type_id,priority,tag_ids,description"
    assert text[1] == "a,A,2024-01-01,2024-01-02,,,,,,,,"


def test_load_rejects_bad_files(tmp_path: Path) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("name,start,end\nx,1,2\n")
    with pytest.raises(ValueError):
        load_tasks(path)

    save_tasks(path, [])
    with path.open("a") as handle:
        handle.write("a,A,2024-01-05,2024-01-01,,,,,,,,\n")
    with pytest.raises(ValueError):
        load_tasks(path)


def test_insert_batch_is_all_or_nothing() -> None:
    store = InMemoryRecordStore([_task("a", "2024-01-01", "2024-01-01")])
    with pytest.raises(RecordStoreError):
        store.insert_tasks([_task("b", "2024-01-02", "2024-01-02"), _task("a", "2024-01-03", "2024-01-03")])
    assert [task.id for task in store.list_tasks()] == ["a"]


def test_update_and_delete() -> None:
    store = InMemoryRecordStore([_task("a", "2024-01-01", "2024-01-02"), _task("b", "2024-01-05", "2024-01-06")])

    updated = store.update_task("a", {"end": date(2024, 1, 4), "title": "Longer"})
    assert (updated.end, updated.title) == (date(2024, 1, 4), "Longer")

    with pytest.raises(RecordStoreError):
        store.update_task("a", {"start": date(2024, 2, 1)})
    with pytest.raises(RecordStoreError):
        store.update_task("missing", {"title": "x"})
    with pytest.raises(RecordStoreError):
        store.delete_tasks(["b", "missing"])
    assert len(store.list_tasks()) == 2

    store.delete_tasks(["b"])
    assert [task.id for task in store.list_tasks()] == ["a"]
