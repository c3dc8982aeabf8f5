import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.models import Recurrence, RecurrenceType, Task, TaskStatus
from deskpad.recurrence import add_months, next_due_date, next_occurrence
from deskpad.store import TaskStore


@pytest.mark.parametrize("start,months,expected", [
    (date(2024, 1, 31), 1, date(2024, 2, 29)),
    (date(2023, 1, 31), 1, date(2023, 2, 28)),
    (date(2024, 3, 31), 1, date(2024, 4, 30)),
    (date(2024, 11, 15), 3, date(2025, 2, 15)),
    (date(2024, 2, 29), 12, date(2025, 2, 28)),
])
def test_add_months_clamps_day(start, months, expected):
    assert add_months(start, months) == expected


def test_next_due_date_units():
    base = date(2024, 1, 1)
    assert next_due_date(base, Recurrence(RecurrenceType.DAILY, 2)) == date(2024, 1, 3)
    assert next_due_date(base, Recurrence(RecurrenceType.WEEKLY, 1)) == date(2024, 1, 8)
    assert next_due_date(base, Recurrence(RecurrenceType.MONTHLY, 1)) == date(2024, 2, 1)
    assert next_due_date(date(2024, 2, 29), Recurrence(RecurrenceType.YEARLY, 1)) == date(2025, 2, 28)
    assert next_due_date(date(2024, 2, 29), Recurrence(RecurrenceType.YEARLY, 4)) == date(2028, 2, 29)


def test_next_due_date_rejects_zero_interval():
    with pytest.raises(ValueError):
        next_due_date(date(2024, 1, 1), Recurrence(RecurrenceType.DAILY, 0))


def test_next_occurrence_copies_series_fields():
    now = datetime(2024, 1, 1, 9, 0)
    task = Task(
        text="Water plants",
        tags=["home"],
        status=TaskStatus.DONE,
        due_date=date(2024, 1, 1),
        is_recurring=True,
        recurrence=Recurrence(RecurrenceType.DAILY, 2),
    )

    spawned = next_occurrence(task, now)

    assert spawned.id != task.id
    assert spawned.text == "Water plants"
    assert spawned.tags == ["home"] and spawned.tags is not task.tags
    assert spawned.status == TaskStatus.TODO
    assert spawned.due_date == date(2024, 1, 3)
    assert spawned.created_at == now
    assert spawned.recurrence == task.recurrence and spawned.recurrence is not task.recurrence


def test_next_occurrence_without_due_date_uses_completion_day():
    task = Task(text="Stretch", is_recurring=True, recurrence=Recurrence(RecurrenceType.WEEKLY, 1),
                completed_at=datetime(2024, 5, 6, 18, 30))
    assert next_occurrence(task, datetime(2024, 5, 7)).due_date == date(2024, 5, 13)


def test_next_occurrence_respects_end_date():
    task = Task(
        text="Daily standup",
        due_date=date(2024, 1, 1),
        is_recurring=True,
        recurrence=Recurrence(RecurrenceType.DAILY, 2, end_date=date(2024, 1, 2)),
    )
    assert next_occurrence(task, datetime(2024, 1, 1)) is None


def test_non_recurring_task_has_no_next():
    assert next_occurrence(Task(text="once"), datetime(2024, 1, 1)) is None


def test_completing_recurring_task_spawns_next(adapter, clock):
    tasks = TaskStore(adapter, clock=clock)
    task = tasks.add({
        "text": "Pay rent",
        "due_date": "2024-01-31",
        "recurrence": {"type": "monthly", "interval": 1},
    })

    done = tasks.complete_task(task.id)

    spawned = tasks.last_spawned
    assert spawned is not None
    assert spawned.due_date == date(2024, 2, 29)
    assert tasks.get_by_id(spawned.id) is spawned
    assert len(tasks) == 2
    assert done.comments[-1].text == "Next occurrence scheduled for 2024-02-29"


def test_recurrence_past_end_date_spawns_nothing(adapter, clock):
    tasks = TaskStore(adapter, clock=clock)
    task = tasks.add({
        "text": "Trial",
        "due_date": "2024-01-01",
        "recurrence": {"type": "daily", "interval": 2, "end_date": "2024-01-02"},
    })

    tasks.complete_task(task.id)
    assert tasks.last_spawned is None
    assert len(tasks) == 1


def test_undo_complete_removes_spawned_task(adapter, clock):
    tasks = TaskStore(adapter, clock=clock)
    task = tasks.add({"text": "Gym", "due_date": "2024-01-10", "recurrence": {"type": "daily", "interval": 1}})
    tasks.complete_task(task.id)
    spawned_id = tasks.last_spawned.id

    assert tasks.undo()
    assert len(tasks) == 1
    assert tasks.get_by_id(spawned_id) is None
    assert not tasks.get_by_id(task.id).completed


def test_reopening_does_not_spawn_again(adapter, clock):
    tasks = TaskStore(adapter, clock=clock)
    task = tasks.add({"text": "Read", "due_date": "2024-01-10", "recurrence": {"type": "weekly", "interval": 1}})
    tasks.complete_task(task.id)
    tasks.reopen_task(task.id)

    assert tasks.last_spawned is None
    assert len(tasks) == 2
