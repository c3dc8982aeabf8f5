import calendar
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Optional

from .models import Recurrence, RecurrenceType, Task, TaskStatus, new_id


def add_months(start: date, months: int) -> date:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_due_date(base: date, recurrence: Recurrence) -> date:
    """Advance `base` by `recurrence.interval` units of `recurrence.type`."""
    interval = recurrence.interval
    if interval < 1:
        raise ValueError(f"Recurrence interval must be at least 1, got {interval}")
    if recurrence.type == RecurrenceType.DAILY:
        return base + timedelta(days=interval)
    if recurrence.type == RecurrenceType.WEEKLY:
        return base + timedelta(days=interval * 7)
    if recurrence.type == RecurrenceType.MONTHLY:
        return add_months(base, interval)
    if recurrence.type == RecurrenceType.YEARLY:
        # Feb 29 falls back to Feb 28 in non-leap years
        return add_months(base, interval * 12)
    raise ValueError(f"Unknown recurrence type: {recurrence.type!r}")


def next_occurrence(task: Task, now: datetime) -> Optional[Task]:
    """
    Build the next task in a recurring series, or None when the series ends.

    The completed `task` is left untouched; the caller inserts the returned
    task as a brand-new entity.
    """
    if not task.is_recurring or task.recurrence is None:
        return None

    base = task.due_date or (task.completed_at or now).date()
    due = next_due_date(base, task.recurrence)

    end_date = task.recurrence.end_date
    if end_date is not None and due > end_date:
        return None

    return Task(
        id=new_id("task"),
        text=task.text,
        description=task.description,
        priority=task.priority,
        tags=list(task.tags),
        project_id=task.project_id,
        is_recurring=True,
        recurrence=replace(task.recurrence),
        estimated_pomodoros=task.estimated_pomodoros,
        status=TaskStatus.TODO,
        due_date=due,
        created_at=now,
        modified_at=now,
    )
