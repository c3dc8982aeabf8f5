import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.analytics import Analytics, percentage
from deskpad.store import ProjectStore, TaskStore


@pytest.fixture
def tasks(adapter, clock):
    return TaskStore(adapter, clock=clock)


@pytest.fixture
def analytics(tasks, adapter, clock):
    return Analytics(tasks, ProjectStore(adapter, clock=clock), clock=clock)


EARLY = datetime(2023, 12, 1, 8, 0)
TODAY = datetime(2024, 1, 10, 12, 0)


def add_early(tasks, clock, text):
    """Add a task created well before any completion the test stamps."""
    clock.set(EARLY)
    task = tasks.add({"text": text})
    clock.set(TODAY)
    return task


def complete_at(tasks, clock, task, when):
    clock.set(when)
    tasks.complete_task(task.id)
    clock.set(TODAY)


def test_percentage():
    assert percentage(0, 0) == 0.0
    assert percentage(1, 3) == 33.3
    assert percentage(2, 3) == 66.7
    assert percentage(3, 3) == 100.0


def test_empty_store(analytics):
    rate = analytics.completion_rate()
    assert (rate.completed, rate.total, rate.rate) == (0, 0, 0.0)
    assert analytics.average_completion_time() == 0.0
    assert analytics.most_productive_day() == "N/A"
    assert analytics.current_streak() == 0
    assert analytics.overdue_count() == 0
    assert analytics.project_stats() == []


def test_completion_rate(tasks, analytics):
    first = tasks.add({"text": "one"})
    tasks.add({"text": "two"})
    tasks.add({"text": "three"})
    tasks.complete_task(first.id)
    assert analytics.completion_rate().rate == 33.3

    for task in list(tasks.items):
        tasks.complete_task(task.id)
    assert analytics.completion_rate().rate == 100.0


def test_completion_rate_window(tasks, analytics, clock):
    clock.set(datetime(2023, 11, 1, 9, 0))
    old = tasks.add({"text": "old"})
    clock.set(datetime(2024, 1, 10, 12, 0))
    tasks.add({"text": "new"})
    tasks.complete_task(old.id)

    now = clock.now()
    window = analytics.completion_rate(now - timedelta(days=30), now)
    assert (window.completed, window.total) == (0, 1)


def test_trend_has_one_point_per_day(tasks, analytics, clock):
    task = add_early(tasks, clock, "yesterday")
    complete_at(tasks, clock, task, datetime(2024, 1, 9, 15, 0))

    trend = analytics.completion_trend(7)
    assert len(trend) == 7
    assert trend[0].date == date(2024, 1, 4)
    assert trend[-1].date == date(2024, 1, 10)
    assert [p.count for p in trend] == [0, 0, 0, 0, 0, 1, 0]
    assert analytics.completion_trend(0) == []


def test_average_completion_time(tasks, analytics, clock):
    clock.set(datetime(2024, 1, 10, 8, 0))
    quick = tasks.add({"text": "quick"})
    slow = tasks.add({"text": "slow"})
    complete_at(tasks, clock, quick, datetime(2024, 1, 10, 10, 0))
    complete_at(tasks, clock, slow, datetime(2024, 1, 10, 18, 0))

    assert analytics.average_completion_time() == 6.0


def test_streak_counts_back_from_today(tasks, analytics, clock):
    for day in (10, 9, 8, 6):
        task = add_early(tasks, clock, f"day {day}")
        complete_at(tasks, clock, task, datetime(2024, 1, day, 9, 0))
    assert analytics.current_streak() == 3


def test_streak_is_zero_without_completion_today(tasks, analytics, clock):
    task = add_early(tasks, clock, "yesterday")
    complete_at(tasks, clock, task, datetime(2024, 1, 9, 9, 0))
    assert analytics.current_streak() == 0


def test_most_productive_day_tie_prefers_sunday(tasks, analytics, clock):
    # 2024-01-07 is a Sunday, 2024-01-08 a Monday
    for when in (datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 7, 9, 0)):
        task = add_early(tasks, clock, when.isoformat())
        complete_at(tasks, clock, task, when)
    assert analytics.most_productive_day() == "Sunday"

    extra = add_early(tasks, clock, "another monday")
    complete_at(tasks, clock, extra, datetime(2024, 1, 1, 9, 0))
    assert analytics.most_productive_day() == "Monday"


def test_overdue_and_distributions(tasks, analytics):
    tasks.add({"text": "late", "due_date": "2024-01-09", "priority": "high"})
    tasks.add({"text": "due today", "due_date": "2024-01-10"})
    done = tasks.add({"text": "late but done", "due_date": "2024-01-01", "priority": "low"})
    tasks.complete_task(done.id)

    assert analytics.overdue_count() == 1
    assert analytics.priority_distribution() == {"high": 1, "medium": 1, "low": 0}
    assert analytics.status_distribution() == {"todo": 2, "in-progress": 0, "done": 1, "blocked": 0}


def test_project_and_tag_stats(tasks, analytics):
    a = tasks.add({"text": "a", "project_id": "personal", "tags": ["x"]})
    tasks.add({"text": "b", "project_id": "personal", "tags": ["x", "y"]})
    tasks.add({"text": "c", "tags": ["y"]})
    tasks.complete_task(a.id)

    projects = analytics.project_stats()
    assert [(s.key, s.total, s.completed, s.rate) for s in projects] == [
        ("inbox", 1, 0, 0.0),
        ("personal", 2, 1, 50.0),
    ]
    assert projects[0].project.name == "Inbox"

    tags = {s.key: (s.total, s.completed) for s in analytics.tag_stats()}
    assert tags == {"x": (2, 1), "y": (2, 0)}


def test_pomodoro_stats(tasks, analytics):
    focus = tasks.add({"text": "focus", "estimated_pomodoros": 4})
    tasks.add({"text": "idle", "estimated_pomodoros": 2})
    for _ in range(3):
        tasks.record_pomodoro(focus.id)

    stats = analytics.pomodoro_stats()
    assert (stats.total_pomodoros, stats.avg_per_task, stats.total_estimated) == (3, 3.0, 6)


def test_summary_keys(analytics):
    summary = analytics.summary()
    assert len(summary["trend"]) == 30
    assert summary["most_productive_day"] == "N/A"
