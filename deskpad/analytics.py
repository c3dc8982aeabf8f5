"""
Productivity statistics over a task store.

Every method reads the store afresh; nothing is cached and nothing is written.
Day boundaries are local calendar dates taken from the injected clock.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from .clock import Clock, SystemClock
from .models import Priority, Project, Task, TaskStatus
from .store import ProjectStore, TaskStore

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def percentage(part: int, total: int) -> float:
    """part/total as a percentage with one decimal; 0 for an empty total."""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 1)


@dataclass(frozen=True)
class CompletionRate:
    completed: int
    total: int
    rate: float


@dataclass(frozen=True)
class TrendPoint:
    date: date
    count: int


@dataclass(frozen=True)
class GroupStats:
    key: str
    total: int
    completed: int
    rate: float
    project: Optional[Project] = None


@dataclass(frozen=True)
class PomodoroStats:
    total_pomodoros: int
    avg_per_task: float
    total_estimated: int


class Analytics:
    def __init__(self, tasks: TaskStore, projects: Optional[ProjectStore] = None, clock: Optional[Clock] = None):
        self.tasks = tasks
        self.projects = projects
        self.clock = clock or tasks.clock or SystemClock()

    def _all(self) -> List[Task]:
        return list(self.tasks.items)

    def _today(self) -> date:
        return self.clock.today()

    def _completion_days(self) -> Dict[date, int]:
        counts: Dict[date, int] = {}
        for task in self._all():
            if task.completed_at is not None:
                day = task.completed_at.date()
                counts[day] = counts.get(day, 0) + 1
        return counts

    def completion_rate(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> CompletionRate:
        """Share of tasks completed, optionally limited to tasks created within [start, end]."""
        tasks = self._all()
        if start is not None or end is not None:
            tasks = [
                t for t in tasks
                if (start is None or t.created_at >= start) and (end is None or t.created_at <= end)
            ]
        completed = sum(1 for t in tasks if t.completed)
        return CompletionRate(completed=completed, total=len(tasks), rate=percentage(completed, len(tasks)))

    def completion_trend(self, days: int = 30) -> List[TrendPoint]:
        """Completions per calendar day for the last `days` days, oldest first, today last."""
        if days <= 0:
            return []
        today = self._today()
        counts = self._completion_days()
        return [
            TrendPoint(date=day, count=counts.get(day, 0))
            for day in (today - timedelta(days=offset) for offset in range(days - 1, -1, -1))
        ]

    def average_completion_time(self) -> float:
        """Mean hours from creation to completion, one decimal; 0 when nothing is done."""
        done = [t for t in self._all() if t.completed and t.completed_at is not None]
        if not done:
            return 0.0
        total_hours = sum((t.completed_at - t.created_at).total_seconds() / 3600 for t in done)
        return round(total_hours / len(done), 1)

    def project_stats(self) -> List[GroupStats]:
        """Per-project totals, in project order; projects without tasks are left out."""
        tasks = self._all()
        if self.projects is not None:
            groups = [(p.id, p) for p in self.projects.active_projects()]
        else:
            seen: List[str] = []
            for task in tasks:
                if task.project_id is not None and task.project_id not in seen:
                    seen.append(task.project_id)
            groups = [(project_id, None) for project_id in seen]

        stats = []
        for project_id, project in groups:
            members = [t for t in tasks if t.project_id == project_id]
            if not members:
                continue
            completed = sum(1 for t in members if t.completed)
            stats.append(GroupStats(project_id, len(members), completed, percentage(completed, len(members)), project))
        return stats

    def tag_stats(self) -> List[GroupStats]:
        """Per-tag totals, most used tag first."""
        totals: Dict[str, List[int]] = {}
        for task in self._all():
            for tag in task.tags:
                entry = totals.setdefault(tag, [0, 0])
                entry[0] += 1
                if task.completed:
                    entry[1] += 1
        ordered = sorted(totals.items(), key=lambda kv: kv[1][0], reverse=True)
        return [GroupStats(tag, total, completed, percentage(completed, total)) for tag, (total, completed) in ordered]

    def priority_distribution(self) -> Dict[str, int]:
        """Open tasks per priority."""
        open_tasks = [t for t in self._all() if not t.completed]
        return {p.value: sum(1 for t in open_tasks if t.priority == p) for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW)}

    def status_distribution(self) -> Dict[str, int]:
        tasks = self._all()
        return {s.value: sum(1 for t in tasks if t.status == s) for s in TaskStatus}

    def overdue_count(self) -> int:
        today = self._today()
        return sum(1 for t in self._all() if not t.completed and t.due_date is not None and t.due_date < today)

    def pomodoro_stats(self) -> PomodoroStats:
        tasks = self._all()
        total = sum(t.pomodoros_completed for t in tasks)
        with_pomodoros = [t for t in tasks if t.pomodoros_completed > 0]
        avg = round(total / len(with_pomodoros), 1) if with_pomodoros else 0.0
        estimated = sum(t.estimated_pomodoros or 0 for t in tasks)
        return PomodoroStats(total_pomodoros=total, avg_per_task=avg, total_estimated=estimated)

    def most_productive_day(self) -> str:
        """Weekday name with the most completions, 'N/A' when there are none."""
        counts = [0] * 7  # Sunday first
        for task in self._all():
            if task.completed and task.completed_at is not None:
                # weekday(): Monday=0 .. Sunday=6
                counts[(task.completed_at.weekday() + 1) % 7] += 1
        best_name, best_count = "N/A", 0
        for name, count in zip(WEEKDAY_NAMES, counts):
            if count > best_count:
                best_name, best_count = name, count
        return best_name

    def current_streak(self) -> int:
        """Consecutive days with a completion, counting back from today."""
        days = self._completion_days()
        streak = 0
        day = self._today()
        while days.get(day):
            streak += 1
            day -= timedelta(days=1)
        return streak

    def summary(self) -> dict:
        now = self.clock.now()
        return {
            "overall": self.completion_rate(),
            "last_30_days": self.completion_rate(now - timedelta(days=30), now),
            "trend": self.completion_trend(30),
            "avg_completion_time": self.average_completion_time(),
            "projects": self.project_stats(),
            "tags": self.tag_stats(),
            "priority": self.priority_distribution(),
            "status": self.status_distribution(),
            "overdue": self.overdue_count(),
            "pomodoro": self.pomodoro_stats(),
            "most_productive_day": self.most_productive_day(),
            "streak": self.current_streak(),
        }
