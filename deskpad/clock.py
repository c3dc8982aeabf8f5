"""
Clock utility for time operations.

Everything in deskpad works on naive local time: "today" is the local
calendar date, and persisted instants are written as local ISO strings.
"""
from datetime import date, datetime


class Clock:
    """Source of the current instant; injected into stores and analytics."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """System clock in local time"""

    def now(self) -> datetime:
        return datetime.now()


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
