import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.clock import Clock
from deskpad.errors import LoggingErrorReporter
from deskpad.persistence import MemoryAdapter


class FixedClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 10, 12, 0))


@pytest.fixture
def adapter():
    return MemoryAdapter()


@pytest.fixture
def reporter():
    return LoggingErrorReporter()
