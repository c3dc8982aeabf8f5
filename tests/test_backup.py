import json
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.backup import (
    BACKUPS_KEY,
    LAST_REMINDER_KEY,
    LINKS_BACKUP_KEY,
    SETTINGS_KEY,
    AutoBackup,
    BackupSettings,
)
from deskpad.errors import ValidationFailure
from deskpad.export import Dashboard
from deskpad.links import LinkStore
from deskpad.persistence import MemoryAdapter
from deskpad.preferences import Preferences
from deskpad.store import TaskStore


@pytest.fixture
def dashboard(adapter, clock):
    return Dashboard(links=LinkStore(adapter), tasks=TaskStore(adapter, clock=clock), preferences=Preferences(adapter))


@pytest.fixture
def backup(adapter, dashboard, clock, reporter):
    return AutoBackup(adapter, dashboard, clock=clock, reporter=reporter)


def test_settings_defaults_and_round_trip():
    settings = BackupSettings()
    assert not settings.enabled
    assert settings.interval == timedelta(days=1)

    settings.last_backup = datetime(2024, 1, 1, 8, 0)
    assert BackupSettings.from_dict(settings.to_dict()) == settings
    with pytest.raises(ValidationFailure):
        BackupSettings.from_dict({"maxBackups": -3})


def test_disabled_backup_is_never_due(backup):
    assert not backup.is_due()
    assert not backup.run_if_due()


def test_configure_validates(backup, adapter):
    backup.configure(enabled=True, frequency="weekly", max_backups=3)
    stored = json.loads(adapter.data[SETTINGS_KEY])
    assert (stored["enabled"], stored["frequency"], stored["maxBackups"]) == (True, "weekly", 3)

    with pytest.raises(ValidationFailure):
        backup.configure(frequency="yearly")
    with pytest.raises(ValidationFailure):
        backup.configure(max_backups=0)
    with pytest.raises(ValidationFailure):
        backup.configure(colour="blue")
    assert backup.settings.frequency == "weekly"


def test_first_backup_is_due_immediately(backup, adapter, clock, dashboard):
    dashboard.tasks.add({"text": "back me up"})
    backup.configure(enabled=True, frequency="daily")

    assert backup.is_due()
    assert backup.run_if_due()
    assert backup.settings.last_backup == clock.now()
    saved = json.loads(adapter.data[BACKUPS_KEY])
    assert len(saved) == 1
    assert saved[0]["data"]["todos"][0]["text"] == "back me up"

    clock.advance(hours=23)
    assert not backup.is_due()
    clock.advance(hours=1)
    assert backup.is_due()


def test_backups_roll_over(backup, clock):
    backup.configure(enabled=True, frequency="hourly", max_backups=2)
    for _ in range(3):
        backup.perform()
        clock.advance(hours=1)

    stamps = [b["timestamp"] for b in backup.backups()]
    assert stamps == ["2024-01-10T13:00:00", "2024-01-10T14:00:00"]


def test_failed_backup_is_reported(backup, adapter, reporter):
    backup.configure(enabled=True)
    adapter.fail_writes = True

    assert not backup.perform()
    assert backup.settings.last_backup is None
    assert "Automatic backup failed" in reporter.last_message


def test_settings_survive_restart(backup, adapter, dashboard, clock):
    backup.configure(enabled=True, frequency="monthly")
    backup.perform()

    restarted = AutoBackup(adapter, dashboard, clock=clock)
    assert restarted.settings.frequency == "monthly"
    assert restarted.settings.last_backup == clock.now()


def test_corrupt_settings_fall_back(dashboard, clock):
    adapter = MemoryAdapter({SETTINGS_KEY: "nope", BACKUPS_KEY: "{]"})
    backup = AutoBackup(adapter, dashboard, clock=clock)
    assert backup.settings == BackupSettings()
    assert backup.backups() == []


def test_snapshot_links(backup, adapter, dashboard):
    dashboard.links.add_link("Dev", "Docs", "docs.python.org")
    assert backup.snapshot_links()
    assert json.loads(adapter.data[LINKS_BACKUP_KEY]) == json.loads(dashboard.links.snapshot())


def test_reminder_thresholds(backup, clock):
    backup.configure(reminder_frequency="daily")
    assert backup.needs_reminder()

    backup.settings.last_backup = clock.now()
    clock.advance(days=1)
    assert not backup.needs_reminder()
    clock.advance(days=1)
    assert backup.needs_reminder()


def test_reminder_at_most_once_a_day(backup, adapter, clock):
    assert backup.needs_reminder()
    backup.mark_reminded()
    assert adapter.data[LAST_REMINDER_KEY] == clock.now().isoformat()

    clock.advance(hours=12)
    assert not backup.needs_reminder()
    clock.advance(hours=12)
    assert backup.needs_reminder()


def test_reminders_can_be_disabled(backup):
    backup.configure(reminder_enabled=False)
    assert not backup.needs_reminder()
