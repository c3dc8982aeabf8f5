"""
Automatic backups.

Two kinds of copies are kept:
  - full export bundles, written on the configured frequency into a rolling
    list (newest last) of at most max_backups entries under `backups`
  - a plain copy of the links under `links_backup`, refreshed on a short
    fixed interval by the scheduler
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .clock import Clock, SystemClock
from .codec import format_datetime, parse_optional_datetime
from .errors import ErrorReporter, LoggingErrorReporter, PersistenceFailure, ValidationFailure
from .export import Dashboard, export_bundle
from .logger import get_logger
from .persistence import PersistenceAdapter

logger = get_logger("backup")

SETTINGS_KEY = "autoBackupSettings"
BACKUPS_KEY = "backups"
LINKS_BACKUP_KEY = "links_backup"
LAST_REMINDER_KEY = "lastBackupReminder"

FREQUENCIES = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}

REMINDER_THRESHOLDS = {
    "daily": timedelta(days=2),
    "weekly": timedelta(days=10),
    "monthly": timedelta(days=40),
}

REMINDER_QUIET_PERIOD = timedelta(days=1)


@dataclass
class BackupSettings:
    enabled: bool = False
    frequency: str = "daily"
    last_backup: Optional[datetime] = None
    max_backups: int = 10
    reminder_enabled: bool = True
    reminder_frequency: str = "weekly"

    @property
    def interval(self) -> timedelta:
        return FREQUENCIES.get(self.frequency, FREQUENCIES["daily"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "frequency": self.frequency,
            "lastBackup": format_datetime(self.last_backup),
            "maxBackups": self.max_backups,
            "reminderEnabled": self.reminder_enabled,
            "reminderFrequency": self.reminder_frequency,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "BackupSettings":
        if not isinstance(data, dict):
            raise ValidationFailure(f"Backup settings must be an object, got {type(data).__name__}")
        max_backups = data.get("maxBackups") or 10
        if isinstance(max_backups, bool) or not isinstance(max_backups, int) or max_backups < 1:
            raise ValidationFailure(f"maxBackups must be a positive whole number, got {max_backups!r}")
        return cls(
            enabled=bool(data.get("enabled", False)),
            frequency=data.get("frequency") or "daily",
            last_backup=parse_optional_datetime(data.get("lastBackup"), "lastBackup"),
            max_backups=max_backups,
            reminder_enabled=data.get("reminderEnabled") is not False,
            reminder_frequency=data.get("reminderFrequency") or "weekly",
        )


class AutoBackup:
    def __init__(
        self,
        adapter: PersistenceAdapter,
        dashboard: Dashboard,
        clock: Optional[Clock] = None,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.adapter = adapter
        self.dashboard = dashboard
        self.clock = clock or SystemClock()
        self.reporter = reporter or LoggingErrorReporter()
        self.settings = self._load_settings()

    def _load_settings(self) -> BackupSettings:
        raw = self.adapter.get(SETTINGS_KEY)
        if raw is None:
            return BackupSettings()
        try:
            return BackupSettings.from_dict(json.loads(raw))
        except (ValueError, ValidationFailure) as e:
            logger.error(f"Error loading backup settings: {e}")
            return BackupSettings()

    def save_settings(self) -> bool:
        ok = self.adapter.set(SETTINGS_KEY, json.dumps(self.settings.to_dict()))
        if not ok:
            self.reporter.report(PersistenceFailure(SETTINGS_KEY, "Backup settings were not saved"), "backup settings")
        return ok

    def configure(self, **changes: Any) -> BackupSettings:
        """Update settings fields (enabled, frequency, max_backups, ...) and persist them."""
        values = asdict(self.settings)
        unknown = sorted(set(changes) - set(values))
        if unknown:
            raise ValidationFailure(f"Unknown backup setting(s): {', '.join(unknown)}")
        values.update(changes)
        if values["frequency"] not in FREQUENCIES:
            raise ValidationFailure(f"Backup frequency must be one of {', '.join(FREQUENCIES)}")
        if values["reminder_frequency"] not in REMINDER_THRESHOLDS:
            raise ValidationFailure(f"Reminder frequency must be one of {', '.join(REMINDER_THRESHOLDS)}")
        if values["max_backups"] < 1:
            raise ValidationFailure("max_backups must be at least 1")
        self.settings = BackupSettings(**values)
        self.save_settings()
        return self.settings

    def is_due(self, now: Optional[datetime] = None) -> bool:
        if not self.settings.enabled:
            return False
        if self.settings.last_backup is None:
            return True
        now = now or self.clock.now()
        return now - self.settings.last_backup >= self.settings.interval

    def backups(self) -> List[Dict[str, Any]]:
        raw = self.adapter.get(BACKUPS_KEY)
        if raw is None:
            return []
        try:
            backups = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable backup list: {e}")
            return []
        return backups if isinstance(backups, list) else []

    def perform(self, now: Optional[datetime] = None) -> bool:
        """Append an export bundle to the rolling backup list."""
        now = now or self.clock.now()
        logger.debug("Performing automatic backup")
        backups = self.backups()
        backups.append(export_bundle(self.dashboard, self.clock))
        backups = backups[-self.settings.max_backups:]
        if not self.adapter.set(BACKUPS_KEY, json.dumps(backups)):
            self.reporter.report(PersistenceFailure(BACKUPS_KEY, "Automatic backup failed"), "automatic backup")
            return False
        self.settings.last_backup = now
        self.save_settings()
        logger.info(f"Automatic backup completed ({len(backups)} kept)")
        return True

    def run_if_due(self) -> bool:
        """Scheduler entry point."""
        if self.is_due():
            return self.perform()
        return False

    def snapshot_links(self) -> bool:
        """Refresh the plain links copy."""
        ok = self.adapter.set(LINKS_BACKUP_KEY, self.dashboard.links.snapshot())
        if not ok:
            self.reporter.report(PersistenceFailure(LINKS_BACKUP_KEY, "Error creating backup"), "links backup")
        return ok

    def needs_reminder(self, now: Optional[datetime] = None) -> bool:
        """True when the last backup is older than the reminder threshold, at most once a day."""
        if not self.settings.reminder_enabled:
            return False
        now = now or self.clock.now()
        last_reminder = self._last_reminder()
        if last_reminder is not None and now - last_reminder < REMINDER_QUIET_PERIOD:
            return False
        last_backup = self.settings.last_backup
        threshold = REMINDER_THRESHOLDS.get(self.settings.reminder_frequency, REMINDER_THRESHOLDS["weekly"])
        return last_backup is None or now - last_backup >= threshold

    def _last_reminder(self) -> Optional[datetime]:
        raw = self.adapter.get(LAST_REMINDER_KEY)
        try:
            return parse_optional_datetime(raw, LAST_REMINDER_KEY)
        except ValidationFailure:
            logger.warning(f"Ignoring unreadable {LAST_REMINDER_KEY}: {raw!r}")
            return None

    def mark_reminded(self, now: Optional[datetime] = None) -> None:
        now = now or self.clock.now()
        self.adapter.set(LAST_REMINDER_KEY, now.isoformat())
