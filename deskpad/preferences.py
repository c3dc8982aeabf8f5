"""
User preferences and the retirement countdown.

Each preference lives under its own key as a JSON value. Older dashboards
stored them as bare strings, which still load.
"""

import json
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from .clock import Clock, SystemClock
from .codec import format_datetime, parse_datetime
from .errors import ErrorReporter, LoggingErrorReporter, PersistenceFailure, ValidationFailure
from .logger import get_logger
from .persistence import PersistenceAdapter
from .recurrence import add_months

logger = get_logger("preferences")

USERNAME_KEY = "username"
THEME_KEY = "theme"
PRIMARY_COLOR_KEY = "primaryColor"
RETIREMENT_TIMER_KEY = "retirementTimer"

DEFAULT_USERNAME = "User"
DEFAULT_THEME = "light"
DEFAULT_PRIMARY_COLOR = "#4f46e5"
THEMES = ("light", "dark")
USERNAME_MAX = 30

_USERNAME_PATTERN = re.compile(r'^[\w\s\-.]+$')
_HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')


def validate_username(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailure("Username cannot be empty")
    name = name.strip()
    if len(name) > USERNAME_MAX:
        raise ValidationFailure(f"Username must be no more than {USERNAME_MAX} characters")
    if not _USERNAME_PATTERN.match(name):
        raise ValidationFailure("Username can only contain letters, numbers, spaces, dots, hyphens and underscores")
    return name


def validate_theme(theme: Any) -> str:
    if theme not in THEMES:
        raise ValidationFailure(f"Theme must be one of {', '.join(THEMES)}, got {theme!r}")
    return theme


def validate_color(color: Any) -> str:
    if not isinstance(color, str) or not _HEX_COLOR.match(color):
        raise ValidationFailure(f"Color must be a hex code like #4f46e5, got {color!r}")
    return color


class Preferences:
    def __init__(self, adapter: PersistenceAdapter, reporter: Optional[ErrorReporter] = None):
        self.adapter = adapter
        self.reporter = reporter or LoggingErrorReporter()
        self.username = self._load(USERNAME_KEY, DEFAULT_USERNAME, validate_username)
        self.theme = self._load(THEME_KEY, DEFAULT_THEME, validate_theme)
        self.primary_color = self._load(PRIMARY_COLOR_KEY, DEFAULT_PRIMARY_COLOR, validate_color)

    def _load(self, key: str, default: str, validate) -> str:
        raw = self.adapter.get(key)
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except ValueError:
            value = raw  # bare string from an older dashboard
        try:
            return validate(value)
        except ValidationFailure as e:
            logger.warning(f"Ignoring stored {key}: {e}")
            return default

    def _store(self, key: str, value: str) -> None:
        if not self.adapter.set(key, json.dumps(value)):
            self.reporter.report(PersistenceFailure(key, "Preference was not saved"), "preferences")

    def set_username(self, name: str) -> str:
        self.username = validate_username(name)
        self._store(USERNAME_KEY, self.username)
        return self.username

    def set_theme(self, theme: str) -> str:
        self.theme = validate_theme(theme)
        self._store(THEME_KEY, self.theme)
        return self.theme

    def toggle_theme(self) -> str:
        return self.set_theme("light" if self.theme == "dark" else "dark")

    def set_primary_color(self, color: str) -> str:
        self.primary_color = validate_color(color)
        self._store(PRIMARY_COLOR_KEY, self.primary_color)
        return self.primary_color

    def as_settings(self) -> Dict[str, str]:
        return {"username": self.username, "theme": self.theme, "primaryColor": self.primary_color}

    @staticmethod
    def check_settings(settings: Any) -> Dict[str, str]:
        """Validated subset of an imported settings object."""
        if not isinstance(settings, Mapping):
            raise ValidationFailure(f"Settings must be an object, got {type(settings).__name__}")
        checked = {}
        if settings.get("username"):
            checked["username"] = validate_username(settings["username"])
        if settings.get("theme"):
            checked["theme"] = validate_theme(settings["theme"])
        if settings.get("primaryColor"):
            checked["primaryColor"] = validate_color(settings["primaryColor"])
        return checked

    def apply_settings(self, settings: Mapping[str, str]) -> None:
        checked = self.check_settings(settings)
        if "username" in checked:
            self.set_username(checked["username"])
        if "theme" in checked:
            self.set_theme(checked["theme"])
        if "primaryColor" in checked:
            self.set_primary_color(checked["primaryColor"])


COMPLETE_MESSAGE = "Congratulations! You've reached your retirement date!"
DISABLED_MESSAGE = "Timer disabled"

_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


class RetirementTimer:
    """
    Countdown to a target date, persisted under the retirementTimer key.

    Years count as 365 days and months as 30. Leading units that are zero are
    left out; once a unit is shown every smaller enabled unit follows it.
    """

    def __init__(self, adapter: PersistenceAdapter, clock: Optional[Clock] = None,
                 reporter: Optional[ErrorReporter] = None, key: str = RETIREMENT_TIMER_KEY):
        self.adapter = adapter
        self.clock = clock or SystemClock()
        self.reporter = reporter or LoggingErrorReporter()
        self.key = key
        self.enabled = False
        self.target_date = self._default_target()
        self.show = {unit: True for unit in ("years", "months", "days", "hours", "minutes", "seconds")}
        self.load()

    def _default_target(self) -> datetime:
        now = self.clock.now()
        target = add_months(now.date(), 120)
        return datetime.combine(target, now.time())

    def load(self) -> None:
        raw = self.adapter.get(self.key)
        if raw is None:
            return
        try:
            self.apply_dict(json.loads(raw), save=False)
        except (ValueError, ValidationFailure) as e:
            logger.error(f"Error loading retirement timer state: {e}")
            self.enabled = False
            self.target_date = self._default_target()
            self.show = {unit: True for unit in self.show}
            self.save()

    def check_dict(self, state: Any) -> Dict[str, Any]:
        if not isinstance(state, Mapping):
            raise ValidationFailure(f"Retirement timer settings must be an object, got {type(state).__name__}")
        target = self._default_target()
        if state.get("targetDate"):
            target = parse_datetime(state["targetDate"], "targetDate")
        # A target that has already passed starts over
        if target <= self.clock.now():
            target = self._default_target()
        return {
            "enabled": state.get("enabled") is True,
            "target_date": target,
            "show": {unit: state.get(f"show{unit.capitalize()}") is not False for unit in self.show},
        }

    def apply_dict(self, state: Any, save: bool = True) -> None:
        checked = self.check_dict(state)
        self.enabled = checked["enabled"]
        self.target_date = checked["target_date"]
        self.show = checked["show"]
        logger.debug(f"Retirement timer state loaded: enabled={self.enabled} target={self.target_date}")
        if save:
            self.save()

    def to_dict(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {"enabled": self.enabled, "targetDate": format_datetime(self.target_date)}
        for unit, shown in self.show.items():
            state[f"show{unit.capitalize()}"] = shown
        return state

    def save(self) -> bool:
        ok = self.adapter.set(self.key, json.dumps(self.to_dict()))
        if not ok:
            self.reporter.report(PersistenceFailure(self.key, "Retirement timer settings were not saved"), "retirement timer")
        return ok

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        self.save()
        return self.enabled

    def set_target_date(self, target: datetime) -> None:
        if target <= self.clock.now():
            raise ValidationFailure("Retirement date must be in the future")
        self.target_date = target
        self.save()

    def refresh_interval(self) -> timedelta:
        """How often a display needs to redraw."""
        return timedelta(seconds=1) if self.show["seconds"] else timedelta(minutes=1)

    def countdown_parts(self, now: Optional[datetime] = None) -> List[str]:
        now = now or self.clock.now()
        remaining = int((self.target_date - now).total_seconds())
        if remaining <= 0:
            return []
        parts: List[str] = []
        for (unit, seconds), key in zip(_UNITS, ("years", "months", "days", "hours", "minutes")):
            count, remaining = divmod(remaining, seconds)
            if self.show[key] and (count > 0 or parts):
                parts.append(_plural(count, unit))
        if self.show["seconds"]:
            parts.append(_plural(remaining, "second"))
        return parts

    def countdown(self, now: Optional[datetime] = None) -> str:
        if not self.enabled:
            return DISABLED_MESSAGE
        now = now or self.clock.now()
        if self.target_date <= now:
            return COMPLETE_MESSAGE
        return ", ".join(self.countdown_parts(now))
