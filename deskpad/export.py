"""
Export and import of the whole dashboard as one JSON bundle.

Bundle layout (version 1.2):

    {"version": "1.2", "timestamp": ...,
     "data": {"bookmarks": {...}, "todos": [...], "notes": [...],
              "settings": {"username", "theme", "primaryColor"},
              "retirementTimer": {...}}}

Imports also accept the 1.0 bookmarks-only bundle and a bare todo array.
Everything in a bundle is validated before any live state is replaced.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .clock import Clock, SystemClock
from .errors import ValidationFailure
from .links import LinkStore
from .logger import get_logger
from .persistence import PersistenceAdapter
from .preferences import Preferences, RetirementTimer
from .store import NoteStore, TaskStore

logger = get_logger("export")

EXPORT_VERSION = "1.2"
LAST_EXPORT_KEY = "lastExportTimestamp"


@dataclass
class Dashboard:
    """The live stores a bundle is taken from and restored into."""
    links: LinkStore
    tasks: TaskStore
    preferences: Preferences
    timer: Optional[RetirementTimer] = None
    notes: Optional[NoteStore] = None


@dataclass
class ImportResult:
    format: str
    imported: List[str] = field(default_factory=list)


def export_bundle(dashboard: Dashboard, clock: Optional[Clock] = None) -> Dict[str, Any]:
    clock = clock or SystemClock()
    data: Dict[str, Any] = {
        "bookmarks": json.loads(dashboard.links.snapshot()),
        "todos": json.loads(dashboard.tasks.snapshot()),
        "settings": dashboard.preferences.as_settings(),
        "retirementTimer": dashboard.timer.to_dict() if dashboard.timer is not None else None,
    }
    if dashboard.notes is not None:
        data["notes"] = json.loads(dashboard.notes.snapshot())
    return {"version": EXPORT_VERSION, "timestamp": clock.now().isoformat(), "data": data}


def export_filename(now: datetime) -> str:
    stamp = now.isoformat().replace(":", "-").replace(".", "-")
    return f"dashboard_complete_backup_{stamp}.json"


def record_export(adapter: PersistenceAdapter, now: datetime) -> bool:
    """Remember when data was last exported, in epoch milliseconds."""
    return adapter.set(LAST_EXPORT_KEY, str(int(now.timestamp() * 1000)))


def last_export(adapter: PersistenceAdapter) -> Optional[datetime]:
    raw = adapter.get(LAST_EXPORT_KEY)
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(raw.strip()) / 1000)
    except (ValueError, OverflowError, OSError):
        logger.warning(f"Ignoring unreadable {LAST_EXPORT_KEY}: {raw!r}")
        return None


def export_json(dashboard: Dashboard, adapter: Optional[PersistenceAdapter] = None,
                clock: Optional[Clock] = None) -> str:
    """Serialized bundle; with an adapter the export time is recorded too."""
    clock = clock or SystemClock()
    bundle = export_bundle(dashboard, clock)
    if adapter is not None:
        record_export(adapter, clock.now())
    logger.info("Exported dashboard data")
    return json.dumps(bundle, indent=2)


def _version(bundle: Dict[str, Any]) -> float:
    try:
        return float(bundle.get("version") or 0)
    except (TypeError, ValueError):
        return 0.0


def import_bundle(text: str, dashboard: Dashboard) -> ImportResult:
    """
    Validate `text` as an export bundle and replace the matching live state.

    Raises ValidationFailure (with nothing replaced) when the document is not
    JSON or holds no usable data.
    """
    try:
        bundle = json.loads(text)
    except ValueError:
        raise ValidationFailure("Invalid file format. Please upload a valid JSON file.")

    staged: Dict[str, Any] = {}
    if isinstance(bundle, list):
        result = ImportResult("todos")
        staged["todos"] = dashboard.tasks.import_records(bundle)
    elif isinstance(bundle, dict) and isinstance(bundle.get("data"), dict):
        data = bundle["data"]
        version = _version(bundle)
        if version >= 1.1:
            result = ImportResult(f"combined {bundle.get('version')}")
            if data.get("todos") is not None:
                staged["todos"] = dashboard.tasks.import_records(data["todos"])
            if data.get("notes") is not None and dashboard.notes is not None:
                staged["notes"] = dashboard.notes.parse_records(data["notes"])
            if version >= 1.2 and data.get("retirementTimer") and dashboard.timer is not None:
                staged["retirementTimer"] = dashboard.timer.check_dict(data["retirementTimer"])
        elif data.get("bookmarks"):
            result = ImportResult("bookmarks")
        else:
            raise ValidationFailure("Invalid file format or no valid data found")
        if data.get("bookmarks"):
            staged["bookmarks"] = dashboard.links.parse_bookmarks(data["bookmarks"])
        if data.get("settings"):
            staged["settings"] = Preferences.check_settings(data["settings"])
    else:
        raise ValidationFailure("Invalid file format or no valid data found")

    if not staged:
        raise ValidationFailure("Invalid file format or no valid data found")

    if "bookmarks" in staged:
        dashboard.links.replace_all(staged["bookmarks"])
    if "todos" in staged:
        dashboard.tasks.replace_all(staged["todos"])
    if "notes" in staged:
        dashboard.notes.replace_all(staged["notes"])
    if "settings" in staged:
        dashboard.preferences.apply_settings(staged["settings"])
    if "retirementTimer" in staged:
        dashboard.timer.apply_dict(data["retirementTimer"])

    result.imported = list(staged)
    logger.info(f"Imported {result.format} bundle: {', '.join(result.imported)}")
    return result
