import json
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.errors import ValidationFailure
from deskpad.export import (
    EXPORT_VERSION,
    LAST_EXPORT_KEY,
    Dashboard,
    export_bundle,
    export_filename,
    export_json,
    import_bundle,
    last_export,
    record_export,
)
from deskpad.links import LinkStore
from deskpad.persistence import MemoryAdapter
from deskpad.preferences import Preferences, RetirementTimer
from deskpad.store import NoteStore, TaskStore


def make_dashboard(adapter, clock):
    return Dashboard(
        links=LinkStore(adapter),
        tasks=TaskStore(adapter, clock=clock),
        preferences=Preferences(adapter),
        timer=RetirementTimer(adapter, clock=clock),
        notes=NoteStore(adapter, clock=clock),
    )


@pytest.fixture
def dashboard(adapter, clock):
    return make_dashboard(adapter, clock)


def test_export_bundle_layout(dashboard, clock):
    dashboard.links.add_link("Dev", "Docs", "docs.python.org")
    dashboard.tasks.add({"text": "Export me"})
    dashboard.notes.add({"title": "And me"})

    bundle = export_bundle(dashboard, clock)

    assert bundle["version"] == EXPORT_VERSION
    assert bundle["timestamp"] == "2024-01-10T12:00:00"
    data = bundle["data"]
    assert data["bookmarks"]["Dev"][0]["url"] == "https://docs.python.org"
    assert data["todos"][0]["text"] == "Export me"
    assert data["notes"][0]["title"] == "And me"
    assert data["settings"]["theme"] == "light"
    assert data["retirementTimer"]["enabled"] is False


def test_export_json_records_time(dashboard, adapter, clock):
    text = export_json(dashboard, adapter=adapter, clock=clock)
    assert json.loads(text)["version"] == "1.2"
    assert last_export(adapter) == clock.now()


def test_last_export(clock):
    adapter = MemoryAdapter()
    assert last_export(adapter) is None
    record_export(adapter, clock.now())
    assert adapter.data[LAST_EXPORT_KEY].isdigit()
    adapter.data[LAST_EXPORT_KEY] = "soon"
    assert last_export(adapter) is None


def test_export_filename():
    name = export_filename(datetime(2024, 1, 10, 12, 30, 5))
    assert name == "dashboard_complete_backup_2024-01-10T12-30-05.json"


def test_round_trip_into_fresh_dashboard(dashboard, clock):
    dashboard.links.add_link("Dev", "Docs", "docs.python.org")
    task = dashboard.tasks.add({"text": "Carry over", "tags": ["move"]})
    dashboard.preferences.set_username("Ada")
    dashboard.timer.toggle()
    text = export_json(dashboard, clock=clock)

    fresh = make_dashboard(MemoryAdapter(), clock)
    result = import_bundle(text, fresh)

    assert result.format == "combined 1.2"
    assert set(result.imported) == {"bookmarks", "todos", "notes", "settings", "retirementTimer"}
    assert fresh.links.get_section("Dev")[0].name == "Docs"
    assert fresh.tasks.get_by_id(task.id) == task
    assert fresh.preferences.username == "Ada"
    assert fresh.timer.enabled


def test_import_bare_todo_array(dashboard):
    result = import_bundle(json.dumps([{"text": "legacy", "completed": True}]), dashboard)

    assert result.format == "todos"
    assert result.imported == ["todos"]
    assert [t.text for t in dashboard.tasks.items] == ["legacy"]
    assert dashboard.tasks.items[0].completed


def test_import_legacy_bookmarks_bundle(dashboard):
    bundle = {
        "version": "1.0",
        "data": {
            "bookmarks": {"News": [{"name": "HN", "url": "https://news.ycombinator.com"}]},
            "settings": {"theme": "dark"},
        },
    }
    result = import_bundle(json.dumps(bundle), dashboard)

    assert result.format == "bookmarks"
    assert dashboard.links.sections() == ["News"]
    assert dashboard.preferences.theme == "dark"


def test_import_1_1_ignores_timer(dashboard):
    bundle = {
        "version": "1.1",
        "data": {"todos": [], "retirementTimer": {"enabled": True}},
    }
    result = import_bundle(json.dumps(bundle), dashboard)
    assert result.imported == ["todos"]
    assert not dashboard.timer.enabled


def test_invalid_json_is_rejected(dashboard):
    with pytest.raises(ValidationFailure, match="valid JSON"):
        import_bundle("{nope", dashboard)


@pytest.mark.parametrize("document", [
    {"hello": "world"},
    {"version": "1.0", "data": {}},
    {"version": "1.2", "data": {"todos": None}},
    "just a string",
])
def test_unusable_documents_are_rejected(dashboard, document):
    with pytest.raises(ValidationFailure, match="no valid data"):
        import_bundle(json.dumps(document), dashboard)


def test_bad_part_leaves_everything_untouched(dashboard):
    dashboard.links.add_link("Keep", "Mine", "example.com")
    dashboard.tasks.add({"text": "existing"})
    bundle = {
        "version": "1.2",
        "data": {
            "bookmarks": {"New": [{"name": "x", "url": "https://x.example"}]},
            "todos": [{"id": "t1", "text": "x", "status": "todo", "createdAt": "not a date"}],
        },
    }

    with pytest.raises(ValidationFailure):
        import_bundle(json.dumps(bundle), dashboard)

    assert dashboard.links.sections() == ["Keep"]
    assert [t.text for t in dashboard.tasks.items] == ["existing"]


def test_import_is_undoable(dashboard):
    dashboard.tasks.add({"text": "before"})
    import_bundle(json.dumps([{"text": "after"}]), dashboard)

    assert dashboard.tasks.undo()
    assert [t.text for t in dashboard.tasks.items] == ["before"]
