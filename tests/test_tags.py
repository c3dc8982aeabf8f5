import json
import random
import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.errors import ValidationFailure
from deskpad.models import Note
from deskpad.persistence import MemoryAdapter
from deskpad.tags import PALETTE, TAG_COLORS_KEY, TagColors, all_tags, tag_colors_for


def test_all_tags_counts_most_used_first():
    items = [Note(tags=["b"]), Note(tags=["a", "b"]), Note(tags=["c"])]
    assert [(t.tag, t.count) for t in all_tags(items)] == [("b", 2), ("a", 1), ("c", 1)]
    assert all_tags([]) == []


def test_ensure_color_is_stable(adapter):
    colors = TagColors(adapter, rng=random.Random(7))
    first = colors.ensure_color("work")

    assert first in PALETTE
    assert colors.ensure_color("work") == first
    assert json.loads(adapter.data[TAG_COLORS_KEY]) == {"work": first}
    # A fresh instance reads the persisted assignment
    assert TagColors(adapter).ensure_color("work") == first


def test_set_and_remove_color(adapter):
    colors = TagColors(adapter)
    colors.set_color("home", "#10b981")
    assert colors.get_color("home") == "#10b981"

    with pytest.raises(ValidationFailure):
        colors.set_color("home", "green")
    assert colors.get_color("home") == "#10b981"

    assert colors.remove_color("home")
    assert not colors.remove_color("home")
    assert colors.all_colors() == {}


def test_corrupt_colors_start_empty():
    colors = TagColors(MemoryAdapter({TAG_COLORS_KEY: "[1, 2]"}))
    assert colors.all_colors() == {}


def test_failed_color_save_is_reported(reporter):
    adapter = MemoryAdapter()
    adapter.fail_writes = True
    colors = TagColors(adapter, reporter=reporter)

    colors.ensure_color("x")
    assert not colors.persistence_ok
    assert reporter.last_message.startswith("tag colors:")


def test_tag_colors_for_assigns_every_tag(adapter):
    colors = TagColors(adapter, rng=random.Random(1))
    mapping = tag_colors_for([Note(tags=["a"]), Note(tags=["b", "a"])], colors)
    assert set(mapping) == {"a", "b"}
    assert mapping == {tag: colors.get_color(tag) for tag in mapping}
