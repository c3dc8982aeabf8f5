"""
Tag index: usage counts derived from a collection, and persisted display colors.

Counts are never stored. Colors are stored under one key as a tag -> hex map;
a tag gets a palette color the first time it is asked for and keeps it until
set_color/remove_color changes it.
"""

import json
import random
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .errors import ErrorReporter, LoggingErrorReporter, PersistenceFailure, ValidationFailure
from .logger import get_logger
from .persistence import PersistenceAdapter

logger = get_logger("tags")

TAG_COLORS_KEY = "tagColors"

PALETTE = [
    '#ef4444', '#f97316', '#f59e0b', '#eab308', '#84cc16',
    '#22c55e', '#10b981', '#14b8a6', '#06b6d4', '#0ea5e9',
    '#3b82f6', '#6366f1', '#8b5cf6', '#a855f7', '#d946ef',
    '#ec4899', '#f43f5e',
]

_HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')


@dataclass(frozen=True)
class TagCount:
    tag: str
    count: int


def all_tags(items: Iterable) -> List[TagCount]:
    """Tag usage counts, most used first; ties keep discovery order."""
    counts: Dict[str, int] = {}
    for item in items:
        for tag in item.tags:
            counts[tag] = counts.get(tag, 0) + 1
    return [TagCount(tag, count) for tag, count in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)]


class TagColors:
    """
    Persisted tag -> color lookup.

    Args:
        adapter: Persistence backend
        rng: Object with a `choice` method used for new assignments
        reporter: Receives persistence failures
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        rng: Optional[random.Random] = None,
        reporter: Optional[ErrorReporter] = None,
        key: str = TAG_COLORS_KEY,
    ):
        self.adapter = adapter
        self.rng = rng or random.Random()
        self.reporter = reporter or LoggingErrorReporter()
        self.key = key
        self.colors: Dict[str, str] = {}
        self.persistence_ok = True
        self.load()

    def load(self) -> None:
        raw = self.adapter.get(self.key)
        if raw is None:
            self.colors = {}
            return
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
            self.colors = {str(tag): str(color) for tag, color in data.items()}
            logger.debug(f"Loaded {len(self.colors)} tag colors")
        except ValueError as e:
            logger.warning(f"Error loading tag colors, starting fresh: {e}")
            self.colors = {}

    def _save(self) -> bool:
        self.persistence_ok = self.adapter.set(self.key, json.dumps(self.colors))
        if not self.persistence_ok:
            self.reporter.report(PersistenceFailure(self.key, "Tag colors were not saved"), "tag colors")
        return self.persistence_ok

    def get_color(self, tag: str) -> Optional[str]:
        return self.colors.get(tag)

    def set_color(self, tag: str, color: str) -> None:
        if not _HEX_COLOR.match(color):
            raise ValidationFailure(f"Color must be a hex code like #3b82f6, got {color!r}")
        self.colors[tag] = color
        self._save()

    def remove_color(self, tag: str) -> bool:
        if tag not in self.colors:
            return False
        del self.colors[tag]
        self._save()
        return True

    def all_colors(self) -> Dict[str, str]:
        return dict(self.colors)

    def ensure_color(self, tag: str) -> str:
        """Existing color for `tag`, or a newly assigned palette color."""
        color = self.colors.get(tag)
        if color is None:
            color = self.rng.choice(PALETTE)
            self.colors[tag] = color
            self._save()
            logger.debug(f"Assigned {color} to tag {tag!r}")
        return color


def tag_colors_for(items: Iterable, colors: TagColors) -> Dict[str, str]:
    """Color for every tag in use, assigning new ones as needed."""
    return {entry.tag: colors.ensure_color(entry.tag) for entry in all_tags(items)}
