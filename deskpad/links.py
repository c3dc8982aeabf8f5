"""
Bookmark links grouped into named sections.

Sections are keyed by name, so renaming one is a key migration. A section
whose last link is deleted is dropped. Writes go through an optional
WriteCoalescer so bursts of edits become one save; every saved state is
also pushed onto the undo history.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .codec import deserialize_link, serialize_link
from .errors import ErrorReporter, LoggingErrorReporter, PersistenceFailure, ValidationFailure
from .history import HistoryStack
from .logger import get_logger
from .models import Link
from .persistence import PersistenceAdapter, WriteCoalescer

logger = get_logger("links")

LINKS_KEY = "links"

_NAME_PATTERN = re.compile(r'^[A-Za-z0-9\s\-_]+$')
SECTION_NAME_MAX = 50
LINK_NAME_MAX = 100


def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if not url.startswith("http://") and not url.startswith("https://"):
        url = "https://" + url
    return url


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in parsed.netloc


def _check_name(name: str, what: str, max_length: int) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationFailure(f"{what} cannot be empty")
    if len(name) > max_length:
        raise ValidationFailure(f"{what} must be no more than {max_length} characters")
    if not _NAME_PATTERN.match(name):
        raise ValidationFailure(f"{what} can only contain letters, numbers, spaces, hyphens and underscores")
    return name


class LinkStore:
    def __init__(
        self,
        adapter: PersistenceAdapter,
        reporter: Optional[ErrorReporter] = None,
        history: Optional[HistoryStack] = None,
        coalescer: Optional[WriteCoalescer] = None,
        key: str = LINKS_KEY,
    ):
        self.adapter = adapter
        self.reporter = reporter or LoggingErrorReporter()
        self.history = history if history is not None else HistoryStack()
        self.coalescer = coalescer
        self.key = key
        self.links: Dict[str, List[Link]] = {}
        self.persistence_ok = True
        self.load_all()

    # Loading and saving

    def _parse(self, raw: str) -> Dict[str, List[Link]]:
        return self.parse_bookmarks(json.loads(raw))

    def parse_bookmarks(self, data: Any) -> Dict[str, List[Link]]:
        """Sections from a raw bookmarks object; raises ValidationFailure, never mutates."""
        if not isinstance(data, dict):
            raise ValidationFailure(f"Bookmarks must be an object, got {type(data).__name__}")
        sections: Dict[str, List[Link]] = {}
        for section, records in data.items():
            if not isinstance(records, list):
                raise ValidationFailure(f"Section {section!r} must hold a list of links")
            links = [deserialize_link(record) for record in records]
            for link in links:
                if not is_valid_url(link.url):
                    link.url = "#"
            sections[str(section)] = links
        return sections

    def load_all(self) -> None:
        raw = self.adapter.get(self.key)
        try:
            self.links = {} if raw is None else self._parse(raw)
            logger.debug(f"Loaded {len(self.links)} link sections")
        except (ValueError, ValidationFailure) as e:
            logger.warning(f"Error loading links, starting fresh: {e}")
            self.reporter.report(PersistenceFailure(self.key, "Stored links were unreadable and have been reset"), "load links")
            self.links = {}
        self.history.clear()

    def snapshot(self) -> str:
        return json.dumps({section: [serialize_link(l) for l in links] for section, links in self.links.items()})

    def restore(self, snapshot: str) -> None:
        self.links = self._parse(snapshot)
        self._save()

    def replace_all(self, sections: Dict[str, List[Link]]) -> None:
        """Swap in whole parsed sections (from an import) as one undoable mutation."""
        self.links = dict(sections)
        self._commit()

    def _write(self) -> bool:
        try:
            ok = self.adapter.set(self.key, self.snapshot())
            error = None if ok else PersistenceFailure(self.key, "Links were not saved")
        except Exception as e:
            ok, error = False, e
        self.persistence_ok = ok
        if error is not None:
            self.reporter.report(error, "save links")
        return ok

    def _save(self) -> None:
        if self.coalescer is not None:
            self.coalescer.schedule(self.key, self._write)
        else:
            self._write()

    def _commit(self) -> None:
        self._save()
        self.history.push(self.snapshot())

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.restore(snapshot)
        return True

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    # Sections

    def sections(self) -> List[str]:
        return list(self.links)

    def get_section(self, section: str) -> List[Link]:
        return list(self.links.get(section, []))

    def add_section(self, name: str) -> str:
        name = _check_name(name, "Section name", SECTION_NAME_MAX)
        if name in self.links:
            raise ValidationFailure(f"Section {name!r} already exists")
        self.links[name] = []
        self._commit()
        logger.debug(f"Added section {name!r}")
        return name

    def rename_section(self, old: str, new: str) -> bool:
        if old not in self.links:
            return False
        new = _check_name(new, "Section name", SECTION_NAME_MAX)
        if new == old:
            return False
        if new in self.links:
            raise ValidationFailure(f"Section {new!r} already exists")
        # Rebuild so the renamed section keeps its place
        self.links = {(new if name == old else name): links for name, links in self.links.items()}
        self._commit()
        logger.debug(f"Renamed section {old!r} to {new!r}")
        return True

    def delete_section(self, name: str) -> bool:
        if name not in self.links:
            return False
        if self.links[name]:
            raise ValidationFailure("Cannot delete a section that contains links. Please remove all links from this section first.")
        del self.links[name]
        self._commit()
        return True

    # Links

    def _get(self, section: str, index: int) -> Optional[Link]:
        links = self.links.get(section)
        if links is None or not 0 <= index < len(links):
            return None
        return links[index]

    def add_link(self, section: str, name: str, url: str) -> Link:
        section = _check_name(section, "Section name", SECTION_NAME_MAX)
        name = _check_name(name, "Link name", LINK_NAME_MAX)
        url = normalize_url(url)
        if not is_valid_url(url):
            raise ValidationFailure(f"Please enter a valid URL: {url!r}")
        links = self.links.get(section, [])
        if any(link.url == url for link in links):
            raise ValidationFailure("This URL already exists in the selected section")
        link = Link(name=name, url=url)
        self.links[section] = links + [link]
        self._commit()
        logger.debug(f"Added link {url} to {section!r}")
        return link

    def update_link(self, section: str, index: int, name: Optional[str] = None, url: Optional[str] = None) -> Optional[Link]:
        link = self._get(section, index)
        if link is None:
            return None
        new_name = _check_name(name, "Link name", LINK_NAME_MAX) if name is not None else link.name
        new_url = normalize_url(url) if url is not None else link.url
        if url is not None and not is_valid_url(new_url):
            raise ValidationFailure(f"Please enter a valid URL: {new_url!r}")
        if any(other.url == new_url for i, other in enumerate(self.links[section]) if i != index):
            raise ValidationFailure("This URL already exists in the selected section")
        updated = Link(name=new_name, url=new_url, favorite=link.favorite)
        self.links[section][index] = updated
        self._commit()
        return updated

    def delete_link(self, section: str, index: int) -> bool:
        if self._get(section, index) is None:
            return False
        del self.links[section][index]
        if not self.links[section]:
            del self.links[section]
        self._commit()
        return True

    def toggle_favorite(self, section: str, index: int) -> Optional[Link]:
        link = self._get(section, index)
        if link is None:
            return None
        link.favorite = not link.favorite
        self._commit()
        return link

    def favorites(self) -> List[Tuple[str, Link]]:
        return [(section, link) for section, links in self.links.items() for link in links if link.favorite]

    def search(self, query: str) -> List[Tuple[str, Link]]:
        """Links whose name or URL contains `query`, case-insensitively, in section order."""
        pairs = [(section, link) for section, links in self.links.items() for link in links]
        if not query or not query.strip():
            return pairs
        needle = query.strip().lower()
        return [(s, l) for s, l in pairs if needle in l.name.lower() or needle in l.url.lower()]

    def count(self) -> int:
        return sum(len(links) for links in self.links.values())
