"""Read-time projections shared by every store: canonical order, search, tag filter."""

from typing import Iterable, List, Sequence, TypeVar

T = TypeVar("T")


def canonical_sort(items: Iterable[T]) -> List[T]:
    """Most recently modified first; equal timestamps keep their collection order."""
    # sorted() is stable under reverse=True, so ties stay in insertion order
    return sorted(items, key=lambda item: item.modified_at, reverse=True)


def matches(item, query: str, fields: Sequence[str]) -> bool:
    """True when `query` (already lower-cased) occurs in any text field or tag."""
    for name in fields:
        value = getattr(item, name, "") or ""
        if query in value.lower():
            return True
    return any(query in tag.lower() for tag in getattr(item, "tags", []))


def search(items: Iterable[T], query: str, fields: Sequence[str]) -> List[T]:
    """
    Case-insensitive substring search across `fields` and tags.

    An empty or whitespace-only query returns everything in canonical order.
    """
    if not query or not query.strip():
        return canonical_sort(items)
    needle = query.strip().lower()
    return canonical_sort(item for item in items if matches(item, needle, fields))


def filter_by_tag(items: Iterable[T], tag: str) -> List[T]:
    """Items carrying exactly `tag` (case-sensitive), canonically sorted."""
    return canonical_sort(item for item in items if tag in item.tags)
