import re
from typing import Dict, List, Tuple

COMMANDS = {
    "task": "Enter task mode - new input will be saved as tasks",
    "note": "Enter note mode - new input will be saved as notes",
    "edit": "Enter edit mode - modify existing items or add new tasks",
    "complete": "Mark a task as completed (format: complete <item_number>)",
    "reopen": "Mark a completed task as not done (format: reopen <item_number>)",
    "delete": "Delete a task or note (format: delete <item_number>)",
    "tag": "Add tag to item (format: tag <item_number> <tag1> <tag2> <[[multi-word-tag]]>)",
    "search": "Filter the list (format: search <text>, plain 'search' clears)",
    "undo": "Undo the last change",
    "stats": "Show productivity statistics",
    "link": "Save a bookmark (format: link <section> <name> <url>, quote names with spaces)",
    "exit": "Exit the program"
}

_BRACKET_TAG = re.compile(r'#\[\[(.*?)\]\]')
_BRACKET = re.compile(r'\[\[(.*?)\]\]')


def _tag_from_brackets(content: str) -> str:
    """'name: value' property tags are kept as 'name:value'."""
    if ':' in content:
        name, value = content.split(':', 1)
        name, value = name.strip(), value.strip()
        if not name:
            return ""
        return f"{name}:{value}" if value else name
    return content


def _add(tags: List[str], tag: str) -> None:
    if tag and tag not in tags:
        tags.append(tag)


def process_hashtags(text: str) -> Tuple[str, List[str]]:
    """Extract hashtags from text and clean up the content.
    Returns (cleaned_text, tags) with tags in the order they appear.

    Supports three tag formats:
    1. Simple tags: #tag
    2. Multi-word tags: #[[multi word tag]]
    3. Property tags: #[[tag: value]]

    A tag inside the sentence keeps its words in the content; a tag at the
    very end is a pure tag and is removed from it.
    """
    placeholders: Dict[str, str] = {}

    def replace_tag(match):
        tag_content = match.group(1).strip()
        if not tag_content:
            return ""
        placeholder = f"__TAG_PLACEHOLDER_{len(placeholders)}__"
        placeholders[placeholder] = tag_content
        return f" {placeholder} "

    words = _BRACKET_TAG.sub(replace_tag, text).split()
    tags: List[str] = []
    content_words = []
    for position, word in enumerate(words):
        is_last = position == len(words) - 1
        if word in placeholders:
            _add(tags, _tag_from_brackets(placeholders[word]))
            if not is_last:
                content_words.append(placeholders[word])
        elif word.startswith('#') and len(word) > 1:
            _add(tags, word[1:])
            if not is_last:
                content_words.append(word[1:])
        elif not (is_last and word == '#'):
            content_words.append(word)

    return ' '.join(content_words), tags


def parse_tag_args(tags_str: str) -> List[str]:
    """Tags given to the tag command: words and [[multi word tags]], '#' optional."""
    placeholders: Dict[str, str] = {}

    def replace_tag(match):
        tag = match.group(1).strip()
        if not tag:
            return ""
        placeholder = f"__TAG_PLACEHOLDER_{len(placeholders)}__"
        placeholders[placeholder] = tag
        return f" {placeholder} "

    tags: List[str] = []
    for word in _BRACKET.sub(replace_tag, tags_str.replace('#[[', '[[')).split():
        if word in placeholders:
            _add(tags, placeholders[word])
        else:
            _add(tags, word.lstrip('#'))
    return tags


def format_tag(tag: str) -> str:
    # If tag contains spaces, use [[tag name]] format
    if ' ' in tag:
        return f"#[[{tag}]]"
    return f"#{tag}"


def format_tags(tags: List[str]) -> str:
    return " ".join(format_tag(t) for t in tags)
