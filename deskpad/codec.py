"""
Conversion between typed records and the persisted JSON documents.

The stored field names are camelCase so that dashboard exports written by
earlier versions load unchanged. Every deserialize_* function validates the
raw record and raises ValidationFailure on anything it cannot interpret.
"""

from datetime import date, datetime
from enum import Enum
import math
from typing import Any, Dict, Optional, Type, TypeVar

from .clock import to_local_naive
from .errors import ValidationFailure
from .models import (
    INBOX_PROJECT_ID,
    Comment,
    CommentType,
    Link,
    Note,
    Priority,
    Project,
    Recurrence,
    RecurrenceType,
    Subtask,
    Task,
    TaskStatus,
)

E = TypeVar("E", bound=Enum)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_datetime(raw: Any, field_name: str = "timestamp") -> datetime:
    if isinstance(raw, datetime):
        return to_local_naive(raw)
    if not isinstance(raw, str) or not raw:
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_local_naive(datetime.fromisoformat(text))
    except ValueError:
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")


def parse_optional_datetime(raw: Any, field_name: str = "timestamp") -> Optional[datetime]:
    if raw in (None, ""):
        return None
    return parse_datetime(raw, field_name)


def parse_date(raw: Any, field_name: str = "date") -> Optional[date]:
    """Calendar date from 'YYYY-MM-DD' or a full ISO timestamp; empty -> None."""
    if raw in (None, ""):
        return None
    if isinstance(raw, datetime):
        return to_local_naive(raw).date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    if len(raw) == 10:
        try:
            return date.fromisoformat(raw)
        except ValueError:
            raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    return parse_datetime(raw, field_name).date()


def parse_enum(enum_type: Type[E], raw: Any, default: Optional[E] = None) -> E:
    if raw in (None, "") and default is not None:
        return default
    try:
        return enum_type(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationFailure(f"Invalid {enum_type.__name__} {raw!r} (expected one of: {allowed})")


def parse_tags(raw: Any) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(t, str) for t in raw):
        raise ValidationFailure(f"Tags must be a list of strings, got {raw!r}")
    tags = []
    for tag in raw:
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _require_mapping(data: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationFailure(f"{kind} record must be an object, got {type(data).__name__}")
    return data


def _optional_int(raw: Any, field_name: str) -> Optional[int]:
    if raw in (None, ""):
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    # json.loads accepts Infinity and NaN
    if isinstance(raw, float) and not math.isfinite(raw):
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    return int(raw)


def _optional_str(raw: Any, field_name: str) -> Optional[str]:
    if raw is not None and not isinstance(raw, str):
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    return raw


def _optional_list(raw: Any, field_name: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationFailure(f"Invalid {field_name}: {raw!r}")
    return raw


# Notes

def serialize_note(note: Note) -> dict:
    return {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "tags": list(note.tags),
        "createdAt": format_datetime(note.created_at),
        "modifiedAt": format_datetime(note.modified_at),
    }


def deserialize_note(data: Any) -> Note:
    data = _require_mapping(data, "Note")
    if not data.get("id"):
        raise ValidationFailure("Note record has no id")
    created_at = parse_datetime(data.get("createdAt"), "createdAt")
    return Note(
        id=str(data["id"]),
        title=str(data.get("title") or ""),
        content=str(data.get("content") or ""),
        tags=parse_tags(data.get("tags")),
        created_at=created_at,
        modified_at=parse_optional_datetime(data.get("modifiedAt"), "modifiedAt") or created_at,
    )


# Tasks

def serialize_comment(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "text": comment.text,
        "type": comment.type.value,
        "createdAt": format_datetime(comment.created_at),
    }


def deserialize_comment(data: Any) -> Comment:
    data = _require_mapping(data, "Comment")
    return Comment(
        id=str(data.get("id") or ""),
        text=str(data.get("text") or ""),
        type=parse_enum(CommentType, data.get("type"), CommentType.USER),
        created_at=parse_datetime(data.get("createdAt"), "comment createdAt"),
    )


def serialize_subtask(subtask: Subtask) -> dict:
    return {
        "id": subtask.id,
        "text": subtask.text,
        "completed": subtask.completed,
        "position": subtask.position,
    }


def deserialize_subtask(data: Any) -> Subtask:
    """Subtask from a stored record; a record without an id gets a fresh one."""
    data = _require_mapping(data, "Subtask")
    subtask = Subtask(
        text=str(data.get("text") or ""),
        completed=bool(data.get("completed", False)),
        position=_optional_int(data.get("position"), "subtask position") or 0,
    )
    if data.get("id"):
        subtask.id = str(data["id"])
    return subtask


def serialize_recurrence(recurrence: Optional[Recurrence]) -> Optional[dict]:
    if recurrence is None:
        return None
    return {
        "type": recurrence.type.value,
        "interval": recurrence.interval,
        "endDate": format_date(recurrence.end_date),
    }


def deserialize_recurrence(data: Any) -> Optional[Recurrence]:
    if data is None:
        return None
    data = _require_mapping(data, "Recurrence")
    interval = _optional_int(data.get("interval"), "recurrence interval")
    if interval is None:
        interval = 1
    if interval < 1:
        raise ValidationFailure(f"Recurrence interval must be at least 1, got {interval}")
    return Recurrence(
        type=parse_enum(RecurrenceType, data.get("type"), RecurrenceType.DAILY),
        interval=interval,
        end_date=parse_date(data.get("endDate"), "recurrence endDate"),
    )


def serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "text": task.text,
        "description": task.description,
        "completed": task.completed,
        "status": task.status.value,
        "priority": task.priority.value,
        "dueDate": format_date(task.due_date),
        "createdAt": format_datetime(task.created_at),
        "completedAt": format_datetime(task.completed_at),
        "modifiedAt": format_datetime(task.modified_at),
        "projectId": task.project_id,
        "parentId": task.parent_id,
        "subtasks": [serialize_subtask(s) for s in task.subtasks],
        "tags": list(task.tags),
        "comments": [serialize_comment(c) for c in task.comments],
        "isRecurring": task.is_recurring,
        "recurrence": serialize_recurrence(task.recurrence),
        "pomodorosCompleted": task.pomodoros_completed,
        "estimatedPomodoros": task.estimated_pomodoros,
        "isMyDay": task.is_my_day,
        "position": task.position,
    }


def deserialize_task(data: Any) -> Task:
    data = _require_mapping(data, "Task")
    if not data.get("id"):
        raise ValidationFailure("Task record has no id")

    # Records written before status existed only carry the completed flag
    default_status = TaskStatus.DONE if data.get("completed") else TaskStatus.TODO
    status = parse_enum(TaskStatus, data.get("status"), default_status)

    recurrence = deserialize_recurrence(data.get("recurrence"))
    is_recurring = bool(data.get("isRecurring")) and recurrence is not None

    created_at = parse_datetime(data.get("createdAt"), "createdAt")
    completed_at = parse_optional_datetime(data.get("completedAt"), "completedAt")
    if status != TaskStatus.DONE:
        completed_at = None

    return Task(
        id=str(data["id"]),
        text=str(data.get("text") or ""),
        description=str(data.get("description") or data.get("notes") or data.get("summary") or ""),
        status=status,
        priority=parse_enum(Priority, data.get("priority"), Priority.MEDIUM),
        due_date=parse_date(data.get("dueDate"), "dueDate"),
        tags=parse_tags(data.get("tags")),
        project_id=_optional_str(data.get("projectId", INBOX_PROJECT_ID), "projectId"),
        parent_id=_optional_str(data.get("parentId"), "parentId") or None,
        subtasks=[deserialize_subtask(s) for s in _optional_list(data.get("subtasks"), "subtasks")],
        comments=[deserialize_comment(c) for c in data.get("comments") or []],
        is_recurring=is_recurring,
        recurrence=recurrence if is_recurring else None,
        pomodoros_completed=_optional_int(data.get("pomodorosCompleted"), "pomodorosCompleted") or 0,
        estimated_pomodoros=_optional_int(data.get("estimatedPomodoros"), "estimatedPomodoros"),
        is_my_day=bool(data.get("isMyDay", False)),
        position=_optional_int(data.get("position"), "position") or 0,
        completed_at=completed_at,
        created_at=created_at,
        modified_at=parse_optional_datetime(data.get("modifiedAt"), "modifiedAt") or created_at,
    )


# Projects

def serialize_project(project: Project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "color": project.color,
        "archived": project.archived,
        "position": project.position,
        "createdAt": format_datetime(project.created_at),
        "modifiedAt": format_datetime(project.modified_at),
    }


def deserialize_project(data: Any) -> Project:
    data = _require_mapping(data, "Project")
    if not data.get("id"):
        raise ValidationFailure("Project record has no id")
    created_at = parse_datetime(data.get("createdAt"), "createdAt")
    return Project(
        id=str(data["id"]),
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        color=str(data.get("color") or "#3b82f6"),
        archived=bool(data.get("archived", False)),
        position=_optional_int(data.get("position"), "position") or 0,
        created_at=created_at,
        modified_at=parse_optional_datetime(data.get("modifiedAt"), "modifiedAt") or created_at,
    )


# Links

def serialize_link(link: Link) -> dict:
    return {"name": link.name, "url": link.url, "favorite": link.favorite}


def deserialize_link(data: Any) -> Link:
    data = _require_mapping(data, "Link")
    if not isinstance(data.get("url"), str) or not data["url"]:
        raise ValidationFailure(f"Link record has no url: {data!r}")
    return Link(
        name=str(data.get("name") or ""),
        url=data["url"],
        favorite=bool(data.get("favorite", False)),
    )
