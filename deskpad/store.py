from copy import deepcopy
from dataclasses import fields, replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar, Union
import json

from .clock import Clock, SystemClock
from .codec import (
    deserialize_comment,
    deserialize_note,
    deserialize_project,
    deserialize_recurrence,
    deserialize_subtask,
    deserialize_task,
    parse_date,
    parse_enum,
    parse_optional_datetime,
    serialize_note,
    serialize_project,
    serialize_task,
)
from .errors import ErrorReporter, LoggingErrorReporter, PersistenceFailure, ValidationFailure
from .history import HistoryStack
from .logger import get_logger
from .models import (
    INBOX_PROJECT_ID,
    Comment,
    CommentType,
    Note,
    Priority,
    Project,
    Recurrence,
    Subtask,
    Task,
    TaskStatus,
    default_projects,
)
from .persistence import PersistenceAdapter, WriteCoalescer
from .recurrence import next_occurrence
from .search import canonical_sort, filter_by_tag, search
from .tags import TagCount, all_tags

logger = get_logger("store")

T = TypeVar("T")


class EntityStore(Generic[T]):
    """
    In-memory collection of one entity kind, written through to a persistence key.

    Items are kept newest-insert-first. Every successful add/update/remove saves
    the whole collection and pushes a snapshot onto the history stack. Persistence
    failures are reported, never raised; memory stays the source of truth and the
    next mutation retries the write.
    """

    entity_type: type = object
    kind = "entity"
    key = ""
    search_fields: Sequence[str] = ()
    # field name -> accepted types, checked on every item before it is stored
    field_types: Mapping[str, tuple] = {}

    def __init__(
        self,
        adapter: PersistenceAdapter,
        clock: Optional[Clock] = None,
        reporter: Optional[ErrorReporter] = None,
        history: Optional[HistoryStack] = None,
        coalescer: Optional[WriteCoalescer] = None,
        key: Optional[str] = None,
    ):
        self.adapter = adapter
        self.clock = clock or SystemClock()
        self.reporter = reporter or LoggingErrorReporter()
        self.history = history if history is not None else HistoryStack()
        self.coalescer = coalescer
        if key is not None:
            self.key = key
        self.items: List[T] = []
        self.persistence_ok = True
        self.load_all()

    # Serialization hooks

    def _serialize_item(self, item: T) -> dict:
        raise NotImplementedError

    def _deserialize_item(self, data: Any) -> T:
        raise NotImplementedError

    def _load_missing(self) -> List[T]:
        """Items to start with when nothing is stored under the key."""
        return []

    def _after_load(self) -> bool:
        """Fix-ups after loading; return True when the collection changed."""
        return False

    def _coerce(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Turn raw field values (strings from the shell or an import) into typed ones."""
        return values

    def _validate(self, item: T) -> None:
        """Raise ValidationFailure for an item that must not be stored."""

    def _check(self, item: T) -> None:
        """Every check an item passes before it enters the collection."""
        if not isinstance(item.id, str) or not item.id:
            raise ValidationFailure(f"Invalid {self.kind} id: {item.id!r}")
        for name, types in self.field_types.items():
            value = getattr(item, name)
            # bool is an int subclass, so a flag never counts as a number
            if not isinstance(value, types) or (isinstance(value, bool) and bool not in types):
                raise ValidationFailure(f"Invalid {self.kind} {name}: {value!r}")
        if not all(isinstance(tag, str) for tag in getattr(item, "tags", [])):
            raise ValidationFailure(f"{self.kind.capitalize()} tags must be strings")
        self._validate(item)
        try:
            self._serialize_item(item)
        except (AttributeError, TypeError, ValueError) as e:
            raise ValidationFailure(f"Cannot store {self.kind}: {e}")

    # Loading and saving

    def _parse(self, raw: str) -> List[T]:
        return self.parse_records(json.loads(raw))

    def parse_records(self, data: Any) -> List[T]:
        """Typed items from raw records; raises ValidationFailure, never mutates."""
        if not isinstance(data, list):
            raise ValidationFailure(f"Stored {self.kind}s must be a list, got {type(data).__name__}")
        items = [self._deserialize_item(record) for record in data]
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise ValidationFailure(f"Stored {self.kind}s contain duplicate ids")
        return items

    def load_all(self) -> None:
        """Rebuild the collection from storage; corrupt data resets it to empty."""
        raw = self.adapter.get(self.key)
        try:
            self.items = self._load_missing() if raw is None else self._parse(raw)
            logger.debug(f"Loaded {len(self.items)} {self.kind}s")
        except (ValueError, ValidationFailure) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Error loading {self.kind}s, starting fresh: {e}")
            self.reporter.report(PersistenceFailure(self.key, f"Stored {self.kind}s were unreadable and have been reset"), f"load {self.kind}s")
            self.items = []
        # Seeded or migrated collections are written out straight away
        if self._after_load() or (raw is None and self.items):
            self._save()
        # History starts empty; the first snapshot is pushed by the first mutation
        self.history.clear()

    def snapshot(self) -> str:
        return json.dumps([self._serialize_item(item) for item in self.items])

    def restore(self, snapshot: str) -> None:
        """Replace the live collection with `snapshot` and persist it."""
        self.items = self._parse(snapshot)
        self._save()

    def replace_all(self, items: List[T]) -> None:
        """Swap in a whole collection (from an import) as one undoable mutation."""
        self.items = list(items)
        self._commit()
        logger.info(f"Replaced {self.kind}s with {len(self.items)} imported records")

    def _write(self) -> bool:
        try:
            ok = self.adapter.set(self.key, self.snapshot())
            error = None if ok else PersistenceFailure(self.key, f"{self.kind.capitalize()}s were not saved")
        except Exception as e:
            ok, error = False, e
        self.persistence_ok = ok
        if error is not None:
            self.reporter.report(error, f"save {self.kind}s")
        else:
            logger.debug(f"Saved {len(self.items)} {self.kind}s")
        return ok

    def _save(self) -> bool:
        if self.coalescer is not None:
            self.coalescer.schedule(self.key, self._write)
            return True
        return self._write()

    def _commit(self) -> None:
        self._save()
        self.history.push(self.snapshot())

    # CRUD

    def _build(self, partial: Union[T, Mapping[str, Any]]) -> T:
        if isinstance(partial, self.entity_type):
            return deepcopy(partial)
        if not isinstance(partial, Mapping):
            raise ValidationFailure(f"Cannot create a {self.kind} from {type(partial).__name__}")
        values = self._check_fields(dict(partial))
        return self.entity_type(**self._coerce(values))

    def _check_fields(self, values: Dict[str, Any]) -> Dict[str, Any]:
        known = {f.name for f in fields(self.entity_type)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationFailure(f"Unknown {self.kind} field(s): {', '.join(unknown)}")
        return values

    def _now(self) -> datetime:
        return self.clock.now()

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return None

    def add(self, partial: Union[T, Mapping[str, Any]]) -> T:
        """Insert a new entity at the head of the collection and return it."""
        item = self._build(partial)
        now = self._now()
        item.created_at = now
        item.modified_at = now
        self._check(item)
        if self._index_of(item.id) is not None:
            raise ValidationFailure(f"A {self.kind} with id {item.id!r} already exists")
        self.items.insert(0, item)
        self._commit()
        logger.debug(f"Added {self.kind} {item.id}")
        return item

    def update(self, item_id: str, patch: Mapping[str, Any]) -> Optional[T]:
        """Merge `patch` over the entity; None when `item_id` is unknown."""
        index = self._index_of(item_id)
        if index is None:
            logger.debug(f"Update skipped, no {self.kind} {item_id}")
            return None
        values = dict(patch)
        values.pop("modified_at", None)  # always stamped here
        for protected in ("id", "created_at"):
            if protected in values:
                raise ValidationFailure(f"{self.kind.capitalize()} field {protected!r} cannot be changed")
        values = self._coerce(self._check_fields(values))

        current = self.items[index]
        updated = replace(current, **values)
        updated.modified_at = max(self._now(), current.created_at)
        # Raises before anything in memory changes
        self._check(updated)

        self.items[index] = updated
        self._after_update(current, updated)
        self._commit()
        logger.debug(f"Updated {self.kind} {item_id}")
        return updated

    def _after_update(self, before: T, after: T) -> None:
        """Hook run after an update is applied, before it is saved."""

    def remove(self, item_id: str) -> bool:
        index = self._index_of(item_id)
        if index is None:
            return False
        del self.items[index]
        self._commit()
        logger.debug(f"Deleted {self.kind} {item_id}")
        return True

    def undo(self) -> bool:
        """Restore the state before the last mutation; False when there is none."""
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.restore(snapshot)
        logger.debug(f"Undo applied to {self.kind}s")
        return True

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    # Queries

    def __len__(self) -> int:
        return len(self.items)

    def get_by_id(self, item_id: str) -> Optional[T]:
        index = self._index_of(item_id)
        return self.items[index] if index is not None else None

    def get_all(self) -> List[T]:
        return canonical_sort(self.items)

    def list(self, predicate: Callable[[T], bool]) -> List[T]:
        return canonical_sort(item for item in self.items if predicate(item))

    def search(self, query: str) -> List[T]:
        return search(self.items, query, self.search_fields)

    def by_tag(self, tag: str) -> List[T]:
        return filter_by_tag(self.items, tag)

    def all_tags(self) -> List[TagCount]:
        return all_tags(self.items)


class NoteStore(EntityStore[Note]):
    entity_type = Note
    kind = "note"
    key = "notes"
    search_fields = ("title", "content")
    field_types = {"title": (str,), "content": (str,), "tags": (list,)}

    def _serialize_item(self, item: Note) -> dict:
        return serialize_note(item)

    def _deserialize_item(self, data: Any) -> Note:
        return deserialize_note(data)

    def _coerce(self, values: Dict[str, Any]) -> Dict[str, Any]:
        if "tags" in values:
            values["tags"] = _clean_tags(values["tags"])
        return values

    def stats(self, now: Optional[datetime] = None) -> dict:
        now = now or self._now()
        week_ago = now - timedelta(days=7)
        return {
            "total_notes": len(self.items),
            "total_tags": len(self.all_tags()),
            "recent_notes": sum(1 for note in self.items if note.modified_at >= week_ago),
        }


SORT_MODES = (
    "default",
    "priority-high",
    "priority-low",
    "due-date-asc",
    "due-date-desc",
    "created-new",
    "created-old",
    "alphabetical",
    "status",
)

_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}
_STATUS_RANK = {TaskStatus.IN_PROGRESS: 0, TaskStatus.TODO: 1, TaskStatus.BLOCKED: 2, TaskStatus.DONE: 3}

TASK_SETTINGS_KEY = "taskSettings"
LEGACY_TODOS_KEY = "todos"
DATA_VERSION = "2.0"


def _clean_tags(tags: Any) -> List[str]:
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, (list, tuple, set)) or not all(isinstance(t, str) for t in tags):
        raise ValidationFailure(f"Tags must be strings, got {tags!r}")
    cleaned: List[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _typed_list(raw: Any, record_type: type, parse: Callable[[Any], Any], field_name: str) -> list:
    """Records kept as they are, raw mappings read through the stored format."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationFailure(f"Task {field_name} must be a list, got {raw!r}")
    return [item if isinstance(item, record_type) else parse(item) for item in raw]


class TaskStore(EntityStore[Task]):
    entity_type = Task
    kind = "task"
    key = "tasks"
    search_fields = ("text", "description")
    field_types = {
        "text": (str,),
        "description": (str,),
        "status": (TaskStatus,),
        "priority": (Priority,),
        "due_date": (date, type(None)),
        "tags": (list,),
        "project_id": (str, type(None)),
        "parent_id": (str, type(None)),
        "subtasks": (list,),
        "comments": (list,),
        "is_recurring": (bool,),
        "recurrence": (Recurrence, type(None)),
        "pomodoros_completed": (int,),
        "estimated_pomodoros": (int, type(None)),
        "is_my_day": (bool,),
        "position": (int,),
        "completed_at": (datetime, type(None)),
    }

    def __init__(self, *args, **kwargs):
        self.last_spawned: Optional[Task] = None
        self.current_sort = "default"
        super().__init__(*args, **kwargs)
        self._load_settings()

    def _serialize_item(self, item: Task) -> dict:
        return serialize_task(item)

    def _deserialize_item(self, data: Any) -> Task:
        return deserialize_task(data)

    def _load_missing(self) -> List[Task]:
        """Migrate the legacy flat todo list when no task collection exists yet."""
        raw = self.adapter.get(LEGACY_TODOS_KEY)
        if raw is None:
            return []
        try:
            todos = json.loads(raw)
            if not isinstance(todos, list):
                raise ValidationFailure("Legacy todos must be a list")
            tasks = [self._migrate_todo(todo, index) for index, todo in enumerate(todos)]
        except (ValueError, ValidationFailure) as e:
            logger.warning(f"Migration from legacy todos failed, starting fresh: {e}")
            return []
        logger.info(f"Migrated {len(tasks)} legacy todos")
        # The legacy key stays in place; load_all() writes the migrated tasks
        return tasks

    def import_records(self, data: Any) -> List[Task]:
        """Parse imported task records; records without a status are legacy todos."""
        if not isinstance(data, list):
            raise ValidationFailure(f"Imported todos must be a list, got {type(data).__name__}")
        records = [
            serialize_task(self._migrate_todo(record, index))
            if isinstance(record, dict) and "status" not in record else record
            for index, record in enumerate(data)
        ]
        return self.parse_records(records)

    def _migrate_todo(self, todo: Any, index: int) -> Task:
        if not isinstance(todo, dict):
            raise ValidationFailure(f"Legacy todo must be an object, got {todo!r}")
        created_raw = todo.get("createdAt")
        record = {
            "id": f"task_migrated_{index}",
            "text": todo.get("text", ""),
            "description": todo.get("summary") or todo.get("notes") or "",
            "completed": bool(todo.get("completed")),
            "priority": todo.get("priority") or Priority.MEDIUM.value,
            "dueDate": todo.get("dueDate"),
            "createdAt": created_raw or self._now().isoformat(),
            "projectId": INBOX_PROJECT_ID,
            "position": index,
        }
        task = deserialize_task(record)
        if task.completed and task.completed_at is None:
            task.completed_at = task.modified_at
        return task

    def _load_settings(self) -> None:
        raw = self.adapter.get(TASK_SETTINGS_KEY)
        if raw is None:
            return
        try:
            settings = json.loads(raw)
            sort = settings.get("currentSort", "default") if isinstance(settings, dict) else "default"
        except ValueError as e:
            logger.warning(f"Error loading task settings: {e}")
            return
        self.current_sort = sort if sort in SORT_MODES else "default"

    def set_current_sort(self, mode: str) -> None:
        if mode not in SORT_MODES:
            raise ValidationFailure(f"Unknown sort mode {mode!r}")
        self.current_sort = mode
        settings = {"dataVersion": DATA_VERSION, "currentSort": mode}
        if not self.adapter.set(TASK_SETTINGS_KEY, json.dumps(settings)):
            self.reporter.report(PersistenceFailure(TASK_SETTINGS_KEY, "Sort preference was not saved"), "task settings")

    # Mutations

    def _coerce(self, values: Dict[str, Any]) -> Dict[str, Any]:
        if "status" in values:
            values["status"] = parse_enum(TaskStatus, values["status"])
        if "priority" in values:
            values["priority"] = parse_enum(Priority, values["priority"])
        if "due_date" in values:
            values["due_date"] = parse_date(values["due_date"], "due date")
        if "recurrence" in values and isinstance(values["recurrence"], Mapping):
            values["recurrence"] = deserialize_recurrence(_camel_recurrence(values["recurrence"]))
        if "tags" in values:
            values["tags"] = _clean_tags(values["tags"])
        if "comments" in values:
            values["comments"] = _typed_list(values["comments"], Comment, deserialize_comment, "comments")
        if "subtasks" in values:
            values["subtasks"] = _typed_list(values["subtasks"], Subtask, deserialize_subtask, "subtasks")
        if "completed_at" in values:
            values["completed_at"] = parse_optional_datetime(values["completed_at"], "completed at")
        if "recurrence" in values and "is_recurring" not in values:
            values["is_recurring"] = values["recurrence"] is not None
        return values

    def _build(self, partial: Union[Task, Mapping[str, Any]]) -> Task:
        if isinstance(partial, Mapping):
            partial = self._translate_completed(dict(partial), None)
        task = super()._build(partial)
        if task.completed and task.completed_at is None:
            task.completed_at = self._now()
        return task

    def _translate_completed(self, values: Dict[str, Any], current: Optional[Task]) -> Dict[str, Any]:
        """Map a `completed` flag onto status, the single source of completion."""
        if "completed" not in values:
            return values
        completed = bool(values.pop("completed"))
        if "status" not in values:
            if completed:
                values["status"] = TaskStatus.DONE
            elif current is None or current.completed:
                values["status"] = TaskStatus.TODO
        return values

    def _validate(self, item: Task) -> None:
        if not item.text.strip():
            raise ValidationFailure("Task text cannot be empty")
        if item.is_recurring and item.recurrence is None:
            raise ValidationFailure("A recurring task needs a recurrence rule")
        if not item.is_recurring:
            item.recurrence = None
        if item.recurrence is not None and item.recurrence.interval < 1:
            raise ValidationFailure("Recurrence interval must be at least 1")
        if item.estimated_pomodoros is not None and item.estimated_pomodoros < 0:
            raise ValidationFailure("Estimated pomodoros cannot be negative")
        if not all(isinstance(c, Comment) for c in item.comments):
            raise ValidationFailure("Task comments must be Comment records")
        if not all(isinstance(s, Subtask) for s in item.subtasks):
            raise ValidationFailure("Task subtasks must be Subtask records")

    def update(self, item_id: str, patch: Mapping[str, Any]) -> Optional[Task]:
        current = self.get_by_id(item_id)
        if current is None:
            return super().update(item_id, patch)
        return super().update(item_id, self._translate_completed(dict(patch), current))

    def _after_update(self, before: Task, after: Task) -> None:
        self.last_spawned = None
        if after.completed and not before.completed:
            after.completed_at = after.modified_at
            after.comments = after.comments + [self._system_comment("Task completed")]
            spawned = next_occurrence(after, self._now())
            if spawned is not None:
                self.items.insert(0, spawned)
                self.last_spawned = spawned
                after.comments = after.comments + [
                    self._system_comment(f"Next occurrence scheduled for {spawned.due_date.isoformat()}")
                ]
                logger.debug(f"Spawned recurring task {spawned.id} due {spawned.due_date}")
        elif before.completed and not after.completed:
            after.completed_at = None

    def _system_comment(self, text: str) -> Comment:
        return Comment(text=text, type=CommentType.SYSTEM, created_at=self._now())

    def complete_task(self, task_id: str) -> Optional[Task]:
        """Mark done; a recurring task spawns its next occurrence (see last_spawned)."""
        return self.set_status(task_id, TaskStatus.DONE)

    def reopen_task(self, task_id: str) -> Optional[Task]:
        return self.set_status(task_id, TaskStatus.TODO)

    def set_status(self, task_id: str, status: Union[TaskStatus, str]) -> Optional[Task]:
        return self.update(task_id, {"status": status})

    def add_comment(self, task_id: str, text: str, comment_type: Union[CommentType, str] = CommentType.USER) -> Optional[Comment]:
        text = (text or "").strip()
        if not text:
            raise ValidationFailure("Comment cannot be empty")
        task = self.get_by_id(task_id)
        if task is None:
            return None
        comment = Comment(text=text, type=parse_enum(CommentType, comment_type), created_at=self._now())
        self.update(task_id, {"comments": task.comments + [comment]})
        return comment

    def delete_comment(self, task_id: str, comment_id: str) -> bool:
        task = self.get_by_id(task_id)
        if task is None:
            return False
        remaining = [c for c in task.comments if c.id != comment_id]
        if len(remaining) == len(task.comments):
            return False
        self.update(task_id, {"comments": remaining})
        return True

    def duplicate_task(self, task_id: str) -> Optional[Task]:
        task = self.get_by_id(task_id)
        if task is None:
            return None
        return self.add({
            "text": f"{task.text} (copy)",
            "description": task.description,
            "priority": task.priority,
            "due_date": task.due_date,
            "tags": list(task.tags),
            "project_id": task.project_id,
            "is_recurring": task.is_recurring,
            "recurrence": replace(task.recurrence) if task.recurrence else None,
            "estimated_pomodoros": task.estimated_pomodoros,
            "position": task.position,
        })

    def record_pomodoro(self, task_id: str) -> Optional[Task]:
        task = self.get_by_id(task_id)
        if task is None:
            return None
        return self.update(task_id, {"pomodoros_completed": task.pomodoros_completed + 1})

    def move_tasks(self, from_project: str, to_project: Optional[str]) -> int:
        """Reassign every task of one project to another in a single write."""
        moved = 0
        now = self._now()
        for task in self.items:
            if task.project_id == from_project:
                task.project_id = to_project
                task.modified_at = max(now, task.created_at)
                moved += 1
        if moved:
            self._commit()
        return moved

    # Views

    def by_project(self, project_id: Optional[str]) -> List[Task]:
        return self.list(lambda t: t.project_id == project_id)

    def by_status(self, status: Union[TaskStatus, str]) -> List[Task]:
        status = parse_enum(TaskStatus, status)
        return self.list(lambda t: t.status == status)

    def my_day(self, today: Optional[date] = None) -> List[Task]:
        """Open tasks flagged for today, overdue, or due today."""
        today = today or self.clock.today()
        return self.list(lambda t: not t.completed and (t.is_my_day or (t.due_date is not None and t.due_date <= today)))

    def important(self) -> List[Task]:
        return self.list(lambda t: not t.completed and t.priority == Priority.HIGH)

    def upcoming(self, today: Optional[date] = None, days: int = 7) -> List[Task]:
        today = today or self.clock.today()
        horizon = today + timedelta(days=days)
        return self.list(lambda t: not t.completed and t.due_date is not None and today <= t.due_date <= horizon)

    def completed_tasks(self) -> List[Task]:
        done = [t for t in self.items if t.completed]
        return sorted(done, key=lambda t: t.completed_at or t.modified_at, reverse=True)

    def sorted_tasks(self, mode: Optional[str] = None, tasks: Optional[List[Task]] = None) -> List[Task]:
        mode = mode or self.current_sort
        if mode not in SORT_MODES:
            raise ValidationFailure(f"Unknown sort mode {mode!r}")
        tasks = list(self.items if tasks is None else tasks)

        if mode == "priority-high":
            return sorted(tasks, key=lambda t: _PRIORITY_RANK[t.priority])
        if mode == "priority-low":
            return sorted(tasks, key=lambda t: _PRIORITY_RANK[t.priority], reverse=True)
        if mode in ("due-date-asc", "due-date-desc"):
            dated = sorted((t for t in tasks if t.due_date is not None), key=lambda t: t.due_date,
                           reverse=(mode == "due-date-desc"))
            return dated + [t for t in tasks if t.due_date is None]
        if mode == "created-new":
            return sorted(tasks, key=lambda t: t.created_at, reverse=True)
        if mode == "created-old":
            return sorted(tasks, key=lambda t: t.created_at)
        if mode == "alphabetical":
            return sorted(tasks, key=lambda t: t.text.casefold())
        if mode == "status":
            return sorted(tasks, key=lambda t: _STATUS_RANK[t.status])
        return sorted(tasks, key=lambda t: t.position)


def _camel_recurrence(values: Mapping[str, Any]) -> Dict[str, Any]:
    result = dict(values)
    if "end_date" in result:
        result["endDate"] = result.pop("end_date")
    return result


class ProjectStore(EntityStore[Project]):
    entity_type = Project
    kind = "project"
    key = "projects"
    search_fields = ("name", "description")
    field_types = {
        "name": (str,),
        "description": (str,),
        "color": (str,),
        "archived": (bool,),
        "position": (int,),
    }

    def _serialize_item(self, item: Project) -> dict:
        return serialize_project(item)

    def _deserialize_item(self, data: Any) -> Project:
        return deserialize_project(data)

    def _load_missing(self) -> List[Project]:
        return default_projects()

    def _after_load(self) -> bool:
        if not self.items:
            self.items = default_projects()
            return True
        if self._index_of(INBOX_PROJECT_ID) is None:
            self.items.insert(0, default_projects()[0])
            return True
        return False

    def _validate(self, item: Project) -> None:
        if not item.name.strip():
            raise ValidationFailure("Project name cannot be empty")

    def add(self, partial: Union[Project, Mapping[str, Any]]) -> Project:
        if isinstance(partial, Mapping) and "position" not in partial:
            partial = dict(partial, position=max((p.position for p in self.items), default=-1) + 1)
        return super().add(partial)

    def active_projects(self) -> List[Project]:
        return sorted((p for p in self.items if not p.archived), key=lambda p: p.position)

    def archived_projects(self) -> List[Project]:
        return sorted((p for p in self.items if p.archived), key=lambda p: p.position)

    def toggle_archive(self, project_id: str) -> Optional[Project]:
        if project_id == INBOX_PROJECT_ID:
            raise ValidationFailure("The Inbox project cannot be archived")
        project = self.get_by_id(project_id)
        if project is None:
            return None
        return self.update(project_id, {"archived": not project.archived})

    def delete_project(self, project_id: str, tasks: Optional[TaskStore] = None) -> bool:
        """Delete a project, moving its tasks to the Inbox. The Inbox itself stays."""
        if project_id == INBOX_PROJECT_ID:
            logger.warning("Cannot delete Inbox project")
            return False
        if self.get_by_id(project_id) is None:
            return False
        if tasks is not None:
            tasks.move_tasks(project_id, INBOX_PROJECT_ID)
        return self.remove(project_id)
