from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

INBOX_PROJECT_ID = "inbox"
PERSONAL_PROJECT_ID = "personal"


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    BLOCKED = "blocked"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CommentType(str, Enum):
    USER = "user"
    SYSTEM = "system"


class TaggedMixin:
    """Tag helpers shared by notes and tasks. Tags are case-sensitive strings."""

    tags: List[str]

    def add_tag(self, tag: str) -> None:
        tag = tag.strip()
        if tag and tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass
class Comment:
    text: str = ""
    type: CommentType = CommentType.USER
    id: str = field(default_factory=lambda: new_id("comment"))
    created_at: datetime = field(default_factory=lambda: datetime.now())


@dataclass
class Recurrence:
    type: RecurrenceType = RecurrenceType.DAILY
    interval: int = 1  # Number of `type` units between occurrences
    end_date: Optional[date] = None


@dataclass
class Subtask:
    text: str = ""
    completed: bool = False
    position: int = 0
    id: str = field(default_factory=lambda: new_id("subtask"))


@dataclass
class Note(TaggedMixin):
    title: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: new_id("note"))
    created_at: datetime = field(default_factory=lambda: datetime.now())
    modified_at: Optional[datetime] = None

    def __post_init__(self):
        if self.modified_at is None:
            self.modified_at = self.created_at


@dataclass
class Task(TaggedMixin):
    text: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)
    project_id: Optional[str] = INBOX_PROJECT_ID
    parent_id: Optional[str] = None
    subtasks: List[Subtask] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    is_recurring: bool = False
    recurrence: Optional[Recurrence] = None
    pomodoros_completed: int = 0
    estimated_pomodoros: Optional[int] = None
    is_my_day: bool = False
    position: int = 0
    completed_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: new_id("task"))
    created_at: datetime = field(default_factory=lambda: datetime.now())
    modified_at: Optional[datetime] = None

    def __post_init__(self):
        if self.modified_at is None:
            self.modified_at = self.created_at

    @property
    def completed(self) -> bool:
        # Derived from status; there is no separately stored flag to drift
        return self.status == TaskStatus.DONE


@dataclass
class Project:
    name: str = ""
    description: str = ""
    color: str = "#3b82f6"  # Default blue
    archived: bool = False
    position: int = 0
    id: str = field(default_factory=lambda: new_id("project"))
    created_at: datetime = field(default_factory=lambda: datetime.now())
    modified_at: Optional[datetime] = None

    def __post_init__(self):
        if self.modified_at is None:
            self.modified_at = self.created_at


@dataclass
class Link:
    name: str
    url: str
    favorite: bool = False


def default_projects() -> List[Project]:
    return [
        Project(
            id=INBOX_PROJECT_ID,
            name="Inbox",
            description="Uncategorized tasks",
            color="#6b7280",
            position=0,
        ),
        Project(
            id=PERSONAL_PROJECT_ID,
            name="Personal",
            description="Personal tasks",
            color="#10b981",
            position=1,
        ),
    ]
