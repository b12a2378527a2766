from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..auth import User
from ..models import Note, TaskTimer, Todo, TodoPriority, utcnow
from ..sync import SyncReport

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Normalize due_date input into an aware UTC datetime.
    - Strings are parsed as ISO8601 datetimes, or as dates at 00:00.
    - Dates (not datetimes) become 00:00 on that day.
    - Naive datetimes are taken to be UTC.
    """
    if value is None:
        return None

    if isinstance(value, str):
        s = value.strip()
        try:
            value = datetime.fromisoformat(s)
        except ValueError:
            try:
                value = date.fromisoformat(s)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _clean_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


def _clean_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    tags: List[str] = []
    for tag in v:
        t = tag.strip()
        if t and t not in tags:
            tags.append(t)
    return tags


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "priority": 1,
                "tags": ["errands"],
                "due_date": "2025-02-01",
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item", min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    priority: TodoPriority = Field(default=TodoPriority.LOW, description="0 = low, 1 = medium, 2 = high")
    tags: List[str] = Field(default_factory=list, description="Free-form labels")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; dates are set to 00:00 UTC",
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_title(v)  # type: ignore[return-value]

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)  # type: ignore[return-value]

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
                "due_date": "2025-02-02T09:30:00",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item", min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    priority: Optional[TodoPriority] = Field(default=None, description="0 = low, 1 = medium, 2 = high")
    tags: Optional[List[str]] = Field(default=None, description="Replaces the todo's tags")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item; send null to clear it",
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        return _clean_title(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    id: str = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(..., description="Completion status flag")
    priority: TodoPriority = Field(..., description="0 = low, 1 = medium, 2 = high")
    tags: List[str] = Field(default_factory=list, description="Free-form labels")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_todo(cls, todo: Todo) -> "TodoOut":
        return cls(
            id=todo.id,
            title=todo.title,
            description=todo.description,
            completed=todo.is_completed,
            priority=todo.priority,
            tags=list(todo.tags),
            due_date=todo.due_date,
            created_at=todo.created_at,
            updated_at=todo.updated_at,
        )


# PUBLIC_INTERFACE
class TimerCreate(BaseModel):
    """Schema for starting a new timer."""

    model_config = ConfigDict(json_schema_extra={"example": {"name": "Write report"}})

    name: str = Field(..., description="Name of the task being timed", min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("name must not be blank")
        return s


# PUBLIC_INTERFACE
class TimerOut(BaseModel):
    """Schema returned by the API for a timer session."""

    id: str = Field(..., description="Unique identifier of the timer")
    name: str = Field(..., description="Name of the task being timed")
    start_time: datetime = Field(..., description="When the session started")
    end_time: Optional[datetime] = Field(default=None, description="When the session stopped; null while running")
    is_running: bool = Field(..., description="True while end_time is null")
    duration_seconds: float = Field(..., description="Elapsed seconds, counting up to now for running timers")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_timer(cls, timer: TaskTimer, now: Optional[datetime] = None) -> "TimerOut":
        return cls(
            id=timer.id,
            name=timer.name,
            start_time=timer.start_time,
            end_time=timer.end_time,
            is_running=timer.is_running,
            duration_seconds=timer.duration(now or utcnow()).total_seconds(),
            created_at=timer.created_at,
            updated_at=timer.updated_at,
        )


# PUBLIC_INTERFACE
class TimerGroupOut(BaseModel):
    """Timers started on the same day (or in the same week)."""

    key: date = Field(..., description="The day, or the Sunday starting the week")
    total_seconds: float = Field(..., description="Summed duration of the group's timers")
    timers: List[TimerOut] = Field(default_factory=list, description="Timers in the group, newest first")


# PUBLIC_INTERFACE
class TotalDurationOut(BaseModel):
    ids: List[str] = Field(..., description="Timer ids that were requested")
    total_seconds: float = Field(..., description="Summed duration of the matching timers")


# PUBLIC_INTERFACE
class NoteCreate(BaseModel):
    """Schema for creating a note. A blank title becomes 'Untitled Note'."""

    model_config = ConfigDict(json_schema_extra={"example": {"title": "Ideas", "content": "Try the new layout"}})

    title: str = Field(default="", description="Title of the note", max_length=200)
    content: str = Field(default="", description="Body text")


# PUBLIC_INTERFACE
class NoteUpdate(BaseModel):
    """Partial note edit; saved after the autosave delay."""

    title: Optional[str] = Field(default=None, description="New title; blank titles are ignored", max_length=200)
    content: Optional[str] = Field(default=None, description="New body text")


# PUBLIC_INTERFACE
class NoteOut(BaseModel):
    """Schema returned by the API for a note."""

    id: str = Field(..., description="Unique identifier of the note")
    title: str = Field(..., description="Title of the note")
    content: str = Field(..., description="Body text")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_note(cls, note: Note) -> "NoteOut":
        return cls(
            id=note.id,
            title=note.title,
            content=note.content,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


# PUBLIC_INTERFACE
class CountOut(BaseModel):
    count: int = Field(..., description="Number of items affected")


# PUBLIC_INTERFACE
class Credentials(BaseModel):
    """Email/password pair for sign-in and registration."""

    model_config = ConfigDict(json_schema_extra={"example": {"email": "ada@example.com", "password": "secret123"}})

    email: str = Field(..., description="Account email", min_length=3, max_length=320)
    password: str = Field(..., description="Account password", min_length=1)


# PUBLIC_INTERFACE
class SessionOut(BaseModel):
    """Who is signed in and which store currently backs the data."""

    authenticated: bool = Field(..., description="True when any user (anonymous included) is signed in")
    anonymous: bool = Field(..., description="True for an anonymous session")
    uid: Optional[str] = Field(default=None, description="Current user id")
    email: Optional[str] = Field(default=None, description="Current user email")
    mode: str = Field(..., description="'local' or 'cloud'")

    @classmethod
    def from_user(cls, user: Optional[User], mode: str) -> "SessionOut":
        return cls(
            authenticated=user is not None,
            anonymous=bool(user and user.is_anonymous),
            uid=user.uid if user else None,
            email=user.email if user else None,
            mode=mode,
        )


# PUBLIC_INTERFACE
class SyncResultOut(BaseModel):
    kind: Optional[str] = None
    status: str
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    removed_from_source: int = 0
    reason: Optional[str] = None


# PUBLIC_INTERFACE
class SyncReportOut(BaseModel):
    """Per-collection outcome of a synchronization in one direction."""

    direction: str = Field(..., description="'to_cloud' or 'to_local'")
    skipped: bool = Field(..., description="True when no collection was attempted")
    succeeded: bool = Field(..., description="True when every collection completed cleanly")
    results: Dict[str, SyncResultOut] = Field(default_factory=dict, description="Results keyed by collection")

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncReportOut":
        return cls.model_validate(report.to_dict())


# PUBLIC_INTERFACE
class SessionChangeOut(BaseModel):
    session: SessionOut
    sync: Optional[SyncReportOut] = Field(default=None, description="Report of the sync run by this change, if any")
