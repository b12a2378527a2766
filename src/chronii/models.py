from __future__ import annotations

import hashlib
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _placeholder_id(raw: Any) -> str:
    if isinstance(raw, Mapping) and isinstance(raw.get("id"), str) and raw["id"]:
        return raw["id"]
    digest = hashlib.sha1(json.dumps(raw, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    return f"invalid-{digest[:16]}"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# PUBLIC_INTERFACE
class Syncable(Protocol):
    """Anything the synchronization engine can merge: a stable id and a last-write timestamp."""

    id: str
    updated_at: datetime


class TodoPriority(IntEnum):
    """Priority levels for todo items; persisted as the integer value."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


R = TypeVar("R", bound="Record")


class Record(BaseModel):
    """
    Common base for persisted entities.

    Fields:
    - id: opaque unique identifier assigned at creation, never changed
    - created_at: creation instant, never mutated
    - updated_at: last mutation instant, never decreases

    The JSON shape uses camelCase keys (createdAt, updatedAt, ...) with
    ISO-8601 timestamps; Python code uses the snake_case attribute names.
    """

    model_config = ConfigDict(populate_by_name=True)

    # Returned by from_json when a stored record cannot be parsed
    placeholder_fields: ClassVar[Dict[str, Any]] = {}

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _normalize_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)  # type: ignore[return-value]

    def touch(self) -> None:
        """Stamp updated_at with the current time, never moving it backwards."""
        self.updated_at = max(utcnow(), self.updated_at)

    def to_json(self) -> Dict[str, Any]:
        """Encode to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def _prepare(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for backward-compatible defaults applied before validation."""
        return data

    @classmethod
    def from_json(cls: type[R], data: Mapping[str, Any]) -> R:
        """
        Decode a persisted record.

        A malformed record never raises: it is logged and replaced by a
        placeholder so the rest of a collection still loads. The placeholder
        keeps the stored id when there is one (otherwise an id derived from
        the raw payload) and carries epoch timestamps, so it is stable across
        loads and never wins a last-write-wins merge against a real copy.
        """
        try:
            return cls.model_validate(cls._prepare(dict(data)))
        except (ValidationError, TypeError, ValueError) as exc:
            logger.warning("Error parsing %s from JSON: %s", cls.__name__, exc)
            return cls(
                id=_placeholder_id(data),
                created_at=EPOCH,
                updated_at=EPOCH,
                **cls.placeholder_fields,
            )


# PUBLIC_INTERFACE
class Todo(Record):
    """A todo task."""

    placeholder_fields: ClassVar[Dict[str, Any]] = {"title": "Error Loading Todo", "is_completed": False}

    title: str
    description: Optional[str] = None
    is_completed: bool = Field(default=False, alias="isCompleted")
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    priority: TodoPriority = TodoPriority.LOW
    tags: List[str] = Field(default_factory=list)

    @field_validator("due_date", mode="after")
    @classmethod
    def _normalize_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @classmethod
    def _prepare(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        if data.get("priority") is None:
            data["priority"] = TodoPriority.MEDIUM
        if data.get("tags") is None:
            data["tags"] = []
        return data

    def complete(self) -> None:
        self.is_completed = True
        self.touch()

    def uncomplete(self) -> None:
        self.is_completed = False
        self.touch()

    def toggle_completion(self) -> None:
        self.is_completed = not self.is_completed
        self.touch()

    def update_title(self, new_title: str) -> None:
        """Set a new title; blank titles are ignored."""
        if not new_title.strip():
            return
        self.title = new_title.strip()
        self.touch()

    def update_description(self, new_description: Optional[str]) -> None:
        self.description = new_description.strip() if new_description is not None else None
        self.touch()

    def update_due_date(self, new_due_date: Optional[datetime]) -> None:
        self.due_date = as_utc(new_due_date)
        self.touch()

    def update_priority(self, new_priority: TodoPriority) -> None:
        self.priority = TodoPriority(new_priority)
        self.touch()

    def add_tag(self, tag: str) -> None:
        """Add a tag; blank and duplicate tags are ignored."""
        tag = tag.strip()
        if not tag or tag in self.tags:
            return
        self.tags.append(tag)
        self.touch()

    def remove_tag(self, tag: str) -> None:
        if tag in self.tags:
            self.tags.remove(tag)
        self.touch()

    def clear_tags(self) -> None:
        self.tags.clear()
        self.touch()


# PUBLIC_INTERFACE
class TaskTimer(Record):
    """
    A timed work session for a named task.

    end_time is None while the timer is running.
    """

    placeholder_fields: ClassVar[Dict[str, Any]] = {"name": "Error Timer"}

    name: str
    start_time: datetime = Field(default_factory=utcnow, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @classmethod
    def _prepare(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        # Records written before createdAt/updatedAt existed
        if data.get("createdAt") is None and data.get("created_at") is None:
            data["createdAt"] = data.get("startTime", data.get("start_time"))
        if data.get("updatedAt") is None and data.get("updated_at") is None:
            data["updatedAt"] = utcnow()
        return data

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    def duration(self, now: Optional[datetime] = None) -> timedelta:
        """Elapsed time; a running timer counts up to ``now``."""
        end = self.end_time or as_utc(now) or utcnow()
        return end - self.start_time

    def stop(self) -> None:
        """Stop the timer if it is running."""
        if self.is_running:
            self.end_time = max(utcnow(), self.start_time)
            self.updated_at = max(self.end_time, self.updated_at)

    def create_new_session(self) -> "TaskTimer":
        """Return a new running timer for the same task, starting now."""
        return TaskTimer(name=self.name, start_time=utcnow())


# PUBLIC_INTERFACE
class Note(Record):
    """A free-text note."""

    placeholder_fields: ClassVar[Dict[str, Any]] = {
        "title": "Error Loading Note",
        "content": "There was an error loading this note.",
    }

    title: str
    content: str

    def update_title(self, new_title: str) -> None:
        if not new_title.strip():
            return
        self.title = new_title.strip()
        self.touch()

    def update_content(self, new_content: str) -> None:
        self.content = new_content
        self.touch()


# PUBLIC_INTERFACE
def total_duration(timers: Iterable[TaskTimer], timer_ids: Iterable[str], now: Optional[datetime] = None) -> timedelta:
    """Sum the durations of the listed timers; running timers count up to ``now``."""
    wanted = set(timer_ids)
    current = as_utc(now) or utcnow()
    total = timedelta(0)
    for timer in timers:
        if timer.id in wanted:
            total += timer.duration(current)
    return total
