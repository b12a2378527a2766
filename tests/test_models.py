import logging
from datetime import datetime, timedelta, timezone

from chronii.models import EPOCH, Note, TaskTimer, Todo, TodoPriority, total_duration

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestTodo:
    def test_json_round_trip_uses_camel_case(self):
        todo = Todo(
            title="Pay bills",
            description="Electricity",
            priority=TodoPriority.HIGH,
            tags=["home"],
            due_date=T0,
            created_at=T0,
            updated_at=T0 + timedelta(hours=1),
        )
        data = todo.to_json()
        assert set(data) >= {"id", "title", "isCompleted", "dueDate", "createdAt", "updatedAt", "priority", "tags"}
        assert data["priority"] == 2
        assert Todo.from_json(data).model_dump() == todo.model_dump()

    def test_missing_priority_and_tags_get_defaults(self):
        todo = Todo.from_json(
            {"id": "a", "title": "Old", "isCompleted": False, "createdAt": T0.isoformat(), "updatedAt": T0.isoformat()}
        )
        assert todo.priority is TodoPriority.MEDIUM
        assert todo.tags == []

    def test_naive_timestamps_are_taken_as_utc(self):
        todo = Todo.from_json({"id": "a", "title": "x", "createdAt": "2024-03-01T09:00:00", "updatedAt": "2024-03-01T09:00:00"})
        assert todo.updated_at == T0

    def test_mutators_advance_updated_at(self):
        todo = Todo(title="x", updated_at=T0)
        todo.toggle_completion()
        assert todo.is_completed is True
        assert todo.updated_at > T0

    def test_touch_never_moves_backwards(self):
        future = datetime.now(timezone.utc) + timedelta(days=1)
        todo = Todo(title="x", updated_at=future)
        todo.touch()
        assert todo.updated_at == future

    def test_blank_title_and_duplicate_tag_are_ignored(self):
        todo = Todo(title="Keep", updated_at=T0)
        todo.update_title("   ")
        todo.add_tag("a")
        stamp = todo.updated_at
        todo.add_tag("a")
        assert todo.title == "Keep"
        assert todo.tags == ["a"]
        assert todo.updated_at == stamp


class TestPlaceholders:
    def test_malformed_record_keeps_its_id(self, caplog):
        with caplog.at_level(logging.WARNING):
            todo = Todo.from_json({"id": "abc", "title": None, "updatedAt": "not a date"})
        assert todo.id == "abc"
        assert todo.title == "Error Loading Todo"
        assert todo.updated_at == EPOCH
        assert "Error parsing Todo" in caplog.text

    def test_placeholder_id_is_stable_without_an_id(self):
        raw = {"name": 42}
        first = TaskTimer.from_json(raw)
        second = TaskTimer.from_json(raw)
        assert first.id == second.id
        assert first.id.startswith("invalid-")
        assert first.name == "Error Timer"

    def test_note_placeholder(self):
        note = Note.from_json({"id": "n1"})
        assert note.title == "Error Loading Note"
        assert note.content == "There was an error loading this note."


class TestTaskTimer:
    def test_running_timer_round_trips_with_null_end_time(self):
        timer = TaskTimer(name="Write", start_time=T0, created_at=T0, updated_at=T0)
        data = timer.to_json()
        assert data["endTime"] is None
        restored = TaskTimer.from_json(data)
        assert restored.is_running
        assert restored.model_dump() == timer.model_dump()

    def test_legacy_record_without_timestamps(self):
        timer = TaskTimer.from_json({"id": "t", "name": "Old", "startTime": T0.isoformat(), "endTime": None})
        assert timer.created_at == T0
        assert timer.updated_at > T0

    def test_duration_and_stop(self):
        timer = TaskTimer(name="Write", start_time=T0)
        assert timer.duration(T0 + timedelta(minutes=5)) == timedelta(minutes=5)
        timer.stop()
        assert not timer.is_running
        assert timer.updated_at >= timer.end_time

    def test_new_session_is_a_new_running_timer(self):
        timer = TaskTimer(name="Write", start_time=T0, end_time=T0 + timedelta(minutes=1))
        session = timer.create_new_session()
        assert session.id != timer.id
        assert session.name == "Write"
        assert session.is_running

    def test_total_duration_counts_only_listed_timers(self):
        a = TaskTimer(name="a", start_time=T0, end_time=T0 + timedelta(minutes=10))
        b = TaskTimer(name="b", start_time=T0)
        c = TaskTimer(name="c", start_time=T0, end_time=T0 + timedelta(hours=5))
        total = total_duration([a, b, c], [a.id, b.id, "unknown"], now=T0 + timedelta(minutes=30))
        assert total == timedelta(minutes=40)
