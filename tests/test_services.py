import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from chronii.errors import ServiceNotInitializedError, StoreError
from chronii.models import TodoPriority
from chronii.repositories import CloudNoteRepository, EntityKind
from chronii.services import NoteService, TimerService, TodoService

DELAY = 0.05


@pytest_asyncio.fixture
async def todos(factory):
    service = TodoService(factory)
    await service.initialize()
    return service


@pytest_asyncio.fixture
async def timers(factory):
    service = TimerService(factory)
    await service.initialize()
    return service


@pytest_asyncio.fixture
async def notes(factory):
    service = NoteService(factory, save_delay=DELAY)
    await service.initialize()
    yield service
    await service.close()


async def _stored_note(factory, note_id):
    repo = factory.local_repository(EntityKind.NOTES)
    await repo.initialize()
    return await repo.get_by_id(note_id)


class TestTodoService:
    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self, factory):
        with pytest.raises(ServiceNotInitializedError):
            await TodoService(factory).add_todo("x")

    @pytest.mark.asyncio
    async def test_add_and_counts(self, todos):
        changes = []
        todos.add_listener(lambda: changes.append(1))
        first = await todos.add_todo("  Buy milk ", priority=TodoPriority.HIGH, tags=["home", " "])
        await todos.add_todo("Walk dog")
        await todos.toggle_todo_completion(first.id)

        assert first.title == "Buy milk"
        assert first.tags == ["home"]
        assert todos.total_count == 2
        assert todos.completed_count == 1
        assert todos.incomplete_count == 1
        assert [t.id for t in todos.completed_todos] == [first.id]
        assert len(changes) == 3

    @pytest.mark.asyncio
    async def test_blank_title_is_rejected(self, todos):
        with pytest.raises(ValueError):
            await todos.add_todo("   ")

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, todos):
        todo = await todos.add_todo("x")
        todos.todos[0].title = "mutated"
        assert todos.get_todo_by_id(todo.id).title == "x"

    @pytest.mark.asyncio
    async def test_bulk_operations(self, todos):
        for title in ("a", "b", "c"):
            await todos.add_todo(title)
        assert await todos.mark_all_as_completed() == 3
        assert todos.incomplete_count == 0
        assert await todos.mark_all_as_incomplete() == 3
        await todos.toggle_todo_completion(todos.todos[0].id)
        assert await todos.delete_completed_todos() == 1
        assert await todos.clear_all_todos() == 2
        assert todos.todos == []

    @pytest.mark.asyncio
    async def test_sorting_orders_the_cached_view(self, todos):
        a = await todos.add_todo("a")
        await asyncio.sleep(0.001)
        b = await todos.add_todo("b")
        await todos.toggle_todo_completion(a.id)

        todos.sort_by_creation_date()
        assert [t.id for t in todos.todos] == [b.id, a.id]
        todos.sort_by_creation_date(ascending=True)
        assert [t.id for t in todos.todos] == [a.id, b.id]
        todos.sort_by_completion_status(completed_first=True)
        assert todos.todos[0].id == a.id

    @pytest.mark.asyncio
    async def test_failing_repository_leaves_cache_untouched(self, factory, signed_in, doc_store):
        service = TodoService(factory)
        await service.initialize()
        await service.add_todo("kept")
        doc_store.failing_collections.add("todos")

        with pytest.raises(StoreError):
            await service.add_todo("lost")
        assert [t.title for t in service.todos] == ["kept"]

    @pytest.mark.asyncio
    async def test_refresh_switches_to_the_cloud(self, todos, auth):
        await todos.add_todo("local only")
        await auth.register_with_email_and_password("ada@example.com", "secret123")
        await todos.refresh_repository()
        assert todos.todos == []
        await todos.add_todo("cloud")
        assert [t.title for t in todos.todos] == ["cloud"]


class TestTimerService:
    @pytest.mark.asyncio
    async def test_start_stop_and_restart(self, timers):
        timer = await timers.add_timer("Write")
        assert [t.id for t in timers.running_timers] == [timer.id]

        stopped = await timers.toggle_timer(timer.id)
        assert not stopped.is_running
        assert timers.running_timers == []

        session = await timers.toggle_timer(timer.id)
        assert session.is_running
        assert len(timers.timers) == 2

    @pytest.mark.asyncio
    async def test_stop_all_and_totals(self, timers):
        a = await timers.add_timer("a")
        b = await timers.add_timer("b")
        assert await timers.stop_all_running_timers() == 2
        expected = timers.get_timer_by_id(a.id).duration() + timers.get_timer_by_id(b.id).duration()
        assert timers.calculate_total_duration([a.id, b.id]) == expected
        assert timers.calculate_total_duration([]) == timedelta(0)

    @pytest.mark.asyncio
    async def test_grouping(self, timers):
        await timers.add_timer("a")
        await timers.add_timer("b")
        days = timers.group_by_day()
        assert len(days) == 1
        assert len(days[0].timers) == 2
        assert len(timers.group_by_week()) == 1

    @pytest.mark.asyncio
    async def test_blank_name_is_rejected(self, timers):
        with pytest.raises(ValueError):
            await timers.add_timer(" ")


class TestNoteService:
    @pytest.mark.asyncio
    async def test_blank_title_becomes_untitled(self, notes):
        note = await notes.add_note("  ", "body")
        assert note.title == "Untitled Note"

    @pytest.mark.asyncio
    async def test_edit_shows_at_once_and_saves_after_the_delay(self, notes, factory):
        note = await notes.add_note("Ideas", "v1")
        edited = notes.get_note_by_id(note.id)
        edited.update_content("v2")
        assert await notes.update_note(edited) is True

        assert notes.get_note_by_id(note.id).content == "v2"
        assert (await _stored_note(factory, note.id)).content == "v1"
        assert notes.unsaved_note_ids == [note.id]

        await asyncio.sleep(DELAY * 4)
        assert (await _stored_note(factory, note.id)).content == "v2"
        assert notes.unsaved_note_ids == []

    @pytest.mark.asyncio
    async def test_newest_edit_is_the_one_saved(self, notes, factory):
        note = await notes.add_note("Ideas", "v1")
        for content in ("v2", "v3"):
            edited = notes.get_note_by_id(note.id)
            edited.update_content(content)
            await notes.update_note(edited)
        await notes.flush_pending_saves()
        assert (await _stored_note(factory, note.id)).content == "v3"

    @pytest.mark.asyncio
    async def test_most_recently_updated_first(self, notes):
        old = await notes.add_note("old", "")
        await notes.add_note("new", "")
        edited = notes.get_note_by_id(old.id)
        edited.update_title("old, edited")
        await notes.update_note(edited)
        assert notes.notes[0].id == old.id

    @pytest.mark.asyncio
    async def test_unknown_note_is_not_updated(self, notes):
        note = await notes.add_note("x", "")
        await notes.delete_note(note.id)
        assert await notes.update_note(note) is False

    @pytest.mark.asyncio
    async def test_delete_cancels_the_pending_save(self, notes, factory):
        note = await notes.add_note("x", "v1")
        edited = notes.get_note_by_id(note.id)
        edited.update_content("v2")
        await notes.update_note(edited)

        assert await notes.delete_note(note.id) is True
        await asyncio.sleep(DELAY * 4)
        assert await _stored_note(factory, note.id) is None
        assert notes.notes == []

    @pytest.mark.asyncio
    async def test_failed_save_reloads_from_the_repository(self, notes, factory):
        note = await notes.add_note("x", "v1")
        repo = factory.local_repository(EntityKind.NOTES)
        await repo.initialize()
        await repo.delete(note.id)

        edited = notes.get_note_by_id(note.id)
        edited.update_content("v2")
        await notes.update_note(edited)
        await notes.flush_pending_saves()
        assert notes.get_note_by_id(note.id) is None

    @pytest.mark.asyncio
    async def test_refresh_saves_pending_edits_to_the_old_repository(self, notes, factory, auth):
        note = await notes.add_note("x", "v1")
        edited = notes.get_note_by_id(note.id)
        edited.update_content("v2")
        await notes.update_note(edited)

        await auth.register_with_email_and_password("ada@example.com", "secret123")
        await notes.refresh_repository()
        assert (await _stored_note(factory, note.id)).content == "v2"
        assert isinstance(notes.repository, CloudNoteRepository)
