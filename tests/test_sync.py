import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from chronii.models import Note, TaskTimer, Todo
from chronii.repositories import EntityKind
from chronii.settings import Settings
from chronii.sync import SyncDirection, SyncService, SyncStatus, synchronize_items

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)


async def _repo(factory, kind, side):
    repo = factory.local_repository(kind) if side == "local" else factory.cloud_repository(kind)
    await repo.initialize()
    return repo


def _service(factory, auth, **settings):
    return SyncService(factory, auth, Settings(**settings))


class TestSynchronizeItems:
    @pytest.mark.asyncio
    async def test_new_items_are_added(self, factory, signed_in):
        local = await _repo(factory, EntityKind.TODOS, "local")
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")
        todos = [Todo(title="a"), Todo(title="b")]
        for t in todos:
            await local.add(t)

        result = await synchronize_items(local, cloud)
        assert result.status is SyncStatus.COMPLETED
        assert result.added == 2
        assert {t.id for t in await cloud.get_all()} == {t.id for t in todos}

    @pytest.mark.asyncio
    async def test_second_pass_writes_nothing(self, factory, signed_in):
        local = await _repo(factory, EntityKind.NOTES, "local")
        cloud = await _repo(factory, EntityKind.NOTES, "cloud")
        await local.add(Note(title="n", content="c"))

        await synchronize_items(local, cloud)
        before = [n.to_json() for n in await cloud.get_all()]
        again = await synchronize_items(local, cloud)
        assert (again.added, again.updated, again.unchanged) == (0, 0, 1)
        assert [n.to_json() for n in await cloud.get_all()] == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source_stamp, destination_stamp, expected_title",
        [
            (T1, T0, "source"),
            (T0, T1, "destination"),
            (T0, T0, "destination"),
        ],
    )
    async def test_newer_updated_at_wins_and_ties_keep_destination(
        self, factory, signed_in, source_stamp, destination_stamp, expected_title
    ):
        local = await _repo(factory, EntityKind.TODOS, "local")
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")
        await local.add(Todo(id="same", title="source", updated_at=source_stamp))
        await cloud.add(Todo(id="same", title="destination", updated_at=destination_stamp))

        await synchronize_items(local, cloud)
        assert (await cloud.get_by_id("same")).title == expected_title

    @pytest.mark.asyncio
    async def test_deletions_are_not_propagated(self, factory, signed_in):
        local = await _repo(factory, EntityKind.TODOS, "local")
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")
        await cloud.add(Todo(id="cloud-only", title="keep me"))

        await synchronize_items(local, cloud)
        assert await cloud.get_by_id("cloud-only") is not None

    @pytest.mark.asyncio
    async def test_running_timer_stays_running(self, factory, signed_in):
        local = await _repo(factory, EntityKind.TIMERS, "local")
        cloud = await _repo(factory, EntityKind.TIMERS, "cloud")
        timer = TaskTimer(name="Write", start_time=T0)
        await local.add(timer)

        await synchronize_items(local, cloud)
        copy = await cloud.get_by_id(timer.id)
        assert copy.is_running
        assert copy.start_time == T0

    @pytest.mark.asyncio
    async def test_placeholder_never_overwrites_a_real_copy(self, factory, signed_in, kv_store):
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")
        await cloud.add(Todo(id="t1", title="real", updated_at=T0))
        await kv_store.set("todos", json.dumps([{"id": "t1", "title": None}]))
        local = await _repo(factory, EntityKind.TODOS, "local")

        result = await synchronize_items(local, cloud)
        assert result.unchanged == 1
        assert (await cloud.get_by_id("t1")).title == "real"

    @pytest.mark.asyncio
    async def test_duplicate_source_ids_collapse_to_newest(self, factory, signed_in, kv_store):
        older = Todo(id="dup", title="older", updated_at=T0)
        newer = Todo(id="dup", title="newer", updated_at=T1)
        await kv_store.set("todos", json.dumps([older.to_json(), newer.to_json()]))
        local = await _repo(factory, EntityKind.TODOS, "local")
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")

        result = await synchronize_items(local, cloud)
        assert result.added == 1
        assert (await cloud.get_by_id("dup")).title == "newer"

    @pytest.mark.asyncio
    async def test_failed_write_makes_the_pass_partial(self, factory, signed_in, doc_store):
        local = await _repo(factory, EntityKind.TODOS, "local")
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")
        ok, rejected = Todo(title="ok"), Todo(title="rejected")
        await local.add(ok)
        await local.add(rejected)
        doc_store.failing_ids.add(rejected.id)

        result = await synchronize_items(local, cloud)
        assert result.status is SyncStatus.PARTIAL
        assert (result.added, result.failed) == (1, 1)
        assert await cloud.get_by_id(ok.id) is not None

    @pytest.mark.asyncio
    async def test_slow_write_times_out(self, factory, signed_in, doc_store):
        local = await _repo(factory, EntityKind.TODOS, "local")
        cloud = await _repo(factory, EntityKind.TODOS, "cloud")
        slow, fast = Todo(title="slow"), Todo(title="fast")
        await local.add(slow)
        await local.add(fast)
        doc_store.write_delays[slow.id] = 1.0

        result = await synchronize_items(local, cloud, timeout=0.05)
        assert result.status is SyncStatus.PARTIAL
        assert (result.added, result.failed) == (1, 1)


class TestSyncService:
    @pytest.mark.asyncio
    async def test_to_cloud_then_to_local(self, factory, auth, signed_in):
        local_todos = await _repo(factory, EntityKind.TODOS, "local")
        cloud_notes = await _repo(factory, EntityKind.NOTES, "cloud")
        todo = Todo(title="local todo")
        note = Note(title="cloud note", content="")
        await local_todos.add(todo)
        await cloud_notes.add(note)
        service = _service(factory, auth)

        up = await service.synchronize_to_cloud()
        assert up.direction is SyncDirection.TO_CLOUD
        assert up.succeeded
        assert up.results[EntityKind.TODOS].added == 1

        down = await service.synchronize_to_local()
        assert down.results[EntityKind.NOTES].added == 1
        local_notes = await _repo(factory, EntityKind.NOTES, "local")
        assert (await local_notes.get_by_id(note.id)).title == "cloud note"

    @pytest.mark.asyncio
    async def test_anonymous_user_is_skipped(self, factory, auth, kv_store, doc_store):
        await auth.sign_in_anonymously()
        local = await _repo(factory, EntityKind.TODOS, "local")
        await local.add(Todo(title="stays local"))

        report = await _service(factory, auth).synchronize_to_cloud()
        assert report.skipped
        assert all(r.status is SyncStatus.SKIPPED for r in report.results.values())
        assert doc_store._collections == {}

    @pytest.mark.asyncio
    async def test_a_failing_collection_does_not_stop_the_others(self, factory, auth, signed_in, doc_store):
        for kind, item in (
            (EntityKind.TODOS, Todo(title="t")),
            (EntityKind.TIMERS, TaskTimer(name="w")),
            (EntityKind.NOTES, Note(title="n", content="")),
        ):
            await (await _repo(factory, kind, "local")).add(item)
        doc_store.failing_collections.add("notes")

        report = await _service(factory, auth).synchronize_to_cloud()
        assert report.results[EntityKind.TODOS].status is SyncStatus.COMPLETED
        assert report.results[EntityKind.TIMERS].status is SyncStatus.COMPLETED
        assert report.results[EntityKind.NOTES].status is SyncStatus.FAILED
        assert not report.succeeded
        assert len(await (await _repo(factory, EntityKind.TIMERS, "cloud")).get_all()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_sync_of_a_collection_is_skipped(self, factory, auth, signed_in, doc_store):
        await (await _repo(factory, EntityKind.TODOS, "local")).add(Todo(title="t"))
        doc_store.delay = 0.02
        service = _service(factory, auth)

        first, second = await asyncio.gather(service.synchronize_to_cloud(), service.synchronize_to_cloud())
        assert first.results[EntityKind.TODOS].status is SyncStatus.COMPLETED
        assert second.results[EntityKind.TODOS].status is SyncStatus.SKIPPED
        assert second.results[EntityKind.TODOS].reason == "sync already in progress"
        assert not service.is_syncing(EntityKind.TODOS)

    @pytest.mark.asyncio
    async def test_clear_local_after_clean_upload(self, factory, auth, signed_in):
        local = await _repo(factory, EntityKind.TODOS, "local")
        await local.add(Todo(title="t"))

        report = await _service(factory, auth, clear_local_after_upload=True).synchronize_to_cloud()
        assert report.results[EntityKind.TODOS].removed_from_source == 1
        assert await local.get_all() == []
        assert len(await (await _repo(factory, EntityKind.TODOS, "cloud")).get_all()) == 1

    @pytest.mark.asyncio
    async def test_report_serializes(self, factory, auth, signed_in):
        data = (await _service(factory, auth).merge_data()).to_dict()
        assert data["direction"] == "to_cloud"
        assert data["results"]["todos"]["status"] == "completed"
        assert "synced_ids" not in data["results"]["todos"]
