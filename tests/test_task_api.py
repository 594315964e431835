# tests/test_task_api.py

from __future__ import annotations

import pytest

from job_scheduler.scheduler.errors import FormatError, NotFound, StoreUnavailable
from job_scheduler.scheduler.task_api import JobApi, JobBook, JobRecord
from job_scheduler.scheduler.task_codec import decode_control, decode_task
from job_scheduler.scheduler.task_models import ControlAction, ScheduleType, TaskStatus
from job_scheduler.scheduler.task_store import InMemoryJobStore

TODO = "todo-list"
CONTROL = "running-list"


async def _land(store) -> None:
    """Do what the dispatcher's todo phase does to the store, without starting executors."""
    for entry in await store.queue_drain(TODO):
        task = decode_task(entry)
        await store.hash_set(task.id, task.to_fields(TaskStatus.RUNNING))


def test_job_book_reuses_lowest_free_slot() -> None:
    book = JobBook()
    slots = [book.insert(JobRecord(str(i), "c", ScheduleType.ONE_SHOT, 1)) for i in range(3)]
    assert slots == [0, 1, 2]

    assert book.remove(1).id == "1"
    assert book.remove(1) is None
    assert len(book) == 2
    assert book.insert(JobRecord("x", "c", ScheduleType.ONE_SHOT, 1)) == 1
    assert book.get(1).id == "x"
    assert book.get(99) is None


@pytest.mark.asyncio
async def test_create_job_pushes_encoded_task() -> None:
    store = InMemoryJobStore()
    api = JobApi(store)

    task = await api.create_job("ping", "Repeated", "3")

    assert task.schedule_type == ScheduleType.REPEATED
    assert task.duration == 3
    assert task.slot == 0
    entries = await store.queue_drain(TODO)
    assert entries == [f"{task.id}::ping::Repeated::3::0"]
    # nothing is written to the hash until the dispatcher picks it up
    assert await store.hash_get_all(task.id) == {}


@pytest.mark.asyncio
async def test_created_ids_are_unique() -> None:
    api = JobApi(InMemoryJobStore())
    a = await api.create_job("a", ScheduleType.ONE_SHOT, 1)
    b = await api.create_job("b", ScheduleType.ONE_SHOT, 1)

    assert a.id != b.id
    assert (a.slot, b.slot) == (0, 1)


@pytest.mark.parametrize(
    ("content", "schedule_type", "duration"),
    [
        ("", "OneShot", 1),
        ("x" * 65, "OneShot", 1),
        ("ping", "Sometimes", 1),
        ("ping", "OneShot", 0),
        ("ping", "OneShot", -3),
        ("ping", "OneShot", "soon"),
    ],
)
@pytest.mark.asyncio
async def test_create_job_validates_input(content, schedule_type, duration) -> None:
    store = InMemoryJobStore()
    api = JobApi(store)

    with pytest.raises(ValueError):
        await api.create_job(content, schedule_type, duration)

    assert await store.queue_drain(TODO) == []
    assert len(api.book) == 0


@pytest.mark.parametrize("content", ["a::b", "a|b"])
@pytest.mark.asyncio
async def test_create_job_rejects_wire_delimiters(content: str) -> None:
    api = JobApi(InMemoryJobStore())
    with pytest.raises(FormatError):
        await api.create_job(content, "OneShot", 1)


@pytest.mark.asyncio
async def test_create_job_releases_slot_when_push_fails() -> None:
    class BrokenPush(InMemoryJobStore):
        async def queue_push(self, channel: str, entry: str) -> None:
            raise StoreUnavailable("down")

    api = JobApi(BrokenPush())
    with pytest.raises(StoreUnavailable):
        await api.create_job("ping", "OneShot", 1)
    assert len(api.book) == 0


@pytest.mark.asyncio
async def test_find_job_reads_dispatched_task() -> None:
    store = InMemoryJobStore()
    api = JobApi(store)
    created = await api.create_job("ping", "OneShot", 5)

    with pytest.raises(NotFound):
        await api.find_job(created.id)

    await _land(store)
    found = await api.find_job(created.id)

    assert found == created
    assert found.status == TaskStatus.RUNNING


@pytest.mark.asyncio
async def test_find_job_treats_bare_status_hash_as_missing() -> None:
    store = InMemoryJobStore()
    await store.hash_set("orphan", {"status": "RUNNING"})

    with pytest.raises(NotFound) as info:
        await JobApi(store).find_job("orphan")
    assert info.value.key == "orphan"


@pytest.mark.asyncio
async def test_update_job_pushes_control_event_and_updates_record() -> None:
    store = InMemoryJobStore()
    api = JobApi(store)
    created = await api.create_job("ping", "OneShot", 5)
    await _land(store)

    updated = await api.update_job(created.id, content="pong", schedule_type="Repeated")

    assert (updated.content, updated.schedule_type, updated.duration) == ("pong", ScheduleType.REPEATED, 5)
    [entry] = await store.queue_drain(CONTROL)
    event = decode_control(entry)
    assert event.action == ControlAction.UPDATE
    assert event.target_id == created.id
    assert event.task == updated

    record = api.book.get(created.slot)
    assert (record.content, record.schedule_type) == ("pong", ScheduleType.REPEATED)


@pytest.mark.asyncio
async def test_update_job_keeps_record_when_push_fails() -> None:
    store = InMemoryJobStore()
    api = JobApi(store)
    created = await api.create_job("ping", "OneShot", 5)
    await _land(store)

    async def fail(channel: str, entry: str) -> None:
        raise StoreUnavailable("down")

    store.queue_push = fail
    with pytest.raises(StoreUnavailable):
        await api.update_job(created.id, content="pong")

    assert api.book.get(created.slot).content == "ping"


@pytest.mark.asyncio
async def test_update_and_delete_unknown_id_raise_not_found() -> None:
    api = JobApi(InMemoryJobStore())

    with pytest.raises(NotFound):
        await api.update_job("missing", content="x")
    with pytest.raises(NotFound):
        await api.delete_job("missing")


@pytest.mark.asyncio
async def test_delete_job_pushes_control_event_and_frees_slot() -> None:
    store = InMemoryJobStore()
    api = JobApi(store)
    created = await api.create_job("ping", "Repeated", 2)
    await _land(store)

    await api.delete_job(created.id)

    assert await store.queue_drain(CONTROL) == [f"{created.id}|delete"]
    assert api.book.get(created.slot) is None

    # the slot is gone from the book, so a second delete is rejected
    with pytest.raises(NotFound):
        await api.delete_job(created.id)

    again = await api.create_job("next", "OneShot", 1)
    assert again.slot == created.slot
