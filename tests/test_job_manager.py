from datetime import timedelta

import pytest
import pytest_asyncio

from ping_scheduler.domain.job import Job
from ping_scheduler.errors import JobNotFoundError
from ping_scheduler.job_manager import JobManager
from ping_scheduler.storages.sqlalchemy import InMemoryJobStore


@pytest_asyncio.fixture
async def manager(clock) -> JobManager:
    store = InMemoryJobStore("test")
    await store.create_tables()
    return JobManager("test", store, clock=clock)


async def schedule(manager: JobManager, due_at, hook="hook", args=(), recurrence=None) -> Job:
    job = manager.create_job(due_at, hook, args, recurrence)
    return job.model_copy(update={"id": await manager.schedule_job(job)})


@pytest.mark.asyncio
async def test_create_job_is_not_persisted(manager: JobManager):
    job = manager.create_job(1000, "hook", ["a"], 60)
    assert job.id is None
    assert await manager.get_jobs() == []


@pytest.mark.asyncio
async def test_schedule_and_get_job(manager: JobManager):
    job = manager.create_job(1000, "send_mail", ["to@example.com", {"retries": 2}, 3], 60)
    job_id = await manager.schedule_job(job)
    assert job_id is not None

    retrieved = await manager.get_job(job_id)
    assert retrieved.id == job_id
    assert retrieved.timestamp == 1000
    assert retrieved.hook == "send_mail"
    assert retrieved.args == ["to@example.com", {"retries": 2}, 3]
    assert retrieved.recurrence == 60


@pytest.mark.asyncio
async def test_get_missing_job(manager: JobManager):
    with pytest.raises(JobNotFoundError):
        await manager.get_job(12345)


@pytest.mark.asyncio
async def test_schedule_existing_job_updates_in_place(manager: JobManager):
    job = await schedule(manager, 1000, args=["a"])

    job.due_at = job.due_at + timedelta(seconds=50)
    job.args = ["b"]
    assert await manager.schedule_job(job) == job.id

    jobs = await manager.get_jobs()
    assert len(jobs) == 1
    assert jobs[0].id == job.id
    assert jobs[0].timestamp == 1050
    assert jobs[0].args == ["b"]

    # Saving unchanged values keeps the same row
    assert await manager.schedule_job(jobs[0]) == job.id
    assert len(await manager.get_jobs()) == 1


@pytest.mark.asyncio
async def test_schedule_job_with_unknown_id_inserts(manager: JobManager):
    job = Job(id=999, due_at=1000, hook="hook")
    job_id = await manager.schedule_job(job)
    assert (await manager.get_job(job_id)).hook == "hook"
    assert len(await manager.get_jobs()) == 1


@pytest.mark.asyncio
async def test_get_jobs_filters(manager: JobManager):
    first = await schedule(manager, 1000, hook="a", args=["x"], recurrence=60)
    second = await schedule(manager, 2000, hook="a", args=["y"])
    third = await schedule(manager, 1000, hook="b", args={1: "z", 0: "x"})

    def ids(jobs):
        return [job.id for job in jobs]

    assert ids(await manager.get_jobs()) == [first.id, second.id, third.id]
    assert ids(await manager.get_jobs(hook="a")) == [first.id, second.id]
    assert ids(await manager.get_jobs(due_at=1000)) == [first.id, third.id]
    assert ids(await manager.get_jobs(due_at=first.due_at)) == [first.id, third.id]
    assert ids(await manager.get_jobs(args=["x", "z"])) == [third.id]
    assert ids(await manager.get_jobs(ids=[first.id, third.id])) == [first.id, third.id]
    assert ids(await manager.get_jobs(recurrence=60)) == [first.id]
    assert ids(await manager.get_jobs(recurrence=0)) == [second.id, third.id]
    assert ids(await manager.get_jobs(hook="a", due_at=2000, args=["y"], recurrence=0)) == [second.id]
    assert await manager.get_jobs(hook="a", due_at=1000, recurrence=0) == []
    assert await manager.get_jobs(ids=[]) == []


@pytest.mark.asyncio
async def test_pending_jobs_are_strictly_before_now(manager: JobManager, clock):
    past = await schedule(manager, clock.now - 1, hook="past")
    await schedule(manager, clock.now, hook="now")
    await schedule(manager, clock.now + 60, hook="future")
    older = await schedule(manager, clock.now - 3600, hook="older")

    pending = await manager.get_pending_jobs()
    assert [job.id for job in pending] == [past.id, older.id]

    clock.advance(61)
    assert len(await manager.get_pending_jobs()) == 4


@pytest.mark.asyncio
async def test_recurrence_is_anchored_to_the_previous_due_time(manager: JobManager, clock):
    # The job is an hour late, but the next occurrence keeps the cadence
    previous = await schedule(manager, clock.now - 3600, hook="tick", args=[1, "a"], recurrence=300)

    next_job = await manager.schedule_job_recurrence(previous.id)

    assert next_job is not None
    assert next_job.id not in (None, previous.id)
    assert next_job.timestamp == previous.timestamp + 300
    assert next_job.hook == "tick"
    assert next_job.args == [1, "a"]
    assert next_job.recurrence == 300

    # The previous occurrence is left untouched
    assert await manager.get_job(previous.id) == previous
    assert len(await manager.get_jobs()) == 2


@pytest.mark.asyncio
async def test_one_shot_job_does_not_recur(manager: JobManager):
    job = await schedule(manager, 1000)
    assert await manager.schedule_job_recurrence(job.id) is None
    assert len(await manager.get_jobs()) == 1


@pytest.mark.asyncio
async def test_recurrence_of_missing_job(manager: JobManager):
    with pytest.raises(JobNotFoundError):
        await manager.schedule_job_recurrence(404)


@pytest.mark.asyncio
async def test_delete_jobs_is_idempotent(manager: JobManager):
    kept = await schedule(manager, 1000, hook="kept")
    removed = await schedule(manager, 1000, hook="removed")

    assert await manager.delete_jobs([removed.id]) == 1
    assert await manager.delete_jobs([removed.id, 98765]) == 0
    assert await manager.delete_jobs([]) == 0

    jobs = await manager.get_jobs()
    assert [job.id for job in jobs] == [kept.id]
