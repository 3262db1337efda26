import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import ColumnElement

from ping_scheduler.domain.job import Job, deserialize_args, serialize_args, to_timestamp
from ping_scheduler.errors import JobNotFoundError
from ping_scheduler.storages.protocol import JobStore
from ping_scheduler.storages.sqlalchemy import JobModel

logger = logging.getLogger(__name__)


class JobManager:
    """
    Reads and writes scheduled jobs, and computes job recurrence.

    Storage errors are propagated as StorageError. The manager never retries;
    retry policy belongs to the daemon.
    """

    def __init__(self, instance_id: str, store: JobStore, clock: Callable[[], float] = time.time):
        self.instance_id: str = instance_id
        self.store: JobStore = store
        self.clock: Callable[[], float] = clock

    def create_job(
        self,
        due_at: Union[datetime, int],
        hook: str,
        args: Any = (),
        recurrence: Optional[int] = None,
    ) -> Job:
        """
        Create a job that is not persisted yet.
        """
        return Job(due_at=due_at, hook=hook, args=args, recurrence=recurrence)

    async def get_job(self, job_id: int) -> Job:
        """
        Retrieve a job by its ID.

        Raises:
            JobNotFoundError: If no job exists with the given ID.
        """
        records = await self.store.fetch(JobModel.id == job_id)
        if not records:
            raise JobNotFoundError(job_id)
        return self._db_to_job(records[0])

    async def get_jobs(
        self,
        ids: Optional[Iterable[int]] = None,
        due_at: Optional[Union[datetime, int]] = None,
        hook: Optional[str] = None,
        args: Any = None,
        recurrence: Optional[int] = None,
    ) -> List[Job]:
        """
        Retrieve the jobs matching all of the given filters. Omitted filters are ignored.

        Args:
            ids (Optional[Iterable[int]]): Only jobs whose ID is in this collection.
            due_at (Optional[Union[datetime, int]]): Only jobs due at exactly this time.
            hook (Optional[str]): Only jobs for this hook.
            args (Any): Only jobs with exactly these arguments.
            recurrence (Optional[int]): Only jobs with this recurrence; 0 matches one-shot jobs.

        Returns:
            List[Job]: The matching jobs, in storage order.
        """
        criteria: List[ColumnElement[bool]] = []
        if ids is not None:
            criteria.append(JobModel.id.in_(list(ids)))
        if due_at is not None:
            criteria.append(JobModel.timestamp == to_timestamp(due_at))
        if hook is not None:
            criteria.append(JobModel.hook == hook)
        if args is not None:
            criteria.append(JobModel.args == serialize_args(args))
        if recurrence is not None:
            if recurrence == 0:
                criteria.append(JobModel.recurrence.is_(None))
            else:
                criteria.append(JobModel.recurrence == recurrence)

        records = await self.store.fetch(*criteria)
        return [self._db_to_job(record) for record in records]

    async def get_pending_jobs(self) -> List[Job]:
        """
        Retrieve the jobs whose due time is strictly before the current time.
        """
        now = int(self.clock())
        records = await self.store.fetch(JobModel.timestamp < now)
        return [self._db_to_job(record) for record in records]

    async def schedule_job(self, job: Job) -> int:
        """
        Persist a job.

        A job without an ID, or whose ID no longer exists, is inserted as a new
        row. Otherwise the existing row is updated in place.

        Returns:
            int: The ID of the persisted row.
        """
        values = self._job_to_values(job)
        if job.id is not None:
            updated = await self.store.update(values, JobModel.id == job.id)
            if updated:
                return job.id
            existing = await self.store.fetch(JobModel.id == job.id)
            if existing:
                # The row already holds the same values
                return job.id
            logger.debug("Job %s no longer exists, inserting it as a new job", job.id)
        return await self.store.insert(values)

    async def schedule_job_recurrence(self, job_id: int) -> Optional[Job]:
        """
        Schedule the next occurrence of a recurring job.

        The new job is due one recurrence interval after the given job's due
        time, so a late run does not shift the cadence. The given job is left
        untouched.

        Returns:
            Optional[Job]: The newly scheduled job, or None if the job does not recur.
        """
        job = await self.get_job(job_id)
        next_due_at = job.next_due_at()
        if next_due_at is None:
            return None

        next_job = self.create_job(next_due_at, job.hook, job.args, job.recurrence)
        job_id = await self.schedule_job(next_job)
        return next_job.model_copy(update={"id": job_id})

    async def delete_jobs(self, ids: Iterable[int]) -> int:
        """
        Delete jobs by ID. IDs that do not exist are ignored.

        Returns:
            int: The number of deleted jobs.
        """
        ids = list(ids)
        if not ids:
            return 0
        return await self.store.delete(JobModel.id.in_(ids))

    @staticmethod
    def _job_to_values(job: Job) -> Dict[str, Any]:
        return {
            "timestamp": job.timestamp,
            "hook": job.hook,
            "args": serialize_args(job.args),
            "recurrence": job.recurrence,
        }

    @staticmethod
    def _db_to_job(record: JobModel) -> Job:
        return Job(
            id=record.id,
            due_at=record.timestamp,
            hook=record.hook,
            args=deserialize_args(record.args),
            recurrence=record.recurrence,
        )
