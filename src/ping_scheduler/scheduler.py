import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import create_async_engine

from ping_scheduler.config import SchedulerConfig
from ping_scheduler.context import in_daemon_context
from ping_scheduler.domain.job import Job
from ping_scheduler.hooks import HookDispatcher, HookRegistry
from ping_scheduler.job_manager import JobManager
from ping_scheduler.runner import Runner
from ping_scheduler.storages.protocol import JobStore, OptionStore
from ping_scheduler.storages.sqlalchemy import IN_MEMORY_DB_URL, SqlAlchemyJobStore, SqlAlchemyOptionStore
from ping_scheduler.triggers.http import HttpDaemonTrigger
from ping_scheduler.triggers.protocol import DaemonTrigger

logger = logging.getLogger(__name__)

_instances: Dict[str, "Scheduler"] = {}


class Scheduler:
    """
    A scheduler instance: a job manager and a runner sharing an instance ID.
    """

    def __init__(
        self,
        instance_id: str,
        manager: JobManager,
        runner: Runner,
        dispatcher: HookDispatcher,
        config: SchedulerConfig,
    ):
        self.instance_id: str = instance_id
        self.manager: JobManager = manager
        self.runner: Runner = runner
        self.dispatcher: HookDispatcher = dispatcher
        self.config: SchedulerConfig = config

    @classmethod
    def setup(
        cls,
        instance_id: str,
        daemon_url: Optional[str] = None,
        db_url: Optional[str] = None,
        config: Optional[SchedulerConfig] = None,
        dispatcher: Optional[HookDispatcher] = None,
        job_store: Optional[JobStore] = None,
        option_store: Optional[OptionStore] = None,
        trigger: Optional[DaemonTrigger] = None,
    ) -> "Scheduler":
        """
        Build a scheduler instance and register it under its instance ID.

        No I/O happens here; call `prepare` before using the instance.

        Args:
            instance_id (str): Unique identifier of the instance.
            daemon_url (Optional[str]): URL of the daemon endpoint, used when no trigger is given.
            db_url (Optional[str]): Async SQLAlchemy URL for the job and option tables. Defaults to in-memory SQLite.
            config (Optional[SchedulerConfig]): Scheduler settings.
            dispatcher (Optional[HookDispatcher]): Runs job hooks. Defaults to an empty HookRegistry.
            job_store (Optional[JobStore]): Overrides the SQLAlchemy job store.
            option_store (Optional[OptionStore]): Overrides the SQLAlchemy option store.
            trigger (Optional[DaemonTrigger]): Overrides the HTTP daemon trigger.

        Returns:
            Scheduler: The registered instance.
        """
        if not instance_id:
            raise ValueError("The instance ID must not be empty")
        if trigger is None:
            if not daemon_url:
                raise ValueError("Either a daemon URL or a trigger must be provided")
            trigger = HttpDaemonTrigger(daemon_url)

        config = config or SchedulerConfig()
        if job_store is None or option_store is None:
            engine = create_async_engine(db_url or IN_MEMORY_DB_URL)
            job_store = job_store or SqlAlchemyJobStore(instance_id, engine=engine)
            option_store = option_store or SqlAlchemyOptionStore(engine=engine)

        manager = JobManager(instance_id, job_store)
        runner = Runner(instance_id, option_store, trigger, config)
        instance = cls(instance_id, manager, runner, dispatcher or HookRegistry(), config)
        register_instance(instance)
        return instance

    async def prepare(self) -> None:
        """
        Create the job and option tables if they are missing.
        """
        await self.manager.store.create_tables()
        await self.runner.options.create_tables()

    async def init(self) -> bool:
        """
        Give the runner a chance to start the daemon. Meant to be called on ordinary requests.
        """
        if in_daemon_context():
            return False
        return await self.runner.run_daemon()

    async def schedule(
        self,
        hook: str,
        due_at: Union[datetime, int],
        args: Any = (),
        recurrence: Optional[int] = None,
    ) -> Job:
        job = self.manager.create_job(due_at, hook, args, recurrence)
        job_id = await self.manager.schedule_job(job)
        return job.model_copy(update={"id": job_id})


def register_instance(instance: Scheduler) -> None:
    if instance.instance_id in _instances and _instances[instance.instance_id] is not instance:
        logger.warning("Replacing the registered scheduler instance '%s'", instance.instance_id)
    _instances[instance.instance_id] = instance


def get_instance(instance_id: str) -> Optional[Scheduler]:
    return _instances.get(instance_id)


def unregister_instance(instance_id: str) -> Optional[Scheduler]:
    return _instances.pop(instance_id, None)
