import asyncio
import io
import logging
from contextlib import ExitStack
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ping_scheduler.config import DaemonConfig
from ping_scheduler.context import capture_output, daemon_context
from ping_scheduler.domain.job import Job
from ping_scheduler.domain.runner import RunnerState
from ping_scheduler.environment import find_environment, load_environment
from ping_scheduler.errors import EnvironmentNotFoundError, InstanceNotFoundError
from ping_scheduler.log import DaemonLog
from ping_scheduler.scheduler import Scheduler, get_instance

DAEMON_LOGGER_NAME = "ping_scheduler.daemon"


class DaemonResult(str, Enum):
    FINISHED = "finished"
    ABORTED = "aborted"
    CRASHED = "crashed"


class DaemonAbort(Exception):
    """
    Raised to stop a daemon invocation that should not run, without touching the runner state.
    """


class Daemon:
    """
    A single daemon invocation: validates the runner gate, runs the pending
    jobs of a scheduler instance, then rests or re-triggers itself.

    Once the runner has been moved to the running state, any exit that does
    not go through `finish` resets the runner to rest, so that the next
    trigger can start a new run.
    """

    def __init__(
        self,
        instance_id: str,
        caller_dir: Union[str, Path],
        config: Optional[Union[DaemonConfig, Dict[str, Any]]] = None,
    ):
        self.instance_id: str = str(instance_id or "")
        self.caller_dir: Path = Path(caller_dir)
        if not isinstance(config, DaemonConfig):
            config = DaemonConfig(**(config or {}))
        self.config: DaemonConfig = config
        self.scheduler: Optional[Scheduler] = None
        self.current_job: Optional[Job] = None
        self.log: DaemonLog = DaemonLog(logging.getLogger(DAEMON_LOGGER_NAME))
        self._output: io.StringIO = io.StringIO()
        self._armed: bool = False
        self._finished: bool = False

    async def __call__(self) -> DaemonResult:
        return await self.run()

    async def run(self) -> DaemonResult:
        with ExitStack() as stack:
            self.init(stack)
            try:
                self.load_config()
                self.load_environment()
                await self.load_instance()
                await self.check_runner()
                await self.run_pending_jobs()
                await self.finish()
                return DaemonResult.FINISHED
            except (DaemonAbort, EnvironmentNotFoundError, InstanceNotFoundError) as e:
                self.log.depth = 0
                self.log.info("Aborting: %s", e)
                return DaemonResult.ABORTED
            except Exception:
                self.log.depth = 0
                self.log.exception("Daemon run failed")
                return DaemonResult.CRASHED
            finally:
                if self._armed and not self._finished:
                    await self.shutdown()

    def init(self, stack: ExitStack) -> None:
        if self.config.logging_enabled:
            stack.enter_context(self.log.to_file(self.config.resolve_log_file(self.caller_dir)))

        self.log.info("-" * 80)
        with self.log.section("Starting daemon ..."):
            self.log.info("Capturing output ...")
            stack.enter_context(capture_output(self._output))
            self.log.info("Entering daemon context ...")
            stack.enter_context(daemon_context())

    def load_config(self) -> None:
        with self.log.section("Loading config ..."):
            if not self.instance_id:
                raise DaemonAbort("The instance ID is invalid or not set")
            self.log.info("Config: %s", self.config.model_dump_json())

    def load_environment(self) -> None:
        with self.log.section("Loading environment ..."):
            path = find_environment(
                self.caller_dir,
                max_dir_search=self.config.max_dir_search,
                file_name=self.config.environment_file,
            )
            if path is None:
                raise EnvironmentNotFoundError(
                    f"Could not find {self.config.environment_file} within "
                    f"{self.config.max_dir_search} directories of '{self.caller_dir}'"
                )
            self.log.info("Found environment: '%s'", path)
            if not load_environment(path):
                self.log.info("Environment was already loaded")

    async def load_instance(self) -> None:
        with self.log.section(f"Retrieving instance '{self.instance_id}' ..."):
            instance = get_instance(self.instance_id)
            if not isinstance(instance, Scheduler):
                raise InstanceNotFoundError(f"No scheduler instance is registered as '{self.instance_id}'")
            self.scheduler = instance
            await instance.prepare()

    async def check_runner(self) -> None:
        runner = self.scheduler.runner
        with self.log.section("Checking runner state ..."):
            state = await runner.get_state()
            if state < RunnerState.QUEUED:
                raise DaemonAbort(f"Runner is in the {state.name} state, the daemon should not have been executed")
            await runner.set_state(RunnerState.RUNNING)
            self._armed = True
            self.log.info("Runner state set to RUNNING, max run time is %d seconds", runner.max_total_run_time)

    async def run_pending_jobs(self) -> None:
        await asyncio.wait_for(self._run_pending_jobs(), timeout=self.scheduler.runner.max_total_run_time)

    async def _run_pending_jobs(self) -> None:
        pending_jobs = await self.scheduler.manager.get_pending_jobs()
        if not pending_jobs:
            self.log.info("There are no pending jobs to run")
            return

        with self.log.section(f"Running {len(pending_jobs)} pending job(s) ..."):
            for job in pending_jobs:
                self.current_job = job
                try:
                    await self.run_job(job)
                except Exception as e:
                    self.log.error("Could not reschedule or remove job #%s: %s", job.id, e)
                self.current_job = None

    async def run_job(self, job: Job) -> bool:
        """
        Run a job, then schedule its next occurrence and remove it.

        Returns:
            bool: False if the job failed and was kept for a later run.
        """
        manager = self.scheduler.manager
        timeout = self.scheduler.runner.max_job_run_time
        with self.log.section(f"Running job #{job.id} with hook `{job.hook}` ..."):
            try:
                await asyncio.wait_for(self.scheduler.dispatcher.invoke(job.hook, job.args), timeout=timeout)
                self.log.info("Done")
            except asyncio.TimeoutError:
                self.log.error("Job timed out after %d seconds", timeout)
                if self.scheduler.config.retain_failed_jobs:
                    self.log.info("This job will remain in the database to be re-run later")
                    return False
            except Exception as e:
                self.log.error("Job failed: %s", e, exc_info=True)
                if self.scheduler.config.retain_failed_jobs:
                    self.log.info("This job will remain in the database to be re-run later")
                    return False

            next_job = await manager.schedule_job_recurrence(job.id)
            if next_job is not None:
                self.log.info("Scheduled next occurrence to run at %s", next_job.due_at.strftime("%H:%M:%S, %d %b %Y"))

            self.log.info("Removing job from the database ...")
            await manager.delete_jobs([job.id])
            return True

    async def finish(self) -> None:
        runner = self.scheduler.runner
        with self.log.section("Cleaning up ..."):
            self.log.info("Flushing output ...")
            captured = self._output.getvalue()
            if captured:
                self.log.debug("Captured output:\n%s", captured)
            self._output.seek(0)
            self._output.truncate()

            if not runner.is_self_pinging:
                await runner.set_state(RunnerState.STOPPED)
                await runner.set_last_run()
                self._finished = True
                self.log.info("Daemon finished successfully")
                return

            await runner.set_state(RunnerState.PREPARING)
            self.log.info("Sleeping for %d seconds ...", runner.run_interval)
            await asyncio.sleep(runner.run_interval)
            self.log.info("Pinging self through the runner")
            await runner.run_daemon()
            self._finished = True

    async def shutdown(self) -> None:
        """
        Reset the runner after a run that ended unexpectedly.
        """
        self.log.depth = 0
        if self.current_job is not None:
            with self.log.section("Daemon ended unexpectedly while running a job"):
                self.log.info("Job ID: %s", self.current_job.id)
                self.log.info("Job hook: %s", self.current_job.hook)
                self.log.info("Job due at: %s", self.current_job.due_at.isoformat())
                self.log.info("Job recurrence: %s", self.current_job.recurrence)

        runner = self.scheduler.runner
        try:
            await runner.set_state(RunnerState.STOPPED)
            await runner.set_last_run()
        except Exception:
            self.log.exception("Could not reset the runner state")
        self.log.info("Exiting ...")
