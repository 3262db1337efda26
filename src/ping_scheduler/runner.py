import logging
import time
from typing import Callable, Optional

from ping_scheduler.config import SchedulerConfig
from ping_scheduler.context import in_daemon_context
from ping_scheduler.domain.runner import GateDecision, RunnerState, RunnerStatus, evaluate_gate
from ping_scheduler.storages.protocol import OptionStore
from ping_scheduler.triggers.protocol import DaemonTrigger

logger = logging.getLogger(__name__)

STATE_OPTION_SUFFIX = "ping_scheduler_state"
LAST_STATE_CHANGE_OPTION_SUFFIX = "ping_scheduler_last_state_change"
LAST_RUN_OPTION_SUFFIX = "ping_scheduler_last_run"


class Runner:
    """
    Gates daemon runs through a persisted state machine and triggers new runs.

    Triggers arrive from uncoordinated requests, so no real lock is available.
    The state and its timestamps give a best-effort mutual exclusion that
    heals itself when a run gets stuck or dies.
    """

    def __init__(
        self,
        instance_id: str,
        options: OptionStore,
        trigger: DaemonTrigger,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.instance_id: str = instance_id
        self.options: OptionStore = options
        self.trigger: DaemonTrigger = trigger
        self.config: SchedulerConfig = config or SchedulerConfig()
        self.clock: Callable[[], float] = clock

    @property
    def run_interval(self) -> int:
        return self.config.run_interval

    @property
    def max_job_run_time(self) -> int:
        return self.config.max_job_run_time

    @property
    def max_total_run_time(self) -> int:
        return self.config.max_total_run_time

    @property
    def is_self_pinging(self) -> bool:
        return self.config.self_pinging

    def _now(self) -> int:
        return int(self.clock())

    def _option_name(self, suffix: str) -> str:
        return f"{self.instance_id}_{suffix}"

    async def get_state(self) -> RunnerState:
        value = await self.options.get(self._option_name(STATE_OPTION_SUFFIX), RunnerState.STOPPED.value)
        return RunnerState(int(value))

    async def set_state(self, state: RunnerState) -> None:
        state = RunnerState(state)
        await self.options.set(self._option_name(STATE_OPTION_SUFFIX), state.value)
        await self.options.set(self._option_name(LAST_STATE_CHANGE_OPTION_SUFFIX), self._now())
        logger.debug("Runner '%s' state changed to %s", self.instance_id, state.name)

    async def get_last_state_change(self) -> int:
        value = await self.options.get(self._option_name(LAST_STATE_CHANGE_OPTION_SUFFIX))
        return self._now() if value is None else int(value)

    async def get_last_run(self) -> int:
        return int(await self.options.get(self._option_name(LAST_RUN_OPTION_SUFFIX), 0))

    async def set_last_run(self, timestamp: Optional[int] = None) -> None:
        value = self._now() if timestamp is None else int(timestamp)
        await self.options.set(self._option_name(LAST_RUN_OPTION_SUFFIX), value)

    async def get_status(self) -> RunnerStatus:
        return RunnerStatus(
            state=await self.get_state(),
            last_state_change=await self.get_last_state_change(),
            last_run=await self.get_last_run(),
        )

    async def check_gate(self) -> GateDecision:
        status = await self.get_status()
        return evaluate_gate(status, self._now(), self.run_interval, self.max_total_run_time)

    async def can_run_daemon(self) -> bool:
        return (await self.check_gate()).allowed

    async def run_daemon(self) -> bool:
        """
        Queue a daemon run and trigger it, if the gate allows it.

        A self-pinging daemon re-triggering itself bypasses the gate, since it
        already holds the active run.

        Returns:
            bool: True if a daemon run was triggered.
        """
        next_state = RunnerState.QUEUED
        if not (in_daemon_context() and self.is_self_pinging):
            decision = await self.check_gate()
            if not decision.allowed:
                logger.debug("Runner '%s' refused to run the daemon: %s", self.instance_id, decision.reason)
                return False
            logger.debug("Runner '%s' is running the daemon: %s", self.instance_id, decision.reason)
            next_state = decision.next_state

        await self.set_state(next_state)
        await self.trigger.trigger()
        return True
