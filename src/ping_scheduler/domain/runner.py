from enum import IntEnum

from pydantic import BaseModel, Field


class RunnerState(IntEnum):
    """
    Daemon run states, ordered by progress through a run cycle.
    """
    STOPPED = 0
    IDLE = 1
    QUEUED = 2
    PREPARING = 3
    RUNNING = 4

    @property
    def is_resting(self) -> bool:
        return self <= RunnerState.IDLE


class RunnerStatus(BaseModel):
    """
    Snapshot of the persisted runner state.
    """
    state: RunnerState = RunnerState.STOPPED
    last_state_change: int = Field(..., description="Epoch seconds of the most recent state transition")
    last_run: int = Field(0, description="Epoch seconds of the most recent finished or aborted run")


class GateDecision(BaseModel):
    allowed: bool
    next_state: RunnerState
    reason: str


def evaluate_gate(status: RunnerStatus, now: int, run_interval: int, max_total_run_time: int) -> GateDecision:
    """
    Decide whether a new daemon run may be queued.

    Args:
        status (RunnerStatus): The persisted runner state read at the start of the check.
        now (int): Current time in epoch seconds.
        run_interval (int): Minimum seconds between run starts.
        max_total_run_time (int): Seconds after which an active state is presumed stuck.

    Returns:
        GateDecision: Whether the run may start, the state to move to, and why.
    """
    state = status.state
    since_run = now - status.last_run
    since_change = now - status.last_state_change

    def refuse(reason: str) -> GateDecision:
        return GateDecision(allowed=False, next_state=state, reason=reason)

    def allow(reason: str) -> GateDecision:
        return GateDecision(allowed=True, next_state=RunnerState.QUEUED, reason=reason)

    queued_unpicked = state == RunnerState.QUEUED and since_change > run_interval

    if since_run < run_interval and not queued_unpicked:
        return refuse("too soon since the last run")

    if state > RunnerState.QUEUED and since_change < max_total_run_time:
        return refuse("a run is in progress")

    if state.is_resting:
        return allow("runner is at rest")
    if state == RunnerState.QUEUED:
        if queued_unpicked:
            return allow("queued request was never picked up")
        return refuse("a run is already queued")
    return allow("run exceeded the maximum run time and is presumed stuck")
