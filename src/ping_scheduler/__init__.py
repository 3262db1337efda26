"""
Pseudo-cron Scheduling System

This package runs time-triggered jobs without an OS-level timer. A daemon run
is started out-of-band, by an HTTP request the scheduler sends to itself, and
ordinary requests to the host application are what give it the chance to do so.

Core Concepts:

Job:
    A Job is a hook invocation scheduled for a given time, with positional
    arguments and an optional recurrence interval. Jobs are stored in a table
    managed by the JobManager, which also schedules the next occurrence of
    recurring jobs.

Runner:
    The Runner owns a small persisted state machine (state, last state change,
    last run) that decides whether a new daemon run may start, and triggers
    that run. It rate-limits runs and heals itself when a run gets stuck.

Daemon:
    A Daemon is a single invocation that re-validates the runner state, runs
    every pending job, reschedules or removes them, and then either rests or
    triggers itself again when self-pinging is enabled.

Relationships:
    - A Scheduler instance groups a JobManager and a Runner under one instance ID.
    - Jobs and runner state are only correlated by time, never by reference.
"""

from .config import DaemonConfig, SchedulerConfig
from .context import daemon_context, in_daemon_context
from .daemon import Daemon, DaemonResult
from .domain import Job, RunnerState, RunnerStatus, evaluate_gate
from .hooks import HookDispatcher, HookRegistry
from .job_manager import JobManager
from .runner import Runner
from .scheduler import Scheduler, get_instance, register_instance, unregister_instance

__all__ = [
    "DaemonConfig", "SchedulerConfig", "daemon_context", "in_daemon_context", "Daemon", "DaemonResult",
    "Job", "RunnerState", "RunnerStatus", "evaluate_gate", "HookDispatcher", "HookRegistry", "JobManager",
    "Runner", "Scheduler", "get_instance", "register_instance", "unregister_instance",
]
