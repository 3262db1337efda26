from .job import Job, normalize_args, serialize_args, deserialize_args, to_timestamp
from .runner import RunnerState, RunnerStatus, GateDecision, evaluate_gate

__all__ = [
    "Job", "normalize_args", "serialize_args", "deserialize_args", "to_timestamp",
    "RunnerState", "RunnerStatus", "GateDecision", "evaluate_gate",
]
