import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator


def to_timestamp(value: Union[datetime, int, float]) -> int:
    """
    Convert a datetime or epoch value into whole epoch seconds. Naive datetimes are taken as UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def normalize_args(args: Any) -> List[Any]:
    """
    Normalize job arguments into a positional list.

    A mapping is treated as a sparse list keyed by position, and its values
    are returned in ascending numeric key order.
    """
    if args is None:
        return []
    if isinstance(args, Mapping):
        return [value for _, value in sorted(args.items(), key=lambda item: int(item[0]))]
    if isinstance(args, (str, bytes)):
        raise ValueError("Job arguments must be a sequence or a mapping, not a string")
    return list(args)


def serialize_args(args: Any) -> str:
    """
    Serialize job arguments into their canonical stored form.

    Logically identical argument lists always produce the same string, which
    is what allows jobs to be looked up by their arguments.
    """
    return json.dumps(normalize_args(args), sort_keys=True, separators=(",", ":"))


def deserialize_args(serialized: str) -> List[Any]:
    return normalize_args(json.loads(serialized))


class Job(BaseModel):
    """
    A hook invocation scheduled to run at a given time, optionally recurring.
    """
    id: Optional[int] = Field(None, description="Storage identifier, None until the job is persisted")
    due_at: datetime = Field(..., description="UTC time, in whole seconds, at which the job becomes due")
    hook: str = Field(..., min_length=1, description="Name of the hook that runs the job")
    args: List[Any] = Field(default_factory=list, description="Positional arguments passed to the hook")
    recurrence: Optional[int] = Field(None, description="Seconds between occurrences, None for one-shot jobs")

    @field_validator('due_at', mode='before')
    def coerce_timestamp(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return datetime.fromtimestamp(int(v), tz=timezone.utc)
        return v

    @field_validator('due_at')
    def check_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            logging.warning("Job due time does not include a timezone. Assuming UTC.")
            v = v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc).replace(microsecond=0)

    @field_validator('args', mode='before')
    def check_args(cls, v: Any) -> List[Any]:
        return normalize_args(v)

    @field_validator('recurrence')
    def check_recurrence(cls, v: Optional[int]) -> Optional[int]:
        if not v:
            return None
        if v < 0:
            raise ValueError("Recurrence must be a positive number of seconds")
        return v

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and self.id is not None and value != self.id:
            raise ValueError(f"Job {self.id} already has an ID and cannot be given another one")
        super().__setattr__(name, value)

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def timestamp(self) -> int:
        return int(self.due_at.timestamp())

    def next_due_at(self) -> Optional[datetime]:
        """
        The due time of the next occurrence, anchored to this job's due time.
        """
        if not self.is_recurring:
            return None
        return self.due_at + timedelta(seconds=self.recurrence)

    @property
    def readable_string(self) -> str:
        summary = f"Job #{self.id} hook '{self.hook}' due at {self.due_at.strftime('%Y-%m-%d %H:%M:%S %Z')}"
        if self.is_recurring:
            summary += f", every {self.recurrence} seconds"
        return summary
