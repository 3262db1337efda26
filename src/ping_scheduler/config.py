from pathlib import Path
from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field

ENVIRONMENT_FILE = "ping_scheduler_env.py"
DEFAULT_LOG_FILE_NAME = "ping-scheduler.log"

ConfigT = TypeVar("ConfigT", bound="PersistedConfig")


class PersistedConfig(BaseModel):
    """
    Base class for configuration models that can be saved to and loaded from JSON files.
    """

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls: Type[ConfigT], path: Union[str, Path]) -> ConfigT:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Config file '{path}' does not exist or is not a file")
        return cls.model_validate_json(path.read_text())


class SchedulerConfig(PersistedConfig):
    """
    Settings for a scheduler instance. The core only ever reads these.
    """
    run_interval: int = Field(10, ge=0, description="Minimum seconds between daemon run starts")
    max_job_run_time: int = Field(60, gt=0, description="Maximum seconds a single job may run")
    max_total_run_time: int = Field(600, gt=0, description="Seconds after which an active run is presumed stuck")
    retain_failed_jobs: bool = Field(True, description="Keep failed jobs so that they are retried on the next run")
    self_pinging: bool = Field(False, description="Chain daemon runs by having the daemon trigger itself")


class DaemonConfig(PersistedConfig):
    """
    Settings for a daemon invocation, available before the environment is loaded.
    """
    logging_enabled: bool = Field(False, description="Write the diagnostic log to log_file_path")
    log_file_path: Optional[Path] = Field(None, description=f"Log file, defaults to {DEFAULT_LOG_FILE_NAME} in the caller directory")
    max_dir_search: int = Field(10, gt=0, description="Maximum number of directories searched for the environment file")
    environment_file: str = Field(ENVIRONMENT_FILE, description="Name of the environment entry file")

    def resolve_log_file(self, caller_dir: Union[str, Path]) -> Path:
        if self.log_file_path is not None:
            return Path(self.log_file_path)
        return Path(caller_dir) / DEFAULT_LOG_FILE_NAME
