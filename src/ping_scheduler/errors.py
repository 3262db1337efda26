class SchedulerError(Exception):
    """
    Base class for all errors raised by ping_scheduler.
    """


class JobNotFoundError(SchedulerError, LookupError):
    def __init__(self, job_id: int):
        super().__init__(f"No job found with id {job_id}")
        self.job_id = job_id


class StorageError(SchedulerError):
    """
    Raised when the job store or the option store fails.
    """


class HookNotFoundError(SchedulerError, KeyError):
    def __init__(self, hook: str):
        super().__init__(f"No handler registered for hook '{hook}'")
        self.hook = hook

    def __str__(self) -> str:
        return self.args[0]


class EnvironmentNotFoundError(SchedulerError):
    pass


class InstanceNotFoundError(SchedulerError):
    pass
