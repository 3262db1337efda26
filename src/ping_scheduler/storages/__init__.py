from .sqlalchemy import (
    Base,
    JobModel,
    OptionModel,
    SqlAlchemyStorage,
    SqlAlchemyJobStore,
    SqlAlchemyOptionStore,
    InMemoryJobStore,
    InMemoryOptionStore,
)
from .protocol import JobStore, OptionStore

__all__ = [
    "Base", "JobModel", "OptionModel", "SqlAlchemyStorage", "SqlAlchemyJobStore",
    "SqlAlchemyOptionStore", "InMemoryJobStore", "InMemoryOptionStore", "JobStore", "OptionStore",
]
