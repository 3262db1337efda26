from typing import Any, Dict, List, Protocol

from sqlalchemy import ColumnElement

from ping_scheduler.storages.sqlalchemy import JobModel


class JobStore(Protocol):
    async def create_tables(self) -> None:
        """Create the jobs table if it does not exist yet."""
        ...

    async def insert(self, values: Dict[str, Any]) -> int:
        """Insert a job row and return its newly assigned ID."""
        ...

    async def update(self, values: Dict[str, Any], *criteria: ColumnElement[bool]) -> int:
        """Update the rows matching all criteria. Return the number of affected rows."""
        ...

    async def delete(self, *criteria: ColumnElement[bool]) -> int:
        """Delete the rows matching all criteria. Return the number of affected rows."""
        ...

    async def fetch(self, *criteria: ColumnElement[bool]) -> List[JobModel]:
        """Fetch the rows matching all criteria, in storage order."""
        ...


class OptionStore(Protocol):
    async def create_tables(self) -> None:
        """Create the options table if it does not exist yet."""
        ...

    async def get(self, name: str, default: Any = None) -> Any:
        """Retrieve an option value, or the default if the option is not set."""
        ...

    async def set(self, name: str, value: Any) -> None:
        """Create or overwrite an option value."""
        ...
