from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import BigInteger, Column, ColumnElement, Integer, JSON, String, Text, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from ping_scheduler.errors import StorageError

Base = declarative_base()

IN_MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"

class JobModel(Base):
    __tablename__ = 'jobs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    instance_id = Column(String(191), nullable=False, index=True)
    hook = Column(String(255), nullable=False)
    args = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)
    recurrence = Column(BigInteger, nullable=True)

class OptionModel(Base):
    __tablename__ = 'options'

    name = Column(String(191), primary_key=True)
    value = Column(JSON)


class SqlAlchemyStorage:
    def __init__(self, db_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        if engine is None:
            if not db_url:
                raise ValueError("Either a database URL or an engine must be provided")
            engine = create_async_engine(db_url)
        self.engine: AsyncEngine = engine
        self.async_session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.async_session() as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Storage operation failed: {e}") from e

    async def create_tables(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create tables: {e}") from e


class SqlAlchemyJobStore(SqlAlchemyStorage):
    """
    Job table scoped to a single scheduler instance.
    """

    def __init__(self, instance_id: str, db_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        super().__init__(db_url, engine)
        self.instance_id: str = instance_id

    def _scope(self) -> ColumnElement[bool]:
        return JobModel.instance_id == self.instance_id

    async def insert(self, values: Dict[str, Any]) -> int:
        async with self._session() as session:
            db_job = JobModel(instance_id=self.instance_id, **values)
            session.add(db_job)
            await session.commit()
            return db_job.id

    async def update(self, values: Dict[str, Any], *criteria: ColumnElement[bool]) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(JobModel)
                .where(self._scope(), *criteria)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

    async def delete(self, *criteria: ColumnElement[bool]) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(JobModel)
                .where(self._scope(), *criteria)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

    async def fetch(self, *criteria: ColumnElement[bool]) -> List[JobModel]:
        async with self._session() as session:
            result = await session.execute(
                select(JobModel).where(self._scope(), *criteria).order_by(JobModel.id)
            )
            return list(result.scalars())


class SqlAlchemyOptionStore(SqlAlchemyStorage):
    async def get(self, name: str, default: Any = None) -> Any:
        async with self._session() as session:
            result = await session.execute(select(OptionModel).filter_by(name=name))
            db_option = result.scalar_one_or_none()
            if db_option is None:
                return default
            return db_option.value

    async def set(self, name: str, value: Any) -> None:
        async with self._session() as session:
            result = await session.execute(
                update(OptionModel).where(OptionModel.name == name).values(value=value)
            )
            if result.rowcount:
                await session.commit()
                return
            session.add(OptionModel(name=name, value=value))
            try:
                await session.commit()
            except IntegrityError:
                # Another process inserted the option between our update and insert
                await session.rollback()
                await session.execute(
                    update(OptionModel).where(OptionModel.name == name).values(value=value)
                )
                await session.commit()


class InMemoryJobStore(SqlAlchemyJobStore):
    def __init__(self, instance_id: str):
        super().__init__(instance_id, IN_MEMORY_DB_URL)


class InMemoryOptionStore(SqlAlchemyOptionStore):
    def __init__(self):
        super().__init__(IN_MEMORY_DB_URL)
