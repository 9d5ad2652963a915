"""KeyValueStore implementation backed by a SQLAlchemy table."""

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from batch_engine.application.interfaces import KeyValueStore
from batch_engine.infrastructure.database.models import KeyValueEntryModel


class SQLAlchemyKeyValueStore(KeyValueStore):
    """Implements the KeyValueStore port on the key_value_entries table.

    The store outlives any request, so each operation opens and commits
    its own session from the injected factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            model = await session.get(KeyValueEntryModel, key)
            return model.value if model else None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            model = await session.get(KeyValueEntryModel, key)
            if model is None:
                session.add(KeyValueEntryModel(key=key, value=value))
            else:
                model.value = value
            await session.commit()

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(KeyValueEntryModel).where(KeyValueEntryModel.key == key))
            await session.commit()
