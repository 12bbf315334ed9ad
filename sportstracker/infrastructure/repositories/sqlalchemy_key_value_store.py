"""SQLAlchemy implementation of KeyValueStore."""

import json
import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sportstracker.domain.errors import StorageError
from sportstracker.models.kv_record import KeyValueRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _default_session_factory() -> AbstractAsyncContextManager[AsyncSession]:
    from sportstracker.core.database import get_db_session

    return get_db_session()


class SqlAlchemyKeyValueStore:
    """Concrete KeyValueStore backed by the ``kv_store`` table.

    Every call opens its own session, so each ``put`` commits (or rolls
    back) the whole record in one transaction.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory or _default_session_factory

    async def get(self, key: str) -> Optional[Any]:
        """Load and decode the record stored under *key*."""
        try:
            async with self._session_factory() as session:
                record = await session.get(KeyValueRecord, key)
                raw = record.value if record is not None else None
        except SQLAlchemyError as e:
            raise StorageError(key, f"read failed: {e}") from e

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(key, f"invalid JSON: {e}") from e

    async def put(self, key: str, value: Any) -> None:
        """Serialize *value* and replace the record under *key*."""
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(key, f"not serializable: {e}") from e

        try:
            async with self._session_factory() as session:
                record = await session.get(KeyValueRecord, key)
                if record is None:
                    session.add(KeyValueRecord(key=key, value=payload))
                else:
                    record.value = payload
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(key, f"write failed: {e}") from e

        logger.debug(f"Stored {key} ({len(payload)} bytes)")

    async def delete(self, key: str) -> None:
        """Remove *key* if present."""
        try:
            async with self._session_factory() as session:
                record = await session.get(KeyValueRecord, key)
                if record is not None:
                    await session.delete(record)
                    await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(key, f"delete failed: {e}") from e
