"""Persistence gateway - key-addressed storage of users, checks, tokens and alerts.

The monitoring core only talks to ``PersistenceGateway``. Semantics are
last-write-wins with no transactions: callers that need atomicity across a
read and a write hold a per-record ``KeyedLocks`` lock.
"""
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..errors import StorageError
from ..models import Alert, Check, SessionToken, User
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)

USERS = "users"
CHECKS = "checks"
TOKENS = "tokens"
ALERTS = "alerts"

KINDS = (USERS, CHECKS, TOKENS, ALERTS)


def _check_kind(kind: str):
    if kind not in KINDS:
        raise ValueError(f"Unknown record kind: {kind}")


class PersistenceGateway(ABC):
    """Swappable storage backend."""

    @abstractmethod
    async def get(self, kind: str, record_id: str) -> Optional[dict]:
        """Return the record, or None if it does not exist."""

    @abstractmethod
    async def put(self, kind: str, record_id: str, record: dict) -> None:
        """Insert or replace the record."""

    @abstractmethod
    async def delete(self, kind: str, record_id: str) -> None:
        """Delete the record; deleting a missing record is not an error."""

    @abstractmethod
    async def list_all(self, kind: str) -> List[dict]:
        """Return every record of ``kind``."""

    async def find_by(self, kind: str, field: str, value: Any) -> List[dict]:
        """Return the records of ``kind`` whose ``field`` equals ``value``.

        The default scans ``list_all``; backends with indexes override it.
        """
        return [record for record in await self.list_all(kind) if record.get(field) == value]

    async def close(self) -> None:
        """Release backend resources."""


class MemoryGateway(PersistenceGateway):
    """In-process storage, used for development and tests.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, dict]] = {kind: {} for kind in KINDS}

    async def get(self, kind: str, record_id: str) -> Optional[dict]:
        _check_kind(kind)
        record = self._data[kind].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, kind: str, record_id: str, record: dict) -> None:
        _check_kind(kind)
        self._data[kind][record_id] = copy.deepcopy({**record, "id": record_id})

    async def delete(self, kind: str, record_id: str) -> None:
        _check_kind(kind)
        self._data[kind].pop(record_id, None)

    async def list_all(self, kind: str) -> List[dict]:
        _check_kind(kind)
        return [copy.deepcopy(record) for record in self._data[kind].values()]


class SqlGateway(PersistenceGateway):
    """Storage backed by SQLAlchemy (SQLite or PostgreSQL)."""

    MODELS = {
        USERS: User,
        CHECKS: Check,
        TOKENS: SessionToken,
        ALERTS: Alert,
    }

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    def _model(self, kind: str):
        _check_kind(kind)
        return self.MODELS[kind]

    @staticmethod
    def _to_record(obj) -> dict:
        return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}

    async def get(self, kind: str, record_id: str) -> Optional[dict]:
        model = self._model(kind)
        try:
            async with self._session_factory() as session:
                obj = await retry_on_lock(lambda: session.get(model, record_id))
                return self._to_record(obj) if obj is not None else None
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to read {kind}/{record_id}: {e}")
            raise StorageError(f"Failed to read {kind}/{record_id}") from e

    async def put(self, kind: str, record_id: str, record: dict) -> None:
        model = self._model(kind)
        columns = {column.name for column in model.__table__.columns}
        values = {key: value for key, value in record.items() if key in columns}
        values["id"] = record_id
        try:
            async with self._session_factory() as session:
                await session.merge(model(**values))
                await retry_on_lock(session.commit)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to write {kind}/{record_id}: {e}")
            raise StorageError(f"Failed to write {kind}/{record_id}") from e

    async def delete(self, kind: str, record_id: str) -> None:
        model = self._model(kind)
        try:
            async with self._session_factory() as session:
                obj = await session.get(model, record_id)
                if obj is None:
                    return
                await session.delete(obj)
                await retry_on_lock(session.commit)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to delete {kind}/{record_id}: {e}")
            raise StorageError(f"Failed to delete {kind}/{record_id}") from e

    async def list_all(self, kind: str) -> List[dict]:
        model = self._model(kind)
        try:
            async with self._session_factory() as session:
                result = await retry_on_lock(lambda: session.execute(select(model)))
                return [self._to_record(obj) for obj in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to list {kind}: {e}")
            raise StorageError(f"Failed to list {kind}") from e

    async def find_by(self, kind: str, field: str, value: Any) -> List[dict]:
        model = self._model(kind)
        column = getattr(model, field, None)
        if column is None:
            raise ValueError(f"Unknown field for {kind}: {field}")
        try:
            async with self._session_factory() as session:
                result = await retry_on_lock(lambda: session.execute(select(model).where(column == value)))
                return [self._to_record(obj) for obj in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to query {kind} by {field}: {e}")
            raise StorageError(f"Failed to query {kind} by {field}") from e
