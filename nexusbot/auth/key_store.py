"""
Signal key stores.

Key material is addressed by ``(type, id)``. Reads take a type and a list
of ids and return only the ids that exist; writes take a nested mapping
``{type: {id: value}}`` where a ``None`` value deletes the key.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from nexusbot.core.database.models import AuthRecord
from nexusbot.core.database.service import DatabaseService
from nexusbot.core.exceptions import StorageError
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)

KeyData = Mapping[str, Mapping[str, Optional[Any]]]


@runtime_checkable
class KeyStore(Protocol):
    async def get(self, key_type: str, ids: Iterable[str]) -> Dict[str, Any]:
        ...

    async def set(self, data: KeyData) -> None:
        ...


def record_name(key_type: str, key_id: str) -> str:
    """Datastore record name of one key, e.g. ``"pre-key-7"``."""
    return f"{key_type}-{key_id}"


class InMemoryKeyStore:
    """
    Key store backed by a plain dict.

    Holds the keys of an override bundle until they are seeded into the
    datastore, and serves as a test double.
    """

    def __init__(self, data: Optional[KeyData] = None) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        if data:
            for key_type, entries in data.items():
                if isinstance(entries, Mapping):
                    self._data[key_type] = dict(entries)
                else:
                    logger.warning(
                        "Ignoring malformed key group",
                        extra={"key_type": key_type, "value_type": type(entries).__name__},
                    )

    async def get(self, key_type: str, ids: Iterable[str]) -> Dict[str, Any]:
        group = self._data.get(key_type, {})
        return {key_id: group[key_id] for key_id in ids if key_id in group}

    async def set(self, data: KeyData) -> None:
        for key_type, entries in data.items():
            group = self._data.setdefault(key_type, {})
            for key_id, value in entries.items():
                if value is None:
                    group.pop(key_id, None)
                else:
                    group[key_id] = value

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._data)


class SqlKeyStore:
    """Key store persisting one `auth_records` row per key."""

    async def get(self, key_type: str, ids: Iterable[str]) -> Dict[str, Any]:
        wanted = {record_name(key_type, key_id): key_id for key_id in ids}
        if not wanted:
            return {}

        try:
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(AuthRecord).where(AuthRecord.key.in_(list(wanted)))
                )
                records = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"keys.get:{key_type}", exc) from exc

        return {wanted[record.key]: record.value for record in records}

    async def set(self, data: KeyData) -> None:
        written = 0
        removed = 0

        try:
            async with DatabaseService.get_transaction() as session:
                for key_type, entries in data.items():
                    for key_id, value in entries.items():
                        name = record_name(key_type, key_id)
                        if value is None:
                            await session.execute(delete(AuthRecord).where(AuthRecord.key == name))
                            removed += 1
                        else:
                            await session.merge(AuthRecord(key=name, value=value))
                            written += 1
        except SQLAlchemyError as exc:
            raise StorageError("keys.set", exc) from exc

        logger.debug("Signal keys stored", extra={"written": written, "removed": removed})
