"""
Bot-state store: JSON key-value persistence for message handlers.

Handlers keep whatever cross-message state they need here (counters,
last-seen markers, per-chat settings). The connection core never reads it.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from nexusbot.core.database.models import BotStateRecord
from nexusbot.core.database.service import DatabaseService
from nexusbot.core.exceptions import StorageError
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


class BotStateStore:
    """Thin async facade over the `bot_state` table."""

    @staticmethod
    async def get(key: str, default: Optional[Any] = None) -> Any:
        try:
            async with DatabaseService.get_session() as session:
                record = await session.get(BotStateRecord, key)
        except SQLAlchemyError as exc:
            raise StorageError(f"bot_state.get:{key}", exc) from exc

        return default if record is None else record.value

    @staticmethod
    async def set(key: str, value: Any) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                await session.merge(BotStateRecord(key=key, value=value))
        except SQLAlchemyError as exc:
            raise StorageError(f"bot_state.set:{key}", exc) from exc

        logger.debug("Bot state updated", extra={"key": key})

    @staticmethod
    async def delete(key: str) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                await session.execute(delete(BotStateRecord).where(BotStateRecord.key == key))
        except SQLAlchemyError as exc:
            raise StorageError(f"bot_state.delete:{key}", exc) from exc
