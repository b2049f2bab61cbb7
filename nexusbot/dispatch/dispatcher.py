"""
Inbound Message Dispatcher.

Purpose
-------
Route live inbound messages to the configured message handler, one call
per message, isolating handler failures from each other and from the
connection.

Rules
-----
- Only ``notify`` batches are processed; history sync batches are ignored
- Messages sent by this account (``key.from_me``) are skipped
- Each remaining message key is handed to the handler at most once; a
  bounded window of recently seen keys suppresses redeliveries
- A handler failure is logged with the message's key and the batch goes on
- No retries, no acknowledgements, no ordering guarantee across batches

Handler Contract
----------------
``handler(connection, message)`` where `connection` is the live Connection
Handle (for replies) and `message` an `InboundMessage`. Sync and async
callables are both accepted.
"""

from __future__ import annotations

import inspect
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from nexusbot.core.config.config import Config
from nexusbot.core.exceptions import HandlerFailureError
from nexusbot.core.logging.logger import LogContext, get_logger
from nexusbot.transport.events import UPSERT_NOTIFY, InboundMessage, MessagesUpsert
from nexusbot.transport.provider import ConnectionHandle

logger = get_logger(__name__)


MessageHandler = Callable[[ConnectionHandle, InboundMessage], Union[Awaitable[None], None]]
DedupeKey = Tuple[str, str, Optional[str]]


@dataclass
class DispatchMetrics:
    dispatched: int = 0
    skipped_self: int = 0
    duplicates: int = 0
    failed: int = 0
    batches_ignored: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class MessageDispatcher:
    def __init__(self, handler: MessageHandler, *, dedupe_window: int = 1000) -> None:
        self._handler = handler
        self._dedupe_window = dedupe_window
        self._recent: "OrderedDict[DedupeKey, None]" = OrderedDict()
        self.metrics = DispatchMetrics()

    @classmethod
    def from_config(cls, handler: MessageHandler) -> MessageDispatcher:
        return cls(handler, dedupe_window=int(Config.DISPATCH_DEDUPE_WINDOW))

    async def dispatch(self, connection: ConnectionHandle, upsert: MessagesUpsert) -> None:
        """Process one ``messages.upsert`` batch. Never raises."""
        if upsert.type != UPSERT_NOTIFY:
            self.metrics.batches_ignored += 1
            logger.debug(
                "Ignoring non-notify message batch",
                extra={"batch_type": upsert.type, "batch_size": len(upsert.messages)},
            )
            return

        for message in upsert.messages:
            await self._dispatch_one(connection, message)

    async def _dispatch_one(self, connection: ConnectionHandle, message: InboundMessage) -> None:
        key = message.key

        if key.from_me:
            self.metrics.skipped_self += 1
            return

        if self._seen(key.remote_jid, key.id, key.participant):
            self.metrics.duplicates += 1
            logger.debug(
                "Duplicate message delivery suppressed",
                extra={"remote_jid": key.remote_jid, "message_id": key.id},
            )
            return

        async with LogContext(remote_jid=key.remote_jid, message_key=key.id, component="dispatch"):
            logger.info("Received message", extra=message.summary())

            try:
                result = self._handler(connection, message)
                if inspect.isawaitable(result):
                    await result
                self.metrics.dispatched += 1

            except Exception as exc:
                self.metrics.failed += 1
                failure = HandlerFailureError(key.id, key.remote_jid, exc)
                logger.error(
                    "Error in message handler",
                    extra={"error_code": failure.error_code, **failure.details},
                    exc_info=True,
                )

    def _seen(self, remote_jid: str, message_id: str, participant: Optional[str]) -> bool:
        """Record the key; True if it was already in the window."""
        if self._dedupe_window <= 0 or not message_id:
            return False

        dedupe_key: DedupeKey = (remote_jid, message_id, participant)
        if dedupe_key in self._recent:
            self._recent.move_to_end(dedupe_key)
            return True

        self._recent[dedupe_key] = None
        while len(self._recent) > self._dedupe_window:
            self._recent.popitem(last=False)
        return False

    def status(self) -> Dict[str, Any]:
        return {"dedupe_window": self._dedupe_window, "recent_keys": len(self._recent), **self.metrics.to_dict()}
