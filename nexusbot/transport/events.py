"""
Connection-handle event model.

Purpose
-------
Defines the three event classes a Connection Handle emits, their payload
types, and the `EventEmitter` every handle exposes as `handle.ev`.

Event Names
-----------
- ``connection.update``: `ConnectionUpdate` (open / close / QR code)
- ``messages.upsert``: `MessagesUpsert` (a batch of inbound messages)
- ``creds.update``: ``dict`` of changed credential fields

Delivery Model
--------------
`emit()` awaits each listener in registration order, so events of one
handle are observed in the order the transport emits them. A failing
listener is logged and never prevents later listeners from running.
Listeners may be sync or async callables taking one payload argument.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


CONNECTION_UPDATE = "connection.update"
MESSAGES_UPSERT = "messages.upsert"
CREDS_UPDATE = "creds.update"

# Batch types carried by `messages.upsert`
UPSERT_NOTIFY = "notify"
UPSERT_APPEND = "append"

Listener = Callable[[Any], Any]


# ============================================================================
# Payloads
# ============================================================================


@dataclass(frozen=True, slots=True)
class DisconnectInfo:
    """Why a connection closed, as reported by the transport."""

    status_code: Optional[int] = None
    error: Optional[BaseException] = None
    detail: Optional[str] = None

    def describe(self) -> str:
        if self.detail:
            return self.detail
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return "no error reported"


@dataclass(frozen=True, slots=True)
class ConnectionUpdate:
    """
    Connection-state change.

    `connection` is ``"connecting"``, ``"open"`` or ``"close"`` when the
    state changed; `qr` carries a scan code for out-of-band pairing.
    """

    connection: Optional[str] = None
    last_disconnect: Optional[DisconnectInfo] = None
    qr: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MessageKey:
    """Unique identity of a message within a chat."""

    remote_jid: str
    id: str
    from_me: bool = False
    participant: Optional[str] = None


@dataclass(slots=True)
class InboundMessage:
    key: MessageKey
    message: Optional[Dict[str, Any]] = None
    push_name: Optional[str] = None
    timestamp: Optional[int] = None

    def summary(self) -> Dict[str, Any]:
        """Loggable summary without the message body."""
        return {
            "remote_jid": self.key.remote_jid,
            "message_id": self.key.id,
            "participant": self.key.participant,
            "push_name": self.push_name,
            "timestamp": self.timestamp,
            "content_types": sorted(self.message.keys()) if self.message else [],
        }


@dataclass(slots=True)
class MessagesUpsert:
    """A batch of messages; `type` is ``"notify"`` for live traffic."""

    type: str
    messages: List[InboundMessage] = field(default_factory=list)


# ============================================================================
# Emitter
# ============================================================================


class EventEmitter:
    """
    Per-handle event subscription interface.

    >>> ev = EventEmitter()
    >>> ev.on(CONNECTION_UPDATE, on_update)
    >>> await ev.emit(CONNECTION_UPDATE, ConnectionUpdate(connection="open"))
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event_name: str, listener: Listener) -> Listener:
        self._listeners.setdefault(event_name, []).append(listener)
        return listener

    def off(self, event_name: str, listener: Listener) -> bool:
        listeners = self._listeners.get(event_name)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._listeners[event_name]
        return True

    def remove_all_listeners(self, event_name: Optional[str] = None) -> None:
        if event_name is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_name, None)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    async def emit(self, event_name: str, payload: Any) -> int:
        """
        Deliver `payload` to every listener of `event_name`.

        Returns
        -------
        int
            Number of listeners that completed without raising.
        """
        # Snapshot: listeners may unsubscribe while we iterate.
        listeners = list(self._listeners.get(event_name, ()))
        delivered = 0

        for listener in listeners:
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as exc:
                logger.error(
                    "Event listener error",
                    extra={
                        "event_name": event_name,
                        "listener": getattr(listener, "__qualname__", repr(listener)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )

        return delivered
