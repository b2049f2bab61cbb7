"""
Test doubles for the transport boundary.

`FakeTransport` records every handle it opens; tests drive a handle by
emitting events on it (`open_connection()`, `close_connection()`, ...),
exactly as a real protocol stack would.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

from nexusbot.transport.events import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    UPSERT_NOTIFY,
    ConnectionUpdate,
    DisconnectInfo,
    EventEmitter,
    InboundMessage,
    MessageKey,
    MessagesUpsert,
)


class FakeConnection:
    def __init__(self, credentials: Any, key_store: Any, *, query_timeout: float, print_qr: bool) -> None:
        self.ev = EventEmitter()
        self.credentials = credentials
        self.key_store = key_store
        self.query_timeout = query_timeout
        self.print_qr = print_qr
        self.sent: List[Tuple[str, Mapping[str, Any]]] = []
        self.closed = False
        self.send_error: Optional[Exception] = None

    async def send(self, destination: str, content: Mapping[str, Any]) -> Dict[str, Any]:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((destination, content))
        return {"status": "sent"}

    async def close(self) -> None:
        self.closed = True

    # Event helpers

    async def open_connection(self) -> None:
        await self.ev.emit(CONNECTION_UPDATE, ConnectionUpdate(connection="open"))

    async def close_connection(self, status_code: Optional[int]) -> None:
        await self.ev.emit(
            CONNECTION_UPDATE,
            ConnectionUpdate(connection="close", last_disconnect=DisconnectInfo(status_code=status_code)),
        )

    async def show_qr(self, qr: str) -> None:
        await self.ev.emit(CONNECTION_UPDATE, ConnectionUpdate(qr=qr))

    async def deliver(self, *messages: InboundMessage, batch_type: str = UPSERT_NOTIFY) -> None:
        await self.ev.emit(MESSAGES_UPSERT, MessagesUpsert(type=batch_type, messages=list(messages)))

    async def update_creds(self, update: Dict[str, Any]) -> None:
        await self.ev.emit(CREDS_UPDATE, update)


class FakeTransport:
    """Transport provider double; `fail_next` makes the next N opens raise."""

    def __init__(self) -> None:
        self.connections: List[FakeConnection] = []
        self.open_calls = 0
        self.fail_next = 0
        self.open_delay: float = 0.0

    async def open(self, credentials: Any, key_store: Any, *, query_timeout: float, print_qr: bool) -> FakeConnection:
        self.open_calls += 1
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.fail_next:
            self.fail_next -= 1
            raise ConnectionError("transport unavailable")

        connection = FakeConnection(credentials, key_store, query_timeout=query_timeout, print_qr=print_qr)
        self.connections.append(connection)
        return connection

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]


def make_message(
    message_id: str,
    *,
    remote_jid: str = "15550001111@s.whatsapp.net",
    from_me: bool = False,
    text: str = "hello",
    participant: Optional[str] = None,
) -> InboundMessage:
    return InboundMessage(
        key=MessageKey(remote_jid=remote_jid, id=message_id, from_me=from_me, participant=participant),
        message={"conversation": text},
        push_name="Tester",
        timestamp=1_700_000_000,
    )


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll `predicate` until true; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(interval)
