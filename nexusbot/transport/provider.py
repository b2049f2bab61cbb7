"""
Transport provider boundary.

The protocol stack that talks to the messaging network lives outside this
package. The connection core only relies on the two protocols below: a
provider that opens authenticated handles, and the handle it returns.

A provider is configured as ``TRANSPORT_PROVIDER="package.module:factory"``;
the factory is called once with no arguments at startup and must return an
object satisfying `TransportProvider`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

from nexusbot.transport.events import EventEmitter

if TYPE_CHECKING:
    from nexusbot.auth.credentials import Credentials
    from nexusbot.auth.key_store import KeyStore


@runtime_checkable
class ConnectionHandle(Protocol):
    """One live (or pending) session with the messaging network."""

    ev: EventEmitter

    async def send(self, destination: str, content: Mapping[str, Any]) -> Any:
        """Send a message; `content` is e.g. ``{"text": "..."}``."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class TransportProvider(Protocol):
    async def open(
        self,
        credentials: "Credentials",
        key_store: "KeyStore",
        *,
        query_timeout: float,
        print_qr: bool,
    ) -> ConnectionHandle:
        """
        Open a new handle authenticated with `credentials`.

        `key_store` is the cached view over the signal keys; `print_qr`
        asks the provider to surface pairing codes in its own terminal
        output in addition to emitting them as `connection.update` events.
        """
        ...
