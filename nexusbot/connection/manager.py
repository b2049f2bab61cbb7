"""
Connection Lifecycle Manager - keep one messaging session alive.

Purpose
-------
Drive the connect / wait-for-close / reconnect cycle against the transport
provider, feeding credential updates back into the Credential Store and
inbound messages into the dispatcher.

Lifecycle
---------
Each attempt, in one explicit loop:

1. Load credentials (the override bundle is applied on the first attempt
   that gets that far, then seeded into the store)
2. Open a Connection Handle, bounded by the query timeout
3. Subscribe ``connection.update``, ``messages.upsert`` and ``creds.update``
4. Wait until the handle's close has been processed, then detach from it

A terminal close (logout by default) ends the loop; the process stays up.
Any other close, and any failure during steps 1-3, waits the fixed retry
delay and starts the next attempt. There is no retry ceiling and no
backoff growth.

Invariants
----------
- At most one handle is attached; the next one is opened only after the
  previous handle's subscriptions were removed.
- Events from a handle other than the attached one never change state.
- Message batches reach the dispatcher only while the state is OPEN.
- Exactly one new attempt per retryable close.

Usage
-----
>>> manager = ConnectionManager.from_config(
...     transport=provider, credential_store=store, dispatcher=dispatcher
... )
>>> manager.start()
>>> ...
>>> await manager.stop()
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import uuid
from typing import Any, AbstractSet, Callable, Dict, List, Optional, Tuple

from nexusbot.auth.credentials import Credentials
from nexusbot.auth.key_cache import CachedKeyStore
from nexusbot.auth.store import CredentialStore
from nexusbot.connection.state import ConnectionMetrics, ConnectionState
from nexusbot.core.config.config import Config
from nexusbot.core.exceptions import ConnectionRetryableError, ConnectionTerminalError
from nexusbot.core.logging.logger import LogContext, get_logger
from nexusbot.dispatch.dispatcher import MessageDispatcher
from nexusbot.transport.disconnect import (
    DisconnectCategory,
    classify_disconnect,
    describe_reason,
)
from nexusbot.transport.events import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    ConnectionUpdate,
    DisconnectInfo,
    MessagesUpsert,
)
from nexusbot.transport.provider import ConnectionHandle, TransportProvider

logger = get_logger(__name__)


QrPresenter = Callable[[str], Any]


def log_qr_code(qr: str) -> None:
    """Default QR presenter: hand the pairing code to the operator via logs."""
    logger.info(
        "QR code generated for authentication; scan it with the phone to log in",
        extra={"qr": qr},
    )


class ConnectionManager:
    """
    Public API
    ----------
    - start() -> schedule the connection loop as a background task
    - run() -> the connection loop itself
    - stop() -> end the loop, detach and close the current handle
    - status() -> state, attempt count and lifecycle counters
    """

    def __init__(
        self,
        *,
        transport: TransportProvider,
        credential_store: CredentialStore,
        dispatcher: MessageDispatcher,
        override_bundle: Optional[str] = None,
        retry_delay_seconds: float = 3.0,
        query_timeout_seconds: float = 60.0,
        key_cache_ttl_seconds: float = 300.0,
        terminal_codes: AbstractSet[int] = frozenset(),
        announcement_destination: str = "status@broadcast",
        announcement_text: str = "NexusCoders is connected and ready to use!",
        qr_presenter: QrPresenter = log_qr_code,
    ) -> None:
        self._transport = transport
        self._credential_store = credential_store
        self._dispatcher = dispatcher
        self._override_bundle = override_bundle
        self._retry_delay = retry_delay_seconds
        self._query_timeout = query_timeout_seconds
        self._key_cache_ttl = key_cache_ttl_seconds
        self._terminal_codes = frozenset(terminal_codes)
        self._announcement_destination = announcement_destination
        self._announcement_text = announcement_text
        self._qr_presenter = qr_presenter

        self._state = ConnectionState.IDLE
        self._handle: Optional[ConnectionHandle] = None
        self._connection_id: Optional[str] = None
        self._subscriptions: List[Tuple[str, Callable[[Any], Any]]] = []
        self._closed: Optional[asyncio.Future] = None
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        self._override_pending = bool(override_bundle)
        self._override_active = False

        self.metrics = ConnectionMetrics()

    @classmethod
    def from_config(
        cls,
        *,
        transport: TransportProvider,
        credential_store: CredentialStore,
        dispatcher: MessageDispatcher,
        qr_presenter: QrPresenter = log_qr_code,
    ) -> ConnectionManager:
        return cls(
            transport=transport,
            credential_store=credential_store,
            dispatcher=dispatcher,
            override_bundle=Config.SESSION_DATA,
            retry_delay_seconds=float(Config.RECONNECT_DELAY_SECONDS),
            query_timeout_seconds=float(Config.QUERY_TIMEOUT_SECONDS),
            key_cache_ttl_seconds=float(Config.KEY_CACHE_TTL_SECONDS),
            terminal_codes=Config.TERMINAL_DISCONNECT_CODES,
            announcement_destination=Config.READY_ANNOUNCEMENT_DESTINATION,
            announcement_text=f"{Config.BOT_NAME} is connected and ready to use!",
            qr_presenter=qr_presenter,
        )

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def handle(self) -> Optional[ConnectionHandle]:
        """The attached handle, if any."""
        return self._handle

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "connection_id": self._connection_id,
            "attempt": self.metrics.attempts,
            "running": self.is_running,
            "override_active": self._override_active,
            "metrics": self.metrics.to_dict(),
        }

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> asyncio.Task:
        if self._task is not None and not self._task.done():
            logger.warning("Connection manager already running")
            return self._task

        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name="connection-manager")
        return self._task

    async def stop(self, timeout: float = 10.0) -> None:
        """
        End the loop, detach from and close the current handle.

        Safe to call more than once; a terminal state is preserved.
        """
        self._stop_event.set()
        handle = self._handle

        if self._closed is not None and not self._closed.done():
            self._closed.set_result(None)

        if self._task is not None and not self._task.done():
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Connection loop did not stop in time; cancelled",
                    extra={"timeout_seconds": timeout},
                )
            except asyncio.CancelledError:
                logger.debug("Connection loop cancelled during stop")
        self._task = None

        if handle is not None:
            await self._close_quietly(handle)

        if self._state is not ConnectionState.CLOSED_TERMINAL:
            self._set_state(ConnectionState.IDLE)

    async def run(self) -> None:
        """Connect, wait for close, reconnect; until terminal close or stop()."""
        logger.info(
            "Connection manager started",
            extra={
                "retry_delay_seconds": self._retry_delay,
                "query_timeout_seconds": self._query_timeout,
                "override_supplied": self._override_pending,
            },
        )

        try:
            while not self._stop_event.is_set():
                try:
                    category = await self._run_attempt()
                except Exception as exc:
                    logger.error(
                        "Unexpected error in connection loop",
                        extra={"error": str(exc), "error_type": type(exc).__name__},
                        exc_info=True,
                    )
                    self._set_state(ConnectionState.CLOSED_RETRYABLE)
                    category = DisconnectCategory.RETRYABLE

                if category is None or self._stop_event.is_set():
                    break

                if category is DisconnectCategory.TERMINAL:
                    logger.critical(
                        "Session ended permanently; not reconnecting. "
                        "Supply new credentials and restart the process."
                    )
                    break

                logger.info(
                    "Reconnecting after delay",
                    extra={"delay_seconds": self._retry_delay},
                )
                if await self._wait_for_stop(self._retry_delay):
                    break

        finally:
            self._detach()
            logger.info("Connection manager stopped", extra={"state": self._state.value})

    # ========================================================================
    # Attempt
    # ========================================================================

    async def _run_attempt(self) -> Optional[DisconnectCategory]:
        """
        One connection attempt.

        Returns the close category, or None when stopped mid-attempt.
        """
        self.metrics.attempts += 1
        connection_id = uuid.uuid4().hex[:12]

        async with LogContext(
            connection_id=connection_id,
            attempt=self.metrics.attempts,
            component="connection",
        ):
            self._set_state(ConnectionState.CONNECTING)
            closed: asyncio.Future = asyncio.get_running_loop().create_future()

            try:
                credentials = await self._obtain_credentials()
                key_store = CachedKeyStore(credentials.keys, self._key_cache_ttl)
                handle = await asyncio.wait_for(
                    self._transport.open(
                        credentials,
                        key_store,
                        query_timeout=self._query_timeout,
                        print_qr=not self._override_active,
                    ),
                    timeout=self._query_timeout,
                )
            except Exception as exc:
                self.metrics.setup_failures += 1
                self._set_state(ConnectionState.CLOSED_RETRYABLE)
                failure = ConnectionRetryableError(f"setup failed: {type(exc).__name__}")
                logger.error(
                    "Connection setup failed",
                    extra={
                        "error_code": failure.error_code,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                return DisconnectCategory.RETRYABLE

            if self._stop_event.is_set():
                await self._close_quietly(handle)
                return None

            self._attach(handle, connection_id, closed)
            logger.info("Connection handle opened; waiting for connection events")

            try:
                return await closed
            finally:
                self._detach()

    async def _obtain_credentials(self) -> Credentials:
        credentials = await self._credential_store.load()

        if self._override_pending:
            self._override_pending = False
            overridden = self._credential_store.apply_override(self._override_bundle, credentials)
            if overridden is not credentials:
                self._override_active = True
                await self._credential_store.seed(overridden)
                credentials = overridden

        return credentials

    # ========================================================================
    # Handle Ownership
    # ========================================================================

    def _attach(self, handle: ConnectionHandle, connection_id: str, closed: asyncio.Future) -> None:
        self._handle = handle
        self._connection_id = connection_id
        self._closed = closed

        self._subscriptions = [
            (CONNECTION_UPDATE, functools.partial(self._on_connection_update, handle)),
            (MESSAGES_UPSERT, functools.partial(self._on_messages_upsert, handle)),
            (CREDS_UPDATE, functools.partial(self._on_creds_update, handle)),
        ]
        for event_name, listener in self._subscriptions:
            handle.ev.on(event_name, listener)

    def _detach(self) -> None:
        handle = self._handle
        if handle is None:
            return

        for event_name, listener in self._subscriptions:
            handle.ev.off(event_name, listener)

        self._subscriptions = []
        self._handle = None
        self._closed = None

    def _is_attached(self, handle: ConnectionHandle, event_name: str) -> bool:
        if handle is self._handle:
            return True
        self.metrics.stale_events_ignored += 1
        logger.debug("Ignoring event from detached handle", extra={"event_name": event_name})
        return False

    async def _close_quietly(self, handle: ConnectionHandle) -> None:
        try:
            await handle.close()
        except Exception as exc:
            logger.warning(
                "Error closing connection handle",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )

    # ========================================================================
    # Event Handlers
    # ========================================================================

    async def _on_connection_update(self, handle: ConnectionHandle, update: ConnectionUpdate) -> None:
        if not self._is_attached(handle, CONNECTION_UPDATE):
            return

        async with LogContext(connection_id=self._connection_id, component="connection"):
            if update.qr:
                await self._surface_qr(update.qr)

            if update.connection == "open":
                self._set_state(ConnectionState.OPEN)
                self.metrics.opens += 1
                logger.info("Connection opened")
                await self._announce_ready(handle)

            elif update.connection == "close":
                self._handle_close(update.last_disconnect)

    async def _on_messages_upsert(self, handle: ConnectionHandle, upsert: MessagesUpsert) -> None:
        if not self._is_attached(handle, MESSAGES_UPSERT):
            return
        if self._state is not ConnectionState.OPEN:
            self.metrics.batches_before_open += 1
            logger.warning(
                "Message batch received before connection opened; dropped",
                extra={"state": self._state.value, "batch_type": upsert.type, "count": len(upsert.messages)},
            )
            return
        await self._dispatcher.dispatch(handle, upsert)

    async def _on_creds_update(self, handle: ConnectionHandle, update: Dict[str, Any]) -> None:
        if not self._is_attached(handle, CREDS_UPDATE):
            return
        await self._credential_store.persist(update)

    def _handle_close(self, info: Optional[DisconnectInfo]) -> None:
        closed = self._closed
        if closed is None or closed.done():
            logger.debug("Duplicate close event ignored")
            return

        status_code = info.status_code if info else None
        category = classify_disconnect(status_code, self._terminal_codes)
        reason = describe_reason(status_code)
        self.metrics.last_status_code = status_code
        self._set_state(ConnectionState.from_category(category))

        extra = {
            "status_code": status_code,
            "reason": reason,
            "detail": info.describe() if info else None,
        }
        if category is DisconnectCategory.TERMINAL:
            self.metrics.terminal_closes += 1
            outcome = ConnectionTerminalError(reason, status_code)
            logger.critical(outcome.message, extra={**extra, "error_code": outcome.error_code})
        else:
            self.metrics.retryable_closes += 1
            outcome = ConnectionRetryableError(reason, status_code)
            logger.warning(outcome.message, extra={**extra, "error_code": outcome.error_code})

        closed.set_result(category)

    async def _surface_qr(self, qr: str) -> None:
        if self._override_active:
            logger.debug("QR code ignored; session credentials came from the override bundle")
            return

        try:
            result = self._qr_presenter(qr)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(
                "QR presenter failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    async def _announce_ready(self, handle: ConnectionHandle) -> None:
        try:
            await asyncio.wait_for(
                handle.send(self._announcement_destination, {"text": self._announcement_text}),
                timeout=self._query_timeout,
            )
            logger.info(
                "Readiness announcement sent",
                extra={"destination": self._announcement_destination},
            )
        except Exception as exc:
            self.metrics.announcements_failed += 1
            logger.error(
                "Failed to send readiness announcement",
                extra={
                    "destination": self._announcement_destination,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.debug(
            "Connection state changed",
            extra={"from_state": previous.value, "to_state": state.value},
        )

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep `delay` seconds; True if stop() was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False
