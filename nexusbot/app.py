"""
Bot application - owns the long-lived runtime components.

Wires the Credential Store, Message Dispatcher and Connection Manager
together with the health endpoint and the liveness prober, and starts and
stops them in order. Datastore lifecycle stays in `nexusbot.main`.

Startup order: health endpoint, connection loop, prober.
Shutdown order: prober, connection loop, health endpoint.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from nexusbot.auth.store import CredentialStore
from nexusbot.connection.manager import ConnectionManager
from nexusbot.core.logging.logger import get_logger, get_logging_health
from nexusbot.dispatch.dispatcher import MessageDispatcher, MessageHandler
from nexusbot.health.prober import LivenessProber
from nexusbot.health.server import HealthServer
from nexusbot.transport.provider import TransportProvider

logger = get_logger(__name__)


class BotApplication:
    def __init__(
        self,
        *,
        manager: ConnectionManager,
        health_server: HealthServer,
        prober_factory=LivenessProber.from_config,
    ) -> None:
        self.manager = manager
        self.health_server = health_server
        self._prober_factory = prober_factory
        self.prober: Optional[LivenessProber] = None
        self._prober_stop = asyncio.Event()
        self._prober_task: Optional[asyncio.Task] = None
        self._started = False

    @classmethod
    def from_config(cls, *, transport: TransportProvider, handler: MessageHandler) -> BotApplication:
        dispatcher = MessageDispatcher.from_config(handler)
        manager = ConnectionManager.from_config(
            transport=transport,
            credential_store=CredentialStore(),
            dispatcher=dispatcher,
        )
        return cls(manager=manager, health_server=HealthServer.from_config())

    async def start(self) -> None:
        """
        Bind the health endpoint, then start the connection loop and prober.

        Raises
        ------
        OSError
            If the health endpoint port cannot be bound.
        """
        if self._started:
            logger.warning("Bot application already started")
            return

        await self.health_server.start()
        self.manager.start()

        self.prober = self._prober_factory(self.health_server.url)
        self._prober_stop.clear()
        self._prober_task = asyncio.create_task(
            self.prober.run_forever(stop_event=self._prober_stop),
            name="liveness-prober",
        )
        self._started = True
        logger.info("Bot application started")

    async def stop(self) -> None:
        """Stop every component; re-raises the first failure after trying all."""
        if not self._started:
            return
        self._started = False

        first_error: Optional[BaseException] = None

        self._prober_stop.set()
        if self._prober_task is not None:
            try:
                await asyncio.wait_for(self._prober_task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Liveness prober did not stop in time")
            except Exception as exc:
                first_error = first_error or exc
                logger.error(
                    "Error stopping liveness prober",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
            self._prober_task = None

        for name, stop in (
            ("connection manager", self.manager.stop),
            ("health server", self.health_server.stop),
        ):
            try:
                await stop()
                logger.info("Stopped %s", name)
            except Exception as exc:
                first_error = first_error or exc
                logger.error(
                    "Error stopping %s",
                    name,
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        if first_error is not None:
            raise first_error

    def status(self) -> Dict[str, Any]:
        return {
            "connection": self.manager.status(),
            "health_server": {
                "running": self.health_server.is_running,
                "port": self.health_server.port,
                "requests_served": self.health_server.requests_served,
            },
            "prober": {
                "healthy": self.prober.is_healthy if self.prober else None,
                "probes": self.prober.probes if self.prober else 0,
            },
            "logging": get_logging_health().to_dict(),
        }
