"""
Liveness Prober - periodic self-request against the health endpoint.

Purpose
-------
Hit the process's own health endpoint on a fixed interval. Hosting
platforms that idle a service without inbound traffic see a request every
interval; operators see a log line per probe.

Responsibilities
----------------
- GET the endpoint every `interval_seconds` (first probe after one interval)
- Log the outcome: 200 -> info, other status -> warning, error -> error
- Track consecutive failures and log healthy <-> unhealthy transitions

Non-Responsibilities
--------------------
- Never reconnects, restarts or otherwise acts on a failed probe

Usage
-----
>>> stop_event = asyncio.Event()
>>> prober = LivenessProber.from_config(url=server.url)
>>> task = asyncio.create_task(prober.run_forever(stop_event=stop_event))
>>> # ... later ...
>>> stop_event.set()
>>> await task
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from nexusbot.core.config.config import Config
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProberConfig:
    url: str
    interval_seconds: float = 300.0
    timeout_seconds: float = 10.0
    failure_threshold: int = 3

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {self.interval_seconds}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")


class LivenessProber:
    """
    Public API
    ----------
    - from_config(url) -> prober configured from Config
    - probe_once() -> one GET; True on HTTP 200. Never raises
    - run_forever(stop_event) -> probe on the interval until stopped
    """

    def __init__(self, config: ProberConfig) -> None:
        self._config = config
        self._consecutive_failures = 0
        self._is_healthy: Optional[bool] = None
        self.probes = 0
        self.failures = 0

    @classmethod
    def from_config(cls, url: str) -> LivenessProber:
        return cls(
            ProberConfig(
                url=url,
                interval_seconds=float(Config.KEEPALIVE_INTERVAL_SECONDS),
                timeout_seconds=float(Config.KEEPALIVE_REQUEST_TIMEOUT_SECONDS),
            )
        )

    @property
    def is_healthy(self) -> Optional[bool]:
        """None until the first probe completed."""
        return self._is_healthy

    async def run_forever(self, *, stop_event: asyncio.Event) -> None:
        logger.info(
            "Liveness prober started",
            extra={"url": self._config.url, "interval_seconds": self._config.interval_seconds},
        )

        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._config.interval_seconds)
                    break
                except asyncio.TimeoutError:
                    pass

                await self.probe_once()

        finally:
            logger.info("Liveness prober stopped", extra={"probes": self.probes})

    async def probe_once(self) -> bool:
        self.probes += 1
        start = time.perf_counter()
        timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self._config.url) as response:
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.error(
                "Keep-alive ping failed",
                extra={
                    "url": self._config.url,
                    "error": str(exc) or type(exc).__name__,
                    "error_type": type(exc).__name__,
                },
            )
            self._record(False)
            return False

        duration_ms = (time.perf_counter() - start) * 1000.0
        if status == 200:
            logger.info(
                "Keep-alive ping successful",
                extra={"url": self._config.url, "duration_ms": round(duration_ms, 2)},
            )
            self._record(True)
            return True

        logger.warning(
            "Keep-alive ping returned unexpected status",
            extra={"url": self._config.url, "status": status},
        )
        self._record(False)
        return False

    def _record(self, healthy: bool) -> None:
        if healthy:
            if self._is_healthy is False:
                logger.info(
                    "Health endpoint recovered",
                    extra={"failed_probes": self._consecutive_failures},
                )
            self._consecutive_failures = 0
            self._is_healthy = True
            return

        self.failures += 1
        self._consecutive_failures += 1
        if self._is_healthy is not False and self._consecutive_failures >= self._config.failure_threshold:
            self._is_healthy = False
            logger.warning(
                "Health endpoint unhealthy",
                extra={"consecutive_failures": self._consecutive_failures},
            )
