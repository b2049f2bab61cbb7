"""
HTTP health endpoint.

A single aiohttp application bound once at startup on ``0.0.0.0:PORT``.
``GET /`` answers 200 with a plaintext banner so platform health checks
(and the liveness prober) can tell the process is up, whatever the
connection state.
"""

from __future__ import annotations

from typing import Optional

from aiohttp import web

from nexusbot.core.config.config import Config
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


class HealthServer:
    def __init__(self, *, banner: str, port: int = 3000, host: str = "0.0.0.0") -> None:
        self._banner = banner
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self.requests_served = 0

    @classmethod
    def from_config(cls) -> HealthServer:
        return cls(banner=f"{Config.BOT_NAME} bot is running!", port=Config.PORT)

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when started on port 0."""
        if self._runner is not None and self._runner.addresses:
            return int(self._runner.addresses[0][1])
        return self._port

    @property
    def url(self) -> str:
        """URL the local liveness prober should hit."""
        return f"http://localhost:{self.port}/"

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        return app

    async def _handle_root(self, request: web.Request) -> web.Response:
        self.requests_served += 1
        return web.Response(text=self._banner, content_type="text/plain")

    async def start(self) -> None:
        """
        Bind the listener.

        Raises
        ------
        OSError
            If the port cannot be bound; startup treats this as fatal.
        """
        if self._runner is not None:
            logger.warning("Health server already running")
            return

        runner = web.AppRunner(self.build_app(), access_log=None)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self._host, self._port)
            await site.start()
        except Exception:
            await runner.cleanup()
            raise

        self._runner = runner
        logger.info("Server is running", extra={"host": self._host, "port": self.port})

    async def stop(self) -> None:
        if self._runner is None:
            return

        runner, self._runner = self._runner, None
        await runner.cleanup()
        logger.info("Health server stopped")
