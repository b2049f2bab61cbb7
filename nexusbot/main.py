"""
nexusbot - Application Entry Point
==================================

Bootstrap
---------
- Config validation
- Datastore initialization (unreachable -> exit 1, before any connection)
- Transport provider and message handler loading
- Health endpoint, connection loop and liveness prober
- Graceful shutdown on SIGINT/SIGTERM (exit 0; 1 if shutdown failed)
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any, Dict, Optional

from nexusbot.app import BotApplication
from nexusbot.core.config.config import Config
from nexusbot.core.database.service import DatabaseInitializationError, DatabaseService
from nexusbot.core.exceptions import ConfigurationError, StartupFatalError
from nexusbot.core.loader import load_object
from nexusbot.core.logging.logger import get_logger, shutdown_logging

logger = get_logger(__name__)


EXIT_OK = 0
EXIT_FAILURE = 1


# ============================================================================
# Application Bootstrap
# ============================================================================


async def _startup() -> BotApplication:
    """
    Initialize infrastructure, then launch the bot application.

    Raises
    ------
    StartupFatalError
        Datastore unreachable, bad configuration or port already in use.
    """
    logger.info("========== NEXUSBOT INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
    except Exception as exc:
        raise StartupFatalError("configuration", str(exc)) from exc
    logger.info("✓ Configuration validated", extra=Config.get_config_summary())

    # Step 2: Datastore must be reachable before anything else runs
    try:
        await DatabaseService.initialize()
    except DatabaseInitializationError as exc:
        raise StartupFatalError("datastore", str(exc)) from exc

    if not await DatabaseService.health_check():
        raise StartupFatalError("datastore", "datastore is unreachable")

    try:
        await DatabaseService.create_tables()
    except Exception as exc:
        raise StartupFatalError("datastore", f"schema creation failed: {exc}") from exc
    logger.info("✓ Connected to datastore")

    # Step 3: Pluggable components
    try:
        transport_factory = load_object(Config.TRANSPORT_PROVIDER, config_key="TRANSPORT_PROVIDER")
        transport = transport_factory()
        handler = load_object(Config.MESSAGE_HANDLER, config_key="MESSAGE_HANDLER")
    except ConfigurationError as exc:
        raise StartupFatalError("configuration", exc.message) from exc
    except Exception as exc:
        raise StartupFatalError("transport", f"provider factory failed: {exc}") from exc
    logger.info("✓ Transport provider and message handler loaded")

    # Step 4: Runtime components
    app = BotApplication.from_config(transport=transport, handler=handler)
    try:
        await app.start()
    except OSError as exc:
        raise StartupFatalError("health_server", str(exc)) from exc

    logger.info("========== NEXUSBOT STARTED ==========")
    return app


# ============================================================================
# Application Shutdown
# ============================================================================


async def _shutdown(app: Optional[BotApplication]) -> bool:
    """Stop the application and dispose the datastore. True if all went well."""
    logger.info("========== NEXUSBOT SHUTDOWN START ==========")
    clean = True

    # Step 1: Application components
    if app is not None:
        try:
            await app.stop()
            logger.info("✓ Bot application stopped")
        except Exception as exc:
            clean = False
            logger.error(
                "Error while stopping bot application",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    # Step 2: Datastore
    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        clean = False
        logger.error(
            "Database service shutdown error",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )

    logger.info("========== SHUTDOWN COMPLETE ==========", extra={"clean": clean})
    return clean


# ============================================================================
# Application Entrypoint
# ============================================================================


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    """Log exceptions nobody awaited; the process keeps running."""
    exception = context.get("exception")
    logger.error(
        "Unhandled exception in event loop",
        extra={
            "loop_message": context.get("message"),
            "error_type": type(exception).__name__ if exception else None,
        },
        exc_info=exception,
    )


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            logger.debug("%s handler installed", sig.name)
        except NotImplementedError:
            logger.debug("%s not supported on this platform (likely Windows)", sig.name)


async def main(
    *,
    stop_event: Optional[asyncio.Event] = None,
    install_signal_handlers: bool = True,
) -> int:
    """
    nexusbot entry point.

    Returns the process exit code: 0 after a graceful shutdown, 1 when
    startup or shutdown failed.
    """
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_handle_loop_exception)

    stop_event = stop_event or asyncio.Event()
    if install_signal_handlers:
        _install_signal_handlers(loop, stop_event)

    try:
        app = await _startup()
    except Exception as exc:
        logger.critical(
            "Fatal startup error",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )
        await _shutdown(None)
        return EXIT_FAILURE

    await stop_event.wait()
    logger.info("Shutdown signal received")

    return EXIT_OK if await _shutdown(app) else EXIT_FAILURE


# ============================================================================
# Process Startup
# ============================================================================


def run() -> None:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    exit_code = EXIT_FAILURE
    try:
        exit_code = loop.run_until_complete(main())
    except KeyboardInterrupt:
        logger.info("Bot manually stopped via keyboard interrupt.")
        exit_code = EXIT_OK
    finally:
        loop.close()
        logger.info("Event loop closed.", extra={"exit_code": exit_code})
        shutdown_logging()

    sys.exit(exit_code)


if __name__ == "__main__":
    run()
