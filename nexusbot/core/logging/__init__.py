"""
nexusbot Logging Infrastructure

Exports the structured logging subsystem, log context helper,
and configuration interface.
"""

from nexusbot.core.logging.logger import (
    LogContext,
    LoggerConfig,
    LoggingHealth,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LoggingHealth",
    "LogContext",
    "LoggerConfig",
]
