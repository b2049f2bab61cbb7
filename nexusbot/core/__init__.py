"""
Core infrastructure layer for nexusbot.

Purpose
-------
Single import surface for the infrastructure subsystems shared by the
connection core:

- Configuration management (Config)
- Logging (structured logging, logger factory, LogContext)
- Durable store (DatabaseService, BotStateStore)
- Exception taxonomy (NexusInfrastructureException hierarchy)
- Component loading (load_object)

This module is intentionally thin: re-exports only, no logic.
"""

from nexusbot.core.config import Config
from nexusbot.core.database import BotStateStore, DatabaseService
from nexusbot.core.exceptions import (
    ConfigurationError,
    ConnectionRetryableError,
    ConnectionTerminalError,
    ErrorSeverity,
    HandlerFailureError,
    NexusInfrastructureException,
    StartupFatalError,
    StorageError,
)
from nexusbot.core.loader import load_object
from nexusbot.core.logging import LogContext, get_logger

__all__ = [
    # Config
    "Config",
    # Logging
    "get_logger",
    "LogContext",
    # Database
    "DatabaseService",
    "BotStateStore",
    # Loading
    "load_object",
    # Exceptions
    "NexusInfrastructureException",
    "ErrorSeverity",
    "ConfigurationError",
    "StartupFatalError",
    "StorageError",
    "ConnectionRetryableError",
    "ConnectionTerminalError",
    "HandlerFailureError",
]
