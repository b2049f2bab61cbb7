"""
Infrastructure exceptions for nexusbot.

Purpose
-------
Define the structured exception hierarchy for the bot process: startup
failures, configuration errors, storage failures, connection outcomes and
message-handler failures.

Error Taxonomy
--------------
- StartupFatalError: datastore unreachable at boot; the process exits 1.
- ConnectionRetryableError: any non-logout close or setup failure; retried.
- ConnectionTerminalError: logout close; no retry until new credentials.
- HandlerFailureError: a message handler failed for one message; isolated.
- StorageError: credential or bot-state persistence failed.
- ConfigurationError: a configuration key is missing or invalid.

Best-effort side effects (readiness announcement, keep-alive probe,
credential persistence) never raise to their callers; they log instead.

Design Notes
------------
- All exceptions inherit from `NexusInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"
    CRITICAL = "critical"  # Process cannot continue


class NexusInfrastructureException(Exception):
    """
    Base exception for all nexusbot infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise NexusInfrastructureException(
        ...     "Datastore unreachable",
        ...     {"url_scheme": "postgresql+asyncpg"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(NexusInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class StartupFatalError(NexusInfrastructureException):
    """
    Raised when the process cannot start safely.

    Without durable state the bot cannot persist credential updates, so an
    unreachable datastore at boot ends the process instead of running
    degraded.
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, component: str, reason: str) -> None:
        self.component = component
        super().__init__(
            f"Startup failed in {component}: {reason}",
            details={"component": component, "reason": reason},
            error_code="STARTUP_FATAL",
        )


class StorageError(NexusInfrastructureException):
    """
    Raised when a durable storage operation fails.

    Args:
        operation: Description of the storage operation that failed
        original_error: The underlying datastore exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Storage error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="STORAGE_ERROR",
        )


class ConnectionRetryableError(NexusInfrastructureException):
    """A connection attempt ended for a reason that warrants another attempt."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, reason: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(
            f"Connection closed ({reason}); will reconnect",
            details={"reason": reason, "status_code": status_code},
            error_code="CONNECTION_RETRYABLE",
        )


class ConnectionTerminalError(NexusInfrastructureException):
    """A connection ended in a way that requires fresh credentials to recover."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, reason: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(
            f"Connection closed ({reason}); not reconnecting",
            details={"reason": reason, "status_code": status_code},
            error_code="CONNECTION_TERMINAL",
        )


class HandlerFailureError(NexusInfrastructureException):
    """
    A message handler raised while processing one message.

    Never raised out of the dispatcher; built to give the failure log a
    stable structure.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, message_id: Optional[str], remote_jid: Optional[str], original_error: Exception) -> None:
        self.original_error = original_error
        super().__init__(
            f"Message handler failed for {message_id}: {original_error}",
            details={
                "message_id": message_id,
                "remote_jid": remote_jid,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="HANDLER_FAILURE",
        )
