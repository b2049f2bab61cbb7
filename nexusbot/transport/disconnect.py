"""
Disconnect reason classification.

Status codes follow the messaging network's close codes. Only an explicit
logout is terminal by default: the session's credentials were revoked and
reconnecting with them can never succeed. Every other code, unknown codes
and a missing code included, is retryable.

Operators may widen the terminal set (e.g. for a banned account) through
``TERMINAL_DISCONNECT_CODES``; the default keeps the logout-only boundary.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import AbstractSet, Optional


class DisconnectReason(IntEnum):
    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    TIMED_OUT = 408
    CONNECTION_REPLACED = 440
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503


class DisconnectCategory(Enum):
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


TERMINAL_REASONS: frozenset[int] = frozenset({DisconnectReason.LOGGED_OUT})


def classify_disconnect(
    status_code: Optional[int],
    extra_terminal_codes: AbstractSet[int] = frozenset(),
) -> DisconnectCategory:
    """
    Partition a close status code into terminal or retryable.

    >>> classify_disconnect(401)
    <DisconnectCategory.TERMINAL: 'terminal'>
    >>> classify_disconnect(None)
    <DisconnectCategory.RETRYABLE: 'retryable'>
    """
    if status_code is None:
        return DisconnectCategory.RETRYABLE
    if status_code in TERMINAL_REASONS or status_code in extra_terminal_codes:
        return DisconnectCategory.TERMINAL
    return DisconnectCategory.RETRYABLE


def describe_reason(status_code: Optional[int]) -> str:
    """Human-readable reason name for logs ("LOGGED_OUT", "UNKNOWN(999)")."""
    if status_code is None:
        return "UNKNOWN"
    try:
        return DisconnectReason(status_code).name
    except ValueError:
        return f"UNKNOWN({status_code})"
