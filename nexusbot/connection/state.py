"""
Connection state and lifecycle counters.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from nexusbot.transport.disconnect import DisconnectCategory


class ConnectionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED_RETRYABLE = "closed_retryable"
    CLOSED_TERMINAL = "closed_terminal"

    @classmethod
    def from_category(cls, category: DisconnectCategory) -> "ConnectionState":
        if category is DisconnectCategory.TERMINAL:
            return cls.CLOSED_TERMINAL
        return cls.CLOSED_RETRYABLE

    @property
    def is_closed(self) -> bool:
        return self in (ConnectionState.CLOSED_RETRYABLE, ConnectionState.CLOSED_TERMINAL)


@dataclass
class ConnectionMetrics:
    """Lifecycle counters reported by `ConnectionManager.status()`."""

    attempts: int = 0
    opens: int = 0
    retryable_closes: int = 0
    terminal_closes: int = 0
    setup_failures: int = 0
    announcements_failed: int = 0
    stale_events_ignored: int = 0
    batches_before_open: int = 0
    last_status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
