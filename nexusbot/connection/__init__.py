"""
Connection lifecycle management for nexusbot.
"""

from nexusbot.connection.manager import ConnectionManager, QrPresenter, log_qr_code
from nexusbot.connection.state import ConnectionMetrics, ConnectionState

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "ConnectionMetrics",
    "QrPresenter",
    "log_qr_code",
]
