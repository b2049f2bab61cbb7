"""
Transport boundary for nexusbot.

Event model, provider/handle protocols and disconnect classification.
"""

from nexusbot.transport.disconnect import (
    DisconnectCategory,
    DisconnectReason,
    classify_disconnect,
    describe_reason,
)
from nexusbot.transport.events import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    UPSERT_APPEND,
    UPSERT_NOTIFY,
    ConnectionUpdate,
    DisconnectInfo,
    EventEmitter,
    InboundMessage,
    MessageKey,
    MessagesUpsert,
)
from nexusbot.transport.provider import ConnectionHandle, TransportProvider

__all__ = [
    # Events
    "CONNECTION_UPDATE",
    "MESSAGES_UPSERT",
    "CREDS_UPDATE",
    "UPSERT_NOTIFY",
    "UPSERT_APPEND",
    "EventEmitter",
    "ConnectionUpdate",
    "DisconnectInfo",
    "MessagesUpsert",
    "MessageKey",
    "InboundMessage",
    # Provider
    "TransportProvider",
    "ConnectionHandle",
    # Disconnect
    "DisconnectReason",
    "DisconnectCategory",
    "classify_disconnect",
    "describe_reason",
]
