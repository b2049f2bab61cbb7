"""
Inbound message dispatch for nexusbot.
"""

from nexusbot.dispatch.dispatcher import DispatchMetrics, MessageDispatcher, MessageHandler

__all__ = ["MessageDispatcher", "MessageHandler", "DispatchMetrics"]
