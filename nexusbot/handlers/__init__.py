"""
Message handlers shipped with nexusbot.
"""

from nexusbot.handlers.default import extract_text, handle_message, last_message_key

__all__ = ["handle_message", "extract_text", "last_message_key"]
