"""
Default message handler.

Logs each inbound message and remembers the last message seen per chat in
the bot-state store. Deployments with real bot behaviour point
``MESSAGE_HANDLER`` at their own ``module:callable`` with the same
signature.
"""

from __future__ import annotations

from nexusbot.core.database.base import utc_now
from nexusbot.core.database.bot_state import BotStateStore
from nexusbot.core.logging.logger import get_logger
from nexusbot.transport.events import InboundMessage
from nexusbot.transport.provider import ConnectionHandle

logger = get_logger(__name__)


LAST_MESSAGE_PREFIX = "last_message:"


def last_message_key(remote_jid: str) -> str:
    return f"{LAST_MESSAGE_PREFIX}{remote_jid}"


def extract_text(message: InboundMessage) -> str | None:
    """Plain text of a message, if it carries any."""
    content = message.message or {}
    if isinstance(content.get("conversation"), str):
        return content["conversation"]
    extended = content.get("extended_text_message") or content.get("extendedTextMessage")
    if isinstance(extended, dict) and isinstance(extended.get("text"), str):
        return extended["text"]
    return None


async def handle_message(connection: ConnectionHandle, message: InboundMessage) -> None:
    text = extract_text(message)

    logger.info(
        "Handling message",
        extra={"push_name": message.push_name, "has_text": text is not None},
    )

    await BotStateStore.set(
        last_message_key(message.key.remote_jid),
        {
            "message_id": message.key.id,
            "participant": message.key.participant,
            "push_name": message.push_name,
            "text": text,
            "timestamp": message.timestamp,
            "seen_at": utc_now().isoformat(),
        },
    )
