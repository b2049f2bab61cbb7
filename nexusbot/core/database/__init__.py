"""
Database subsystem for nexusbot.

Provides the async SQLAlchemy engine and session management, the table
definitions for credential records and bot state, and the bot-state store.
"""

from nexusbot.core.database.base import Base, TimestampMixin, utc_now
from nexusbot.core.database.bot_state import BotStateStore
from nexusbot.core.database.models import AuthRecord, BotStateRecord
from nexusbot.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "TimestampMixin",
    "utc_now",
    # Tables
    "AuthRecord",
    "BotStateRecord",
    # Services
    "DatabaseService",
    "BotStateStore",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
