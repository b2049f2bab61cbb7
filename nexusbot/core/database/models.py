"""
Table definitions. Pure schema; no business logic.

- `auth_records`: credential material, one row per logical record name
  (`creds`, and `"{type}-{id}"` for each signal key).
- `bot_state`: arbitrary JSON state owned by the message-handling pipeline.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from nexusbot.core.database.base import Base, TimestampMixin


class AuthRecord(Base, TimestampMixin):
    """One persisted credential record keyed by logical name."""

    __tablename__ = "auth_records"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=False,
    )


class BotStateRecord(Base, TimestampMixin):
    """Key-value bot state used by message handlers."""

    __tablename__ = "bot_state"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=False,
    )
