"""
Pytest Configuration and Fixtures for nexusbot Tests
=====================================================

Purpose
-------
Centralized fixtures for the nexusbot test suite.

Responsibilities
----------------
- Test environment configuration (ENVIRONMENT=testing, fake transport)
- Datastore fixtures: a throwaway SQLite file per test (unit) and a
  PostgreSQL testcontainer (integration)
- Transport fakes and pre-wired connection components

Architecture Notes
------------------
- Unit tests use SQLite through aiosqlite (fast, isolated, real SQL)
- Integration tests use testcontainers and are skipped without Docker
- DatabaseService is a process-wide singleton; every datastore fixture
  initializes it and shuts it down again
"""

from __future__ import annotations

import os
from typing import AsyncGenerator, Generator, List, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import delete

from nexusbot.auth.store import CredentialStore
from nexusbot.connection.manager import ConnectionManager
from nexusbot.core.config.config import Config
from nexusbot.core.database.models import AuthRecord, BotStateRecord
from nexusbot.core.database.service import DatabaseService
from nexusbot.core.logging.logger import get_logger
from nexusbot.dispatch.dispatcher import MessageDispatcher
from nexusbot.transport.events import InboundMessage
from tests.fakes import FakeTransport

logger = get_logger(__name__)

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"
    os.environ["TRANSPORT_PROVIDER"] = "tests.fakes:FakeTransport"
    os.environ.pop("SESSION_DATA", None)
    os.environ.pop("TERMINAL_DISCONNECT_CODES", None)
    Config.reload()


# ============================================================================
# DATASTORE FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'nexusbot-test.db'}"


@pytest_asyncio.fixture
async def datastore(sqlite_url: str) -> AsyncGenerator[None, None]:
    """
    Initialized DatabaseService over a fresh SQLite file.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize(sqlite_url)
    await DatabaseService.create_tables()
    yield
    await DatabaseService.shutdown()


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Skips the requesting tests when Docker is not available.
    """
    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available: {exc}")

    logger.info("PostgreSQL testcontainer started")

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def postgres_datastore(postgres_container) -> AsyncGenerator[None, None]:
    """DatabaseService bound to the testcontainer; tables emptied after each test."""
    await DatabaseService.initialize(postgres_container.get_connection_url())
    await DatabaseService.create_tables()
    yield
    async with DatabaseService.get_transaction() as session:
        await session.execute(delete(AuthRecord))
        await session.execute(delete(BotStateRecord))
    await DatabaseService.shutdown()


# ============================================================================
# CONNECTION FIXTURES
# ============================================================================


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def handled() -> List[Tuple[object, InboundMessage]]:
    """Every (connection, message) pair the recording handler received."""
    return []


@pytest.fixture
def dispatcher(handled) -> MessageDispatcher:
    async def record(connection, message: InboundMessage) -> None:
        handled.append((connection, message))

    return MessageDispatcher(record, dedupe_window=100)


@pytest_asyncio.fixture
async def credential_store(datastore) -> CredentialStore:
    return CredentialStore()


@pytest_asyncio.fixture
async def make_manager(fake_transport, credential_store, dispatcher):
    """
    Factory for ConnectionManager with fast timings.

    Managers created through the factory are stopped on teardown.
    """
    managers: List[ConnectionManager] = []

    def factory(**overrides) -> ConnectionManager:
        options = {
            "transport": fake_transport,
            "credential_store": credential_store,
            "dispatcher": dispatcher,
            "retry_delay_seconds": 0.05,
            "query_timeout_seconds": 1.0,
            "announcement_text": "TestBot is connected and ready to use!",
        }
        options.update(overrides)
        manager = ConnectionManager(**options)
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        await manager.stop(timeout=2.0)
