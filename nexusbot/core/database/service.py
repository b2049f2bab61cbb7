"""
Database Service - Durable Store Infrastructure

Purpose
-------
Centralized async database engine and session management. The durable
store holds two things: the credential records of the messaging session
and the arbitrary bot state used by message handlers.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance
- Provide async context managers for sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Create the schema on startup (idempotent)
- Expose a reachability check used at boot and by health monitoring

Non-Responsibilities
--------------------
- Credential semantics (handled by nexusbot.auth)
- Deciding what happens when the store is down at boot (nexusbot.main
  exits the process)

Configuration
-------------
All values sourced from Config with safe defaults:
- DATASTORE_URI (required; SQLite file under DATA_DIR by default)
- DATABASE_POOL_SIZE (default: 5)
- DATABASE_MAX_OVERFLOW (default: 10)
- DATABASE_POOL_RECYCLE (default: 1800)
- DATABASE_CONNECT_TIMEOUT_SECONDS (default: 5)
- DATABASE_ECHO (default: False)

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
>>>     await session.merge(AuthRecord(key="creds", value=creds))
>>>     # Automatic commit on exit

>>> async with DatabaseService.get_session() as session:
>>>     record = await session.get(AuthRecord, "creds")

Error Handling
--------------
**DatabaseInitializationError** - DATASTORE_URI missing or engine creation fails.
**DatabaseNotInitializedError** - session requested before initialize() or after shutdown().
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from nexusbot.core.config.config import Config
from nexusbot.core.database.base import Base
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Domain Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the datastore configuration for one engine lifetime."""

    url: str
    echo: bool
    use_null_pool: bool
    pool_size: int
    max_overflow: int
    pool_recycle: int
    connect_timeout_seconds: int

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        """Extract the URL scheme for logging."""
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    **Lifecycle**:
    - initialize(url=None) -> Initialize engine and session factory
    - create_tables() -> Create schema (idempotent)
    - shutdown() -> Dispose engine and cleanup resources

    **Session Management**:
    - get_session() -> Read-only or manual transaction control
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast reachability check
    - is_initialized() -> Whether an engine currently exists

    All state lives on the class; one engine per process.
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop.
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        """
        Build an immutable configuration snapshot from Config.

        Raises
        ------
        DatabaseInitializationError
            If the datastore URI is missing or invalid.
        """
        database_url = url or getattr(Config, "DATASTORE_URI", None)
        if not database_url or not isinstance(database_url, str):
            logger.error("DATASTORE_URI is not configured or invalid")
            raise DatabaseInitializationError(
                "DATASTORE_URI must be configured as a non-empty string"
            )

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=bool(getattr(Config, "DATABASE_ECHO", False)),
            use_null_pool=Config.is_testing(),
            pool_size=int(getattr(Config, "DATABASE_POOL_SIZE", 5)),
            max_overflow=int(getattr(Config, "DATABASE_MAX_OVERFLOW", 10)),
            pool_recycle=int(getattr(Config, "DATABASE_POOL_RECYCLE", 1800)),
            connect_timeout_seconds=int(
                getattr(Config, "DATABASE_CONNECT_TIMEOUT_SECONDS", 5)
            ),
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "null_pool": snapshot.use_null_pool,
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
                "pool_recycle": snapshot.pool_recycle,
            },
        )

        return snapshot

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: returns immediately if already initialized. Creating the
        engine does not connect; call `health_check()` to verify reachability.

        Parameters
        ----------
        url : Optional[str]
            Overrides Config.DATASTORE_URI (used by tests).

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot(url)
                cls._config_snapshot = config

                engine_kwargs: dict[str, Any] = {"echo": config.echo}

                if config.use_null_pool:
                    engine_kwargs["poolclass"] = NullPool
                elif not config.is_sqlite:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_pre_ping": True,
                        }
                    )

                cls._engine = create_async_engine(config.url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={"url_scheme": config.url_scheme},
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def create_tables(cls) -> None:
        """
        Create all tables registered on `Base.metadata`.

        Idempotent - safe to call on every boot.
        """
        cls._ensure_initialized()
        assert cls._engine is not None

        # Register table classes on the metadata before create_all.
        from nexusbot.core.database import models  # noqa: F401

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    @classmethod
    async def shutdown(cls) -> None:
        """
        Dispose the engine and reset internal state.

        Safe to call multiple times; no-op if already shut down.
        """
        async with cls._lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")

            except Exception as exc:
                logger.error(
                    "Error during DatabaseService shutdown",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise

            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Execute `SELECT 1` within the configured connect timeout.

        Returns
        -------
        bool
            True if the store is reachable and responsive, False otherwise.
            Never raises.
        """
        if cls._engine is None or cls._config_snapshot is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        success = False

        async def _probe() -> None:
            assert cls._engine is not None
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

        try:
            await asyncio.wait_for(
                _probe(), timeout=cls._config_snapshot.connect_timeout_seconds
            )
            success = True
            return True

        except asyncio.TimeoutError:
            logger.warning(
                "Database health check timed out",
                extra={"timeout_seconds": cls._config_snapshot.connect_timeout_seconds},
            )
            return False

        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        except Exception as exc:
            logger.error(
                "Unexpected error during database health check",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return False

        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.debug(
                "Database health check completed",
                extra={"success": success, "duration_ms": duration_ms},
            )

    # ========================================================================
    # Sessions
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._engine is None or cls._session_factory is None:
            logger.error("DatabaseService used before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService is not initialized. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        For write operations, prefer `get_transaction()`.

        Raises
        ------
        DatabaseNotInitializedError
            If DatabaseService has not been initialized.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session wrapped in an atomic transaction.

        Commits on success; rolls back and re-raises on any exception.
        Never call `session.commit()` inside the block.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except Exception as exc:
                await session.rollback()
                logger.error(
                    "Error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
