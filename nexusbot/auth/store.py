"""
Credential Store - durable session credentials.

Purpose
-------
Own the session credentials across reconnects: load them from the durable
store, optionally replace them from an operator-supplied override bundle,
and write every credential update the transport reports back through to
the store.

Persisted Layout
----------------
Table ``auth_records``:
- ``creds``: the identity/session secrets
- ``"{type}-{id}"``: one row per signal key (see `SqlKeyStore`)

Failure Policy
--------------
- `load()` raises `StorageError`; the connection manager treats it as a
  retryable setup failure.
- `persist()` and `seed()` are best-effort: failures are logged and the
  in-memory credentials stay usable for the live session.
- `apply_override()` never raises; a bad bundle is discarded with a warning.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from nexusbot.auth.credentials import (
    Credentials,
    OverrideBundleError,
    decode_override_bundle,
    init_auth_creds,
)
from nexusbot.auth.key_store import InMemoryKeyStore, KeyStore, SqlKeyStore
from nexusbot.core.database.models import AuthRecord
from nexusbot.core.database.service import DatabaseService
from nexusbot.core.exceptions import StorageError
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


CREDS_RECORD = "creds"


class CredentialStore:
    """
    Public API
    ----------
    - load() -> Credentials from the store (fresh ones if none exist)
    - apply_override(encoded_bundle, credentials) -> Credentials
    - persist(update) -> write a credential update through
    - seed(credentials) -> write a full snapshot (creds + keys)
    """

    def __init__(self, key_store: Optional[KeyStore] = None) -> None:
        self._key_store: KeyStore = key_store or SqlKeyStore()
        self._current: Optional[Credentials] = None
        self.persist_failures = 0

    @property
    def current(self) -> Optional[Credentials]:
        """Credentials handed out by the last `load()`/`apply_override()`."""
        return self._current

    @property
    def key_store(self) -> KeyStore:
        return self._key_store

    # ========================================================================
    # Load
    # ========================================================================

    async def load(self) -> Credentials:
        """
        Read the `creds` record, or create fresh credentials when absent.

        Fresh credentials are not written until the transport reports its
        first update.

        Raises
        ------
        StorageError
            If the datastore cannot be read.
        """
        try:
            async with DatabaseService.get_session() as session:
                record = await session.get(AuthRecord, CREDS_RECORD)
        except SQLAlchemyError as exc:
            raise StorageError("creds.load", exc) from exc

        if record is None:
            logger.info("No stored credentials; starting a new session")
            creds = init_auth_creds()
        else:
            creds = dict(record.value)
            logger.debug(
                "Loaded stored credentials",
                extra={"registered": bool(creds.get("registered"))},
            )

        self._current = Credentials(creds=creds, keys=self._key_store)
        return self._current

    # ========================================================================
    # Override
    # ========================================================================

    def apply_override(self, encoded_bundle: Optional[str], credentials: Credentials) -> Credentials:
        """
        Replace `credentials` with the snapshot in `encoded_bundle`.

        All-or-nothing: on any decoding or shape error the original
        `credentials` are returned unchanged and a warning is logged.
        """
        if not encoded_bundle:
            return credentials

        try:
            bundle = decode_override_bundle(encoded_bundle)
        except OverrideBundleError as exc:
            logger.warning(
                "Invalid session override bundle; using stored credentials",
                extra={"error": str(exc)},
            )
            return credentials

        overridden = Credentials(creds=bundle["creds"], keys=InMemoryKeyStore(bundle["keys"]))
        self._current = overridden

        logger.info(
            "Session credentials overridden from bundle",
            extra={"key_types": sorted(bundle["keys"])},
        )
        return overridden

    # ========================================================================
    # Writes
    # ========================================================================

    async def persist(self, update: Mapping[str, Any]) -> bool:
        """
        Merge `update` into the in-memory creds and upsert the `creds` record.

        Returns
        -------
        bool
            True if the write reached the store. Never raises.
        """
        if self._current is None:
            logger.warning("Credential update received before credentials were loaded")
            return False

        self._current.creds.update(update)

        try:
            async with DatabaseService.get_transaction() as session:
                await session.merge(AuthRecord(key=CREDS_RECORD, value=dict(self._current.creds)))
        except Exception as exc:
            self.persist_failures += 1
            logger.error(
                "Failed to persist credential update",
                extra={
                    "fields": sorted(update),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        logger.debug("Credentials persisted", extra={"fields": sorted(update)})
        return True

    async def seed(self, credentials: Credentials) -> bool:
        """
        Write a full snapshot so an applied override survives reconnects.

        Keys held in memory are copied into the durable key store; from
        then on `credentials` read and write keys through that store.
        Never raises.
        """
        keys = credentials.keys
        try:
            async with DatabaseService.get_transaction() as session:
                await session.merge(AuthRecord(key=CREDS_RECORD, value=dict(credentials.creds)))

            if isinstance(keys, InMemoryKeyStore):
                await self._key_store.set(keys.snapshot())
                credentials.keys = self._key_store
        except Exception as exc:
            self.persist_failures += 1
            logger.error(
                "Failed to seed credentials into the store",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.info("Override credentials seeded into the store")
        return True
