"""
Unit tests for CredentialStore and SqlKeyStore against a SQLite datastore.

Test Coverage
-------------
- load() creates fresh credentials without writing them
- persist() merges and writes through; idempotent; never raises
- seed() makes an override survive a reload
- SqlKeyStore one-record-per-key layout, deletes on None
"""

import pytest
from sqlalchemy.exc import OperationalError

from nexusbot.auth.credentials import Credentials, encode_override_bundle
from nexusbot.auth.key_store import InMemoryKeyStore, SqlKeyStore, record_name
from nexusbot.auth.store import CREDS_RECORD, CredentialStore
from nexusbot.core.database.models import AuthRecord
from nexusbot.core.database.service import DatabaseService
from nexusbot.core.exceptions import StorageError


async def _record(key: str):
    async with DatabaseService.get_session() as session:
        record = await session.get(AuthRecord, key)
    return None if record is None else record.value


class TestLoad:
    async def test_load_without_stored_creds_starts_fresh(self, credential_store):
        credentials = await credential_store.load()

        assert credentials.creds["registered"] is False
        assert credential_store.current is credentials
        # Fresh creds are written on the first update, not on load.
        assert await _record(CREDS_RECORD) is None

    async def test_load_returns_stored_creds(self, credential_store):
        await credential_store.load()
        await credential_store.persist({"registered": True, "me": {"id": "1@s.whatsapp.net"}})

        reloaded = await CredentialStore().load()

        assert reloaded.creds["registered"] is True
        assert reloaded.creds["me"] == {"id": "1@s.whatsapp.net"}

    async def test_load_wraps_datastore_errors(self, credential_store, mocker):
        mocker.patch.object(
            DatabaseService,
            "get_session",
            side_effect=OperationalError("SELECT", {}, Exception("datastore down")),
        )

        with pytest.raises(StorageError) as exc_info:
            await credential_store.load()

        assert exc_info.value.is_retryable is True
        assert exc_info.value.details["operation"] == "creds.load"


class TestPersist:
    async def test_persist_merges_update_into_memory_and_store(self, credential_store):
        credentials = await credential_store.load()
        registration_id = credentials.creds["registration_id"]

        ok = await credential_store.persist({"registered": True})

        assert ok is True
        assert credentials.creds["registered"] is True
        stored = await _record(CREDS_RECORD)
        assert stored["registered"] is True
        assert stored["registration_id"] == registration_id

    async def test_persist_is_idempotent(self, credential_store):
        await credential_store.load()
        update = {"registered": True, "account_sync_counter": 4}

        await credential_store.persist(update)
        first = await _record(CREDS_RECORD)
        await credential_store.persist(update)
        second = await _record(CREDS_RECORD)

        assert first == second

    async def test_persist_before_load_is_rejected(self, credential_store):
        assert await credential_store.persist({"registered": True}) is False
        assert await _record(CREDS_RECORD) is None

    async def test_persist_failure_is_logged_not_raised(self, credential_store):
        credentials = await credential_store.load()
        await DatabaseService.shutdown()

        ok = await credential_store.persist({"registered": True})

        assert ok is False
        assert credential_store.persist_failures == 1
        # The live session keeps working from memory.
        assert credentials.creds["registered"] is True


class TestSeed:
    async def test_seed_makes_override_survive_reload(self, credential_store):
        stored = await credential_store.load()
        bundle = encode_override_bundle(
            {"registered": True, "me": {"id": "override"}},
            {"pre-key": {"1": {"public": "p1"}}, "session": {"peer-a": "s-a"}},
        )
        overridden = credential_store.apply_override(bundle, stored)

        ok = await credential_store.seed(overridden)

        assert ok is True
        assert isinstance(overridden.keys, SqlKeyStore)
        reloaded = await CredentialStore().load()
        assert reloaded.creds["me"] == {"id": "override"}
        assert await reloaded.keys.get("pre-key", ["1"]) == {"1": {"public": "p1"}}
        assert await reloaded.keys.get("session", ["peer-a"]) == {"peer-a": "s-a"}

    async def test_seed_failure_keeps_in_memory_keys(self, credential_store):
        overridden = Credentials(creds={"registered": True}, keys=InMemoryKeyStore({"pre-key": {"1": "k"}}))
        await DatabaseService.shutdown()

        ok = await credential_store.seed(overridden)

        assert ok is False
        assert isinstance(overridden.keys, InMemoryKeyStore)
        assert await overridden.keys.get("pre-key", ["1"]) == {"1": "k"}


class TestSqlKeyStore:
    async def test_keys_stored_one_record_per_key(self, datastore):
        store = SqlKeyStore()

        await store.set({"pre-key": {"1": {"public": "a"}, "2": {"public": "b"}}})

        assert await _record(record_name("pre-key", "1")) == {"public": "a"}
        assert await _record("pre-key-2") == {"public": "b"}

    async def test_get_returns_only_existing_ids(self, datastore):
        store = SqlKeyStore()
        await store.set({"session": {"peer-a": "s-a"}})

        assert await store.get("session", ["peer-a", "peer-b"]) == {"peer-a": "s-a"}
        assert await store.get("session", []) == {}

    async def test_none_value_deletes_key(self, datastore):
        store = SqlKeyStore()
        await store.set({"session": {"peer-a": "s-a"}})

        await store.set({"session": {"peer-a": None}})

        assert await store.get("session", ["peer-a"]) == {}

    async def test_overwrite_replaces_value(self, datastore):
        store = SqlKeyStore()
        await store.set({"app-state-sync-version": {"regular": {"version": 1}}})

        await store.set({"app-state-sync-version": {"regular": {"version": 2}}})

        assert await store.get("app-state-sync-version", ["regular"]) == {"regular": {"version": 2}}
