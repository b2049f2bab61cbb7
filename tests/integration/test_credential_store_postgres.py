"""
Integration Tests for credential persistence on PostgreSQL
==========================================================

Purpose
-------
Run the credential and bot-state stores against a real PostgreSQL through
asyncpg (testcontainers). Skipped when Docker is not available.

Test Coverage
-------------
- Datastore reachability check
- Credential write-through and reload across store instances
- Override seeding and per-key records
- Bot-state upsert
"""

import pytest
from sqlalchemy import text

from nexusbot.auth.credentials import encode_override_bundle
from nexusbot.auth.key_store import SqlKeyStore
from nexusbot.auth.store import CredentialStore
from nexusbot.core.database.bot_state import BotStateStore
from nexusbot.core.database.service import DatabaseService


@pytest.mark.integration
@pytest.mark.database
class TestPostgresDatastore:
    async def test_health_check(self, postgres_datastore):
        assert await DatabaseService.health_check() is True

    async def test_schema_created(self, postgres_datastore):
        async with DatabaseService.get_session() as session:
            result = await session.execute(
                text("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'")
            )
            tables = {row.table_name for row in result.fetchall()}

        assert {"auth_records", "bot_state"} <= tables


@pytest.mark.integration
@pytest.mark.database
class TestPostgresCredentials:
    async def test_persist_and_reload(self, postgres_datastore):
        store = CredentialStore()
        await store.load()

        await store.persist({"registered": True, "me": {"id": "bot@s.whatsapp.net"}})
        await store.persist({"account_sync_counter": 3})

        reloaded = await CredentialStore().load()
        assert reloaded.creds["registered"] is True
        assert reloaded.creds["account_sync_counter"] == 3

    async def test_seed_writes_every_key(self, postgres_datastore):
        store = CredentialStore()
        stored = await store.load()
        overridden = store.apply_override(
            encode_override_bundle(
                {"registered": True},
                {"pre-key": {"1": {"public": "a"}, "2": {"public": "b"}}, "sender-key": {"g1": "sk"}},
            ),
            stored,
        )

        assert await store.seed(overridden) is True

        keys = SqlKeyStore()
        assert await keys.get("pre-key", ["1", "2"]) == {"1": {"public": "a"}, "2": {"public": "b"}}
        assert await keys.get("sender-key", ["g1"]) == {"g1": "sk"}

    async def test_key_delete(self, postgres_datastore):
        keys = SqlKeyStore()
        await keys.set({"session": {"peer": "s1"}})

        await keys.set({"session": {"peer": None}})

        assert await keys.get("session", ["peer"]) == {}

    async def test_bot_state_upsert(self, postgres_datastore):
        await BotStateStore.set("greeting", {"count": 1})
        await BotStateStore.set("greeting", {"count": 2})

        assert await BotStateStore.get("greeting") == {"count": 2}
