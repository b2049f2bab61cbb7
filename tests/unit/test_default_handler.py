"""
Unit tests for the default message handler and the bot-state store.
"""

import pytest
from sqlalchemy.exc import OperationalError

from nexusbot.core.database.bot_state import BotStateStore
from nexusbot.core.database.service import DatabaseService
from nexusbot.core.exceptions import StorageError
from nexusbot.handlers.default import extract_text, handle_message, last_message_key
from nexusbot.transport.events import InboundMessage, MessageKey
from tests.fakes import make_message


class TestExtractText:
    def test_plain_conversation(self):
        assert extract_text(make_message("m1", text="hi there")) == "hi there"

    def test_extended_text(self):
        message = InboundMessage(
            key=MessageKey(remote_jid="a@s.whatsapp.net", id="m1"),
            message={"extendedTextMessage": {"text": "with a link"}},
        )

        assert extract_text(message) == "with a link"

    def test_media_without_text(self):
        message = InboundMessage(
            key=MessageKey(remote_jid="a@s.whatsapp.net", id="m1"),
            message={"imageMessage": {"mimetype": "image/jpeg"}},
        )

        assert extract_text(message) is None

    def test_empty_message(self):
        assert extract_text(InboundMessage(key=MessageKey(remote_jid="a", id="m1"))) is None


class TestHandleMessage:
    async def test_records_last_message_per_chat(self, datastore):
        message = make_message("m1", remote_jid="chat@s.whatsapp.net", text="first")

        await handle_message(object(), message)
        await handle_message(object(), make_message("m2", remote_jid="chat@s.whatsapp.net", text="second"))

        state = await BotStateStore.get(last_message_key("chat@s.whatsapp.net"))
        assert state["message_id"] == "m2"
        assert state["text"] == "second"
        assert state["push_name"] == "Tester"

    async def test_storage_failure_propagates_to_dispatcher(self, datastore):
        await DatabaseService.shutdown()

        with pytest.raises(RuntimeError):
            await handle_message(object(), make_message("m1"))


class TestBotStateStore:
    async def test_get_default_when_missing(self, datastore):
        assert await BotStateStore.get("missing", default={"n": 0}) == {"n": 0}

    async def test_set_get_delete(self, datastore):
        await BotStateStore.set("counter", {"n": 1})
        await BotStateStore.set("counter", {"n": 2})
        assert await BotStateStore.get("counter") == {"n": 2}

        await BotStateStore.delete("counter")
        assert await BotStateStore.get("counter") is None

    async def test_datastore_errors_wrapped(self, datastore, mocker):
        mocker.patch.object(
            DatabaseService,
            "get_session",
            side_effect=OperationalError("SELECT", {}, Exception("down")),
        )

        with pytest.raises(StorageError):
            await BotStateStore.get("counter")
