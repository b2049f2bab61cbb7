"""
Unit tests for Config loading.
"""

import pytest

from nexusbot.core.config.config import Config


@pytest.fixture
def reload_config(monkeypatch):
    """Reload Config after env changes; restore the test configuration afterwards."""

    def _reload(**env):
        for key, value in env.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, value)
        Config.reload()

    yield _reload

    monkeypatch.undo()
    Config.reload()


class TestDefaults:
    def test_connection_defaults(self, reload_config):
        reload_config(
            PORT=None,
            RECONNECT_DELAY_SECONDS=None,
            QUERY_TIMEOUT_SECONDS=None,
            KEEPALIVE_INTERVAL_SECONDS=None,
            SESSION_DATA=None,
            BOT_NAME=None,
        )

        assert Config.PORT == 3000
        assert Config.RECONNECT_DELAY_SECONDS == 3
        assert Config.QUERY_TIMEOUT_SECONDS == 60
        assert Config.KEEPALIVE_INTERVAL_SECONDS == 300
        assert Config.KEY_CACHE_TTL_SECONDS == 300
        assert Config.READY_ANNOUNCEMENT_DESTINATION == "status@broadcast"
        assert Config.TERMINAL_DISCONNECT_CODES == frozenset()
        assert Config.SESSION_DATA is None
        assert Config.BOT_NAME == "NexusCoders"

    def test_default_datastore_is_local_sqlite(self, reload_config):
        reload_config(DATASTORE_URI=None)

        assert Config.DATASTORE_URI.startswith("sqlite+aiosqlite:///")
        assert Config.DATASTORE_URI.endswith("nexusbot.db")


class TestEnvironmentParsing:
    def test_values_read_from_environment(self, reload_config):
        reload_config(PORT="8080", SESSION_DATA="  YWJj  ", DATASTORE_URI="postgresql+asyncpg://u:p@db/bot")

        assert Config.PORT == 8080
        assert Config.SESSION_DATA == "YWJj"
        assert Config.DATASTORE_URI == "postgresql+asyncpg://u:p@db/bot"

    def test_blank_session_data_is_unset(self, reload_config):
        reload_config(SESSION_DATA="   ")

        assert Config.SESSION_DATA is None

    @pytest.mark.parametrize("raw", ["not-a-number", "0", "70000"])
    def test_invalid_port_falls_back_to_default(self, reload_config, raw):
        reload_config(PORT=raw)

        assert Config.PORT == 3000

    def test_terminal_codes_parsed(self, reload_config):
        reload_config(TERMINAL_DISCONNECT_CODES="403, 411,,junk")

        assert Config.TERMINAL_DISCONNECT_CODES == frozenset({403, 411})

    def test_testing_environment_detected(self):
        assert Config.is_testing() is True
        assert Config.is_production() is False


class TestSummary:
    def test_summary_hides_secrets(self, reload_config):
        reload_config(SESSION_DATA="c2VjcmV0", DATASTORE_URI="postgresql+asyncpg://u:secret@db/bot")

        summary = Config.get_config_summary()

        assert summary["session_data_set"] is True
        assert summary["datastore_uri_set"] is True
        assert "c2VjcmV0" not in str(summary)
        assert "secret@" not in str(summary)
