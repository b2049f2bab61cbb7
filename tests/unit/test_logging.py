"""
Unit tests for the logging subsystem health report and context filter.
"""

import logging

from nexusbot.core.logging.logger import ContextFilter, LogContext, get_logger, get_logging_health


class TestLoggingHealth:
    def test_reports_initialized_queue(self):
        health = get_logging_health()

        assert health.initialized is True
        assert health.queue_max_size > 0
        assert 0 <= health.queue_size <= health.queue_max_size

    def test_enqueued_counter_grows(self):
        before = get_logging_health().records_enqueued

        get_logger("nexusbot.tests").warning("counted record")

        assert get_logging_health().records_enqueued == before + 1

    def test_to_dict_is_flat(self):
        report = get_logging_health().to_dict()

        assert set(report) == {
            "initialized",
            "queue_size",
            "queue_max_size",
            "records_enqueued",
            "records_dropped",
            "listener_errors",
        }


class TestContextFilter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("nexusbot.tests", logging.INFO, __file__, 1, "msg", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_context_fields_applied(self):
        record = self._record()

        with LogContext(connection_id="c-7", attempt=2):
            ContextFilter().filter(record)

        assert record.connection_id == "c-7"
        assert record.attempt == 2
        assert record.remote_jid == "N/A"

    def test_explicit_extra_wins_over_context(self):
        record = self._record(remote_jid="chat@s.whatsapp.net")

        with LogContext(remote_jid="other@s.whatsapp.net"):
            ContextFilter().filter(record)

        assert record.remote_jid == "chat@s.whatsapp.net"
