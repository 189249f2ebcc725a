"""
Tests for the structured log formatters.
"""

import json
import logging

from completion_tracker.middleware.logging_config import JSONFormatter, ReadableFormatter


def _record(msg="Compliance sweep finished", **extra):
    record = logging.LogRecord("completion_tracker.test", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_core_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "completion_tracker.test"
        assert entry["message"] == "Compliance sweep finished"

    def test_domain_extras(self):
        entry = json.loads(JSONFormatter().format(
            _record(client_id="acme-001", job_name="data_completion_sweep"),
        ))
        assert entry["client_id"] == "acme-001"
        assert entry["job_name"] == "data_completion_sweep"
        assert "event_type" not in entry


class TestReadableFormatter:
    def test_includes_client(self):
        line = ReadableFormatter().format(_record(client_id="acme-001", duration_ms=12.4))
        assert "client=acme-001" in line
        assert "[12ms]" in line
