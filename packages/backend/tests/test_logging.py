"""structlog configuration tests."""

import json

import pytest
import structlog

from jwtauth.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_production_logs_are_json_with_request_context(capsys):
    configure_logging("production", "INFO")
    structlog.contextvars.bind_contextvars(request_id="req-123")

    structlog.get_logger("test").info("session.issued", generation_id=4)

    line = capsys.readouterr().out.strip().splitlines()[-1]
    entry = json.loads(line)
    assert entry["event"] == "session.issued"
    assert entry["generation_id"] == 4
    assert entry["request_id"] == "req-123"
    assert entry["level"] == "info"
    assert "timestamp" in entry


def test_log_level_filters_lower_levels(capsys):
    configure_logging("production", "WARNING")

    log = structlog.get_logger("test")
    log.info("quiet")
    log.warning("loud")

    out = capsys.readouterr().out
    assert "quiet" not in out
    assert "loud" in out
