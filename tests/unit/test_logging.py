from __future__ import annotations

import json
import logging

import pytest

from cli_agent_orchestrator.orchestrator.logging import JsonFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        "cli_agent_orchestrator.test", logging.INFO, __file__, 1, "Step failed", None, None
    )
    record.__dict__.update(extra)
    return record


def test_correlation_fields_are_top_level() -> None:
    line = JsonFormatter().format(
        _record(execution_id="abc", step="planning", agent="claude", error="boom", attempt=2)
    )

    payload = json.loads(line)
    assert payload["message"] == "Step failed"
    assert payload["level"] == "INFO"
    assert payload["execution_id"] == "abc"
    assert payload["step"] == "planning"
    assert payload["agent"] == "claude"
    assert payload["extra"] == {"error": "boom", "attempt": 2}


def test_record_without_extra_fields() -> None:
    payload = json.loads(JsonFormatter().format(_record()))

    assert "extra" not in payload
    assert set(payload) == {"timestamp", "level", "logger", "message"}


def test_non_json_values_are_stringified() -> None:
    payload = json.loads(JsonFormatter().format(_record(agents={"claude"})))

    assert payload["extra"]["agents"] == "{'claude'}"


def test_configure_logging_writes_json_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging("info")

    logger = logging.getLogger("cli_agent_orchestrator.test")
    logger.info("Workflow started", extra={"workflow": "direct"})

    captured = capsys.readouterr()
    assert captured.out == ""
    assert json.loads(captured.err.strip().splitlines()[-1])["workflow"] == "direct"
