from __future__ import annotations

import logging
from typing import Any

import orjson
import pytest

import agentkit.core.diagnostics as diag


def test_warn_payload_shape(diagnostics_capture: list[dict[str, Any]]) -> None:
    diag.warn("flush", "submit failed", batch_size=3)

    (payload,) = diagnostics_capture
    assert payload["level"] == "WARN"
    assert payload["component"] == "flush"
    assert payload["message"] == "submit failed"
    assert payload["batch_size"] == 3
    assert isinstance(payload["timestamp"], float)


def test_rate_limit_key_suppresses_repeats(diagnostics_capture: list[dict[str, Any]]) -> None:
    diag._rate_limit_seconds = 60.0

    diag.warn("flush", "status check failed", _rate_limit_key="status:h")
    diag.warn("flush", "status check failed", _rate_limit_key="status:h")
    diag.warn("flush", "status check failed", _rate_limit_key="status:other")

    assert len(diagnostics_capture) == 2


def test_disabled_via_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[dict[str, Any]] = []
    monkeypatch.setenv("AGENTKIT_CORE__INTERNAL_LOGGING_ENABLED", "false")
    diag.set_writer_for_tests(captured.append)

    diag.warn("flush", "hidden")

    assert captured == []


def test_default_writer_logs_json(caplog: pytest.LogCaptureFixture) -> None:
    diag._internal_logging_enabled = True
    with caplog.at_level(logging.DEBUG, logger="agentkit.diagnostics"):
        diag.warn("eigenda-adapter", "visible", id="x")
        diag.debug("eigenda-client", "topping up credits", balance=0.0)

    warn_record, debug_record = caplog.records
    assert warn_record.levelno == logging.WARNING
    assert orjson.loads(warn_record.getMessage())["id"] == "x"
    assert debug_record.levelno == logging.DEBUG


def test_broken_writer_is_contained() -> None:
    def boom(payload: dict[str, Any]) -> None:
        raise RuntimeError("writer down")

    diag._internal_logging_enabled = True
    diag.set_writer_for_tests(boom)
    diag.warn("flush", "still fine")
