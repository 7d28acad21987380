"""
Structured internal diagnostics for non-fatal errors.

Flush failures, availability-check errors and similar conditions are never
raised to the caller that triggered them. They are reported here instead,
as a JSON payload on the stdlib logger ``agentkit.diagnostics``.

Diagnostics are controlled by ``core.internal_logging_enabled``; the value
is read once from ``Settings`` and cached. Messages sharing a
``_rate_limit_key`` are emitted at most once per
``core.diagnostics_rate_limit_seconds``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import orjson

_logger = logging.getLogger("agentkit.diagnostics")

_internal_logging_enabled: bool | None = None
_rate_limit_seconds: float = 5.0
_last_emitted: dict[str, float] = {}

DiagnosticsWriter = Callable[[dict[str, Any]], None]


def _default_writer(payload: dict[str, Any]) -> None:
    level = logging.DEBUG if payload.get("level") == "DEBUG" else logging.WARNING
    _logger.log(level, orjson.dumps(payload, default=str).decode("utf-8"))


_writer: DiagnosticsWriter = _default_writer


def _is_enabled() -> bool:
    global _internal_logging_enabled, _rate_limit_seconds
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            core = Settings().core
            _internal_logging_enabled = bool(core.internal_logging_enabled)
            _rate_limit_seconds = float(core.diagnostics_rate_limit_seconds)
        except Exception:
            _internal_logging_enabled = True
    return _internal_logging_enabled


def _rate_limited(key: str | None) -> bool:
    if key is None:
        return False
    now = time.monotonic()
    last = _last_emitted.get(key)
    if last is not None and now - last < _rate_limit_seconds:
        return True
    _last_emitted[key] = now
    return False


def _emit(
    level: str,
    component: str,
    message: str,
    rate_limit_key: str | None,
    fields: dict[str, Any],
) -> None:
    if not _is_enabled() or _rate_limited(rate_limit_key):
        return
    payload: dict[str, Any] = {
        "timestamp": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # A broken writer must not break the flush path
        pass


def warn(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    _emit("WARN", component, message, _rate_limit_key, fields)


def debug(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    _emit("DEBUG", component, message, _rate_limit_key, fields)


def set_writer_for_tests(writer: DiagnosticsWriter) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _rate_limit_seconds, _writer
    _internal_logging_enabled = None
    _rate_limit_seconds = 5.0
    _writer = _default_writer
    _last_emitted.clear()
