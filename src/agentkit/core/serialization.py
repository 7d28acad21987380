"""
JSON serialization for records and DA payloads using orjson.

Each record is encoded exactly once, when it is created. Batch payloads
embed those bytes verbatim through ``orjson.Fragment``, so a record that is
retried after a failed submit travels byte-identical to the first attempt.

Payload layout (one JSON object per upload):

    {"kind": "log_batch", "data": [<record>, ...], "metadata": {...},
     "tags": [...], "timestamp": <epoch seconds>}

``post()`` uploads use ``"kind": "post"`` with the caller's data as-is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Sequence

import orjson

from .errors import ErrorCategory, ErrorSeverity, SerializationError, create_error_context

if TYPE_CHECKING:
    from .records import LogRecord

BATCH_KIND = "log_batch"
POST_KIND = "post"


def _default(obj: Any) -> Any:
    """Default serializer hook for unsupported types.

    Keep minimal; prefer upstream objects to be plain JSON types already.
    """
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(payload: Any) -> bytes:
    """Serialize to canonical (sorted-key) JSON bytes.

    Raises:
        SerializationError: If the payload holds non-JSON-serializable objects.
    """
    try:
        return orjson.dumps(payload, default=_default, option=orjson.OPT_SORT_KEYS)
    except TypeError as e:
        raise SerializationError(
            "Serialization failed",
            error_context=create_error_context(
                ErrorCategory.SERIALIZATION, ErrorSeverity.HIGH
            ),
            cause=e,
        ) from e


def encode_record_mapping(mapping: Mapping[str, Any]) -> bytes:
    return dumps(dict(mapping))


def encode_batch(
    records: Sequence[LogRecord],
    *,
    timestamp: float,
    metadata: Mapping[str, Any] | None = None,
) -> bytes:
    """Encode records, in order, into a single batch payload."""
    payload = {
        "kind": BATCH_KIND,
        "data": [orjson.Fragment(record.encoded) for record in records],
        "metadata": {"batch_size": len(records), **(metadata or {})},
        "tags": [],
        "timestamp": timestamp,
    }
    return dumps(payload)


def encode_post(
    data: Any,
    *,
    timestamp: float,
    metadata: Mapping[str, Any] | None = None,
    tags: Sequence[str] | None = None,
    level: str | None = None,
) -> bytes:
    payload: dict[str, Any] = {
        "kind": POST_KIND,
        "data": data,
        "metadata": dict(metadata or {}),
        "tags": list(tags or []),
        "timestamp": timestamp,
    }
    if level is not None:
        payload["level"] = level
    return dumps(payload)


def decode_payload(raw: bytes | str) -> dict[str, Any]:
    """Parse a payload previously produced by ``encode_batch``/``encode_post``.

    Raises:
        SerializationError: If the bytes are not a JSON object.
    """
    try:
        parsed = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise SerializationError("Payload is not valid JSON", cause=e) from e
    if not isinstance(parsed, dict):
        raise SerializationError(
            f"Payload must be a JSON object, got {type(parsed).__name__}"
        )
    return parsed
