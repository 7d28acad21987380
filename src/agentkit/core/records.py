"""
Log records and batch results for the buffered DA logging path.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping
from uuid import uuid4

from .serialization import encode_record_mapping
from .types import BatchStatus, LogLevel, LogOptions, normalize_level


@dataclass(frozen=True)
class LogRecord:
    """A single record waiting in, or delivered from, the pending buffer.

    ``id`` is local and ephemeral; the durable reference is the handle of
    the batch that eventually carries the record.
    """

    id: str
    level: LogLevel
    content: Any
    metadata: Mapping[str, Any]
    tags: tuple[str, ...]
    enqueued_at: float
    encoded: bytes = field(repr=False, compare=False)

    @property
    def options(self) -> LogOptions:
        return LogOptions(level=self.level, tags=self.tags, metadata=self.metadata)

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "content": self.content,
            "metadata": dict(self.metadata),
            "tags": list(self.tags),
            "timestamp": self.enqueued_at,
        }


def build_record(
    content: Any,
    *,
    level: str | None = None,
    tags: Iterable[str] | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> LogRecord:
    """Create a record and encode it once.

    Raises:
        ValueError: For an unknown level.
        SerializationError: When content or metadata cannot be encoded.
    """
    resolved_level = normalize_level(level)
    record_id = str(uuid4())
    enqueued_at = datetime.now(timezone.utc).timestamp()
    tag_tuple = tuple(str(t) for t in (tags or ()))
    meta = dict(metadata or {})
    encoded = encode_record_mapping(
        {
            "id": record_id,
            "level": resolved_level,
            "content": content,
            "metadata": meta,
            "tags": list(tag_tuple),
            "timestamp": enqueued_at,
        }
    )
    return LogRecord(
        id=record_id,
        level=resolved_level,
        content=content,
        metadata=meta,
        tags=tag_tuple,
        enqueued_at=enqueued_at,
        encoded=encoded,
    )


@dataclass
class BatchResult:
    """Outcome of one successful submit."""

    handle: str
    records: tuple[LogRecord, ...]
    status: BatchStatus = BatchStatus.PENDING
    submitted_at: float = field(default_factory=time.time)

    @property
    def record_ids(self) -> list[str]:
        return [r.id for r in self.records]
