"""
Shared value types for the uniform adapter contracts.

These mirror the shapes every adapter exchanges with its callers: log
options, the DA status attached to a stored entry, the entry itself, and
the proof returned alongside verifiable inference results.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Generic, Literal, Mapping, TypeVar, get_args

LogLevel = Literal["info", "warn", "error", "debug"]
LOG_LEVELS: Final[tuple[str, ...]] = get_args(LogLevel)
DEFAULT_LEVEL: Final[LogLevel] = "info"

T = TypeVar("T")


def normalize_level(level: str | None) -> LogLevel:
    """Resolve an optional level name, defaulting to ``info``.

    Raises:
        ValueError: If the level is not one of info/warn/error/debug.
    """
    if level is None:
        return DEFAULT_LEVEL
    value = level.strip().lower()
    if value == "warning":
        value = "warn"
    if value not in LOG_LEVELS:
        raise ValueError(
            f"Unknown log level '{level}'; expected one of {', '.join(LOG_LEVELS)}"
        )
    return value  # type: ignore[return-value]


class BatchStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class LogOptions:
    level: LogLevel = DEFAULT_LEVEL
    tags: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "tags": list(self.tags),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class DALogStatus:
    """Where an entry lives in the DA layer; ``type`` names the adapter."""

    type: str
    data: Mapping[str, Any]
    timestamp: float = field(default_factory=time.time)

    @property
    def handle(self) -> str | None:
        value = self.data.get("handle")
        return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class DALogEntry:
    id: str
    content: Any
    timestamp: float
    status: DALogStatus
    options: LogOptions | None = None


@dataclass(frozen=True)
class PostResult:
    job_id: str
    content: Any
    timestamp: float


@dataclass(frozen=True)
class Proof:
    """A zkTLS proof; its validity is decided by the prover service."""

    type: str
    data: Any
    timestamp: float = field(default_factory=time.time)
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerifiableInferenceResult(Generic[T]):
    content: T
    proof: Proof


__all__ = [
    "BatchStatus",
    "DALogEntry",
    "DALogStatus",
    "DEFAULT_LEVEL",
    "LOG_LEVELS",
    "LogLevel",
    "LogOptions",
    "PostResult",
    "Proof",
    "VerifiableInferenceResult",
    "normalize_level",
]
