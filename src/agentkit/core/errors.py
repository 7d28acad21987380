"""
Error hierarchy for agentkit adapters.

Every error carries an ``ErrorContext`` with a stable id, timestamp,
category and severity so diagnostics can correlate failures across the
flush pipeline.

Propagation rules:
- Local precondition errors (``NotInitializedError``,
  ``NotAcceptingRecordsError``, ``SerializationError``) are raised
  synchronously from ``log()``.
- ``SubmissionError`` never reaches a ``log()`` caller; the flush
  controller converts it into a retry on the next scheduled flush.
- ``ShutdownFlushError`` is raised from ``shutdown()`` when the final
  forced flush fails.
- ``RetrievalError`` is contained by ``get_log_entry()``, which returns
  ``None`` instead.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence
from uuid import uuid4

if TYPE_CHECKING:
    from .records import LogRecord
    from .types import Proof


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    LIFECYCLE = "lifecycle"
    NETWORK = "network"
    SERIALIZATION = "serialization"
    STORAGE = "storage"
    PROOF = "proof"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Identifying details attached to every agentkit error."""

    category: ErrorCategory
    severity: ErrorSeverity
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp,
            "category": self.category.value,
            "severity": self.severity.value,
            "metadata": dict(self.metadata),
        }


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    **metadata: Any,
) -> ErrorContext:
    return ErrorContext(category=category, severity=severity, metadata=metadata)


class AgentKitError(Exception):
    """Base class for all agentkit errors."""

    default_category = ErrorCategory.LIFECYCLE
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = error_context or create_error_context(
            category or self.default_category,
            severity or self.default_severity,
        )
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class NotInitializedError(AgentKitError):
    """Raised when an adapter is used before ``initialize()``."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message or "Adapter not initialized. Call initialize() first."
        )


class AdapterNotReadyError(AgentKitError):
    """Raised from ``initialize()`` when the remote identity cannot be set up."""

    default_severity = ErrorSeverity.HIGH


class NotAcceptingRecordsError(AgentKitError):
    """Raised when a record is logged after shutdown has begun."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Adapter is shutting down; not accepting new records")


class SerializationError(AgentKitError):
    default_category = ErrorCategory.SERIALIZATION
    default_severity = ErrorSeverity.HIGH


class SubmissionError(AgentKitError):
    """A batch was rejected by the remote store or timed out."""

    default_category = ErrorCategory.NETWORK


class ConfirmationError(SubmissionError):
    """A submitted batch never reached the confirmed state."""


class RetrievalError(AgentKitError):
    default_category = ErrorCategory.STORAGE
    default_severity = ErrorSeverity.LOW


class UnsupportedOperationError(AgentKitError):
    """The configured remote store does not provide the requested operation."""

    default_category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.LOW


class ShutdownFlushError(AgentKitError):
    """The final forced flush failed; ``undelivered`` were never stored."""

    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.CRITICAL

    def __init__(
        self,
        message: str,
        *,
        undelivered: Sequence[LogRecord],
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.undelivered: tuple[LogRecord, ...] = tuple(undelivered)
        self.context.metadata["undelivered_count"] = len(self.undelivered)


class ProofGenerationError(AgentKitError):
    default_category = ErrorCategory.PROOF

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.details = details


class ProofVerificationError(AgentKitError):
    default_category = ErrorCategory.PROOF

    def __init__(
        self,
        message: str,
        *,
        proof: Proof,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.proof = proof
        self.details = details


__all__ = [
    "AdapterNotReadyError",
    "AgentKitError",
    "ConfirmationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "NotAcceptingRecordsError",
    "NotInitializedError",
    "ProofGenerationError",
    "ProofVerificationError",
    "RetrievalError",
    "SerializationError",
    "ShutdownFlushError",
    "SubmissionError",
    "UnsupportedOperationError",
    "create_error_context",
]
