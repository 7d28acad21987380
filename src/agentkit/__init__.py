"""
Public entrypoints for agentkit.

Adapters for verifiable agent computation: ``EigenDAAdapter`` buffers log
records and submits them in batches to EigenDA; ``OpacityAdapter`` runs
chat completions with zkTLS proofs of the exchange.
"""

from __future__ import annotations

from .adapters.base import DALoggingAdapter, VerifiableInferenceAdapter
from .adapters.eigenda import EigenDAAdapter
from .adapters.opacity import OpacityAdapter, OpacityAdapterConfig
from .clients.eigenda import EigenDAClient, EigenDAClientConfig
from .core.errors import (
    AdapterNotReadyError,
    AgentKitError,
    ConfirmationError,
    NotAcceptingRecordsError,
    NotInitializedError,
    ProofGenerationError,
    ProofVerificationError,
    RetrievalError,
    SerializationError,
    ShutdownFlushError,
    SubmissionError,
    UnsupportedOperationError,
)
from .core.settings import Settings
from .core.store import RemoteStore
from .core.types import (
    BatchStatus,
    DALogEntry,
    DALogStatus,
    LogOptions,
    PostResult,
    Proof,
    VerifiableInferenceResult,
)

from ._version import __version__

VERSION = __version__

__all__ = [
    "AdapterNotReadyError",
    "AgentKitError",
    "BatchStatus",
    "ConfirmationError",
    "DALogEntry",
    "DALogStatus",
    "DALoggingAdapter",
    "EigenDAAdapter",
    "EigenDAClient",
    "EigenDAClientConfig",
    "LogOptions",
    "NotAcceptingRecordsError",
    "NotInitializedError",
    "OpacityAdapter",
    "OpacityAdapterConfig",
    "PostResult",
    "Proof",
    "ProofGenerationError",
    "ProofVerificationError",
    "RemoteStore",
    "RetrievalError",
    "SerializationError",
    "Settings",
    "ShutdownFlushError",
    "SubmissionError",
    "UnsupportedOperationError",
    "VERSION",
    "VerifiableInferenceAdapter",
    "VerifiableInferenceResult",
    "__version__",
]
