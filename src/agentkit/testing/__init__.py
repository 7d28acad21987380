"""
Testing utilities for agentkit adapters and remote stores.

Example:
    from agentkit.testing import InMemoryRemoteStore, validate_remote_store

    def test_my_store():
        result = validate_remote_store(MyStore())
        assert result.valid
"""

from .stores import InMemoryRemoteStore
from .validators import (
    ProtocolViolationError,
    ValidationResult,
    validate_logging_adapter,
    validate_remote_store,
)

__all__ = [
    "InMemoryRemoteStore",
    "ProtocolViolationError",
    "ValidationResult",
    "validate_logging_adapter",
    "validate_remote_store",
]
