from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .types import BatchStatus


@runtime_checkable
class RemoteStore(Protocol):
    """Capability the flush controller needs from a data-availability client.

    Implementations own their connection/session lifecycle. The controller
    only calls the methods below and never mutates store state directly.
    ``submit`` and ``get_status`` may raise on transient network or auth
    failures; the controller contains those errors.
    """

    name: str

    async def start(self) -> None:  # Optional lifecycle hook
        ...

    async def stop(self) -> None:  # Optional lifecycle hook
        ...

    async def ensure_identity(self) -> Any:
        """Return the submitting identity, creating it if needed (idempotent)."""
        ...

    async def submit(self, payload: bytes) -> str:
        """Upload ``payload`` and return the remote handle of the batch."""
        ...

    async def get_status(self, handle: str) -> BatchStatus:
        ...

    async def retrieve(self, handle: str) -> bytes | None:
        """Return the stored payload, or None when the handle is unknown."""
        ...


__all__ = ["RemoteStore"]
