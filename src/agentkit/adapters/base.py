from __future__ import annotations

from typing import Any, Awaitable, Mapping, Protocol, runtime_checkable

from ..core.types import DALogEntry, DALogStatus, LogOptions, Proof, VerifiableInferenceResult


@runtime_checkable
class DALoggingAdapter(Protocol):
    """Uniform logging contract shared by every adapter.

    ``log`` and the level helpers return an awaitable resolving to the
    stored ``DALogEntry``. Buffered adapters hand back a pending completion;
    direct adapters return a coroutine.
    """

    async def initialize(self) -> None:
        ...

    def log(self, data: Any, options: LogOptions | None = None) -> Awaitable[DALogEntry]:
        ...

    def info(self, message: str, metadata: Mapping[str, Any] | None = None) -> Awaitable[DALogEntry]:  # fmt: skip
        ...

    def warn(self, message: str, metadata: Mapping[str, Any] | None = None) -> Awaitable[DALogEntry]:  # fmt: skip
        ...

    def error(self, message: str, metadata: Mapping[str, Any] | None = None) -> Awaitable[DALogEntry]:  # fmt: skip
        ...

    def debug(self, message: str, metadata: Mapping[str, Any] | None = None) -> Awaitable[DALogEntry]:  # fmt: skip
        ...

    async def check_availability(self, status: DALogStatus) -> bool:
        ...

    async def get_log_entry(self, id: str) -> DALogEntry | None:
        ...

    async def shutdown(self) -> None:
        ...


@runtime_checkable
class VerifiableInferenceAdapter(Protocol):
    async def generate_text(
        self,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> VerifiableInferenceResult[str]:
        ...

    async def verify_proof(self, proof: Proof) -> bool:
        ...


__all__ = ["DALoggingAdapter", "VerifiableInferenceAdapter"]
