"""
Async retry with exponential backoff for remote HTTP calls.

Used by the vendor clients around individual requests. The flush
controller does not use it: batch-level retries happen on the next
scheduled flush instead.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Sequence, TypeVar

import httpx

from .errors import AgentKitError, ErrorCategory

T = TypeVar("T")


class RetryCallable(Protocol):
    async def __call__(self, func: Callable[[], Awaitable[Any]]) -> Any:  # pragma: no cover
        ...


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0
    multiplier: float = 2.0
    jitter: float = 0.1
    timeout_per_attempt: float | None = None
    retryable_exceptions: Sequence[type[BaseException]] = field(
        default=(httpx.TransportError, asyncio.TimeoutError)
    )

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)
        if delay and self.jitter:
            delay += random.uniform(0, delay * self.jitter)
        return delay


@dataclass
class RetryStats:
    attempts: int = 0
    total_delay: float = 0.0
    errors: list[str] = field(default_factory=list)


class RetryExhaustedError(AgentKitError):
    default_category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str,
        *,
        retry_stats: RetryStats,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.retry_stats = retry_stats


class AsyncRetrier:
    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()

    async def retry(self, func: Callable[[], Awaitable[T]]) -> T:
        cfg = self.config
        stats = RetryStats()
        retryable = tuple(cfg.retryable_exceptions)
        last_exc: BaseException | None = None
        for attempt in range(1, cfg.max_attempts + 1):
            stats.attempts = attempt
            try:
                if cfg.timeout_per_attempt is not None:
                    return await asyncio.wait_for(func(), timeout=cfg.timeout_per_attempt)
                return await func()
            except Exception as exc:
                if not isinstance(exc, retryable):
                    raise
                last_exc = exc
                stats.errors.append(f"{type(exc).__name__}: {exc}")
                if attempt == cfg.max_attempts:
                    break
                delay = cfg.delay_for(attempt)
                stats.total_delay += delay
                await asyncio.sleep(delay)
        raise RetryExhaustedError(
            f"All {cfg.max_attempts} retry attempts exhausted",
            retry_stats=stats,
            cause=last_exc,
        ) from last_exc

    async def __call__(self, func: Callable[[], Awaitable[T]]) -> T:
        return await self.retry(func)
