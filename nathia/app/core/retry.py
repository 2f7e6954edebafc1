"""Bounded retry with exponential backoff for outbound calls."""
import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import CircuitOpenError, ProviderConfigError, RetryExhaustedError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Resolved per call; tests patch it
default_sleep = asyncio.sleep


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    min_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    # +/- fraction of randomisation applied to each delay; 0 means exact backoff
    jitter: float = 0.0

    def with_jitter(self, jitter: float) -> "RetryPolicy":
        return replace(self, jitter=jitter)


API_CALL_POLICY = RetryPolicy(max_retries=3, min_delay_ms=1000, max_delay_ms=8000, backoff_factor=2.0)
UPLOAD_POLICY = RetryPolicy(max_retries=3, min_delay_ms=2000, max_delay_ms=15000, backoff_factor=2.0)


def compute_delay_ms(attempt: int, policy: RetryPolicy, rng: Callable[[], float] = random.random) -> float:
    """Delay before retry ``attempt`` (1-indexed)."""
    delay = min(float(policy.max_delay_ms), policy.min_delay_ms * policy.backoff_factor ** (attempt - 1))
    if policy.jitter:
        delay *= 1 + policy.jitter * (2 * rng() - 1)
    return max(0.0, delay)


def status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_retryable(exc: BaseException) -> bool:
    """Client errors (HTTP 4xx), bad input, missing configuration and an open breaker are never retried."""
    if isinstance(exc, (ValidationError, CircuitOpenError, ProviderConfigError)):
        return False
    status = status_of(exc)
    if status is not None and 400 <= status < 500:
        return False
    return True


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = API_CALL_POLICY,
    *,
    name: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
) -> T:
    """Run ``operation`` with up to ``policy.max_retries`` extra attempts.

    Non-retryable errors propagate unchanged on the first occurrence;
    exhaustion raises ``RetryExhaustedError`` chained to the final error.
    """
    attempts = policy.max_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= attempts:
                logger.error(
                    "retry_exhausted",
                    extra={"operation": name, "attempts": attempt, "error": str(exc)},
                )
                raise RetryExhaustedError(attempt, exc, name) from exc

            delay_ms = compute_delay_ms(attempt, policy)
            logger.warning(
                "retry_attempt",
                extra={
                    "operation": name,
                    "attempt": attempt,
                    "max_retries": policy.max_retries,
                    "delay_ms": round(delay_ms),
                    "error": str(exc),
                },
            )
            if on_retry is not None:
                on_retry(exc, attempt)
            await (sleep or default_sleep)(delay_ms / 1000.0)
    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{name}: retry loop exited without result")


async def retry_api_call(operation: Callable[[], Awaitable[T]], *, name: str = "api_call", **kwargs: Any) -> T:
    return await with_retry(operation, API_CALL_POLICY, name=name, **kwargs)


async def retry_upload(operation: Callable[[], Awaitable[T]], *, name: str = "upload", **kwargs: Any) -> T:
    return await with_retry(operation, UPLOAD_POLICY, name=name, **kwargs)
