from typing import Awaitable, Callable, Optional, TypeVar

from ..config import Settings, get_settings
from .circuit_breaker import CircuitBreaker, get_circuit_breaker
from .retry import API_CALL_POLICY, RetryPolicy, with_retry

T = TypeVar("T")


def breaker_for(name: str, settings: Optional[Settings] = None) -> CircuitBreaker:
    settings = settings or get_settings()
    return get_circuit_breaker(
        name,
        failure_threshold=settings.CIRCUIT_FAILURE_THRESHOLD,
        reset_timeout_s=settings.CIRCUIT_RESET_TIMEOUT_S,
        success_threshold=settings.CIRCUIT_SUCCESS_THRESHOLD,
    )


def live_policy(base: RetryPolicy = API_CALL_POLICY, settings: Optional[Settings] = None) -> RetryPolicy:
    settings = settings or get_settings()
    return base.with_jitter(settings.RETRY_JITTER)


async def call_with_resilience(
    operation: Callable[[], Awaitable[T]],
    breaker: CircuitBreaker,
    policy: RetryPolicy = API_CALL_POLICY,
    **retry_kwargs,
) -> T:
    """Every attempt passes through the breaker; an OPEN breaker stops the retries."""
    return await with_retry(lambda: breaker.call(operation), policy, name=breaker.name, **retry_kwargs)
