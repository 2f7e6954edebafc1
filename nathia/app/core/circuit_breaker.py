"""Circuit breaker, one per external dependency.

CLOSED -> OPEN after ``failure_threshold`` consecutive failures; OPEN fails
fast until ``reset_timeout_s`` elapses; then HALF_OPEN lets a single probe
through. Transitions are guarded by a lock; concurrent failures may overshoot
the threshold slightly.
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .errors import CircuitOpenError, ProviderConfigError
from .retry import status_of

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


def counts_as_failure(exc: BaseException) -> bool:
    # A 4xx or missing configuration is not the dependency's fault
    if isinstance(exc, ProviderConfigError):
        return False
    status = status_of(exc)
    return not (status is not None and 400 <= status < 500)


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout_s: float = 30.0,
        success_threshold: int = 1,
        is_failure: Callable[[BaseException], bool] = counts_as_failure,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout_s = reset_timeout_s
        self.success_threshold = success_threshold
        self.is_failure = is_failure
        self.clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.opened_at: Optional[float] = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    def _set_state(self, new: CircuitState) -> None:
        old = self._state
        if old == new:
            return
        self._state = new
        logger.info(
            "circuit_state",
            extra={"circuit": self.name, "old_state": old.value, "new_state": new.value, "failures": self.failure_count},
        )

    def _before_call(self) -> None:
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self.opened_at is not None and self.clock() - self.opened_at >= self.reset_timeout_s:
                    self._set_state(CircuitState.HALF_OPEN)
                    self.success_count = 0
                else:
                    raise CircuitOpenError(self.name, self._state.value)
            if self._state == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitOpenError(self.name, self._state.value)
                self._probe_in_flight = True

    def _on_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self.success_count += 1
                if self.success_count >= self.success_threshold:
                    self.failure_count = 0
                    self.success_count = 0
                    self._set_state(CircuitState.CLOSED)
            else:
                self.failure_count = 0

    def _on_failure(self, exc: BaseException) -> None:
        with self._lock:
            was_probe = self._state == CircuitState.HALF_OPEN
            if was_probe:
                self._probe_in_flight = False
            if not self.is_failure(exc):
                return
            now = self.clock()
            self.failure_count += 1
            self.last_failure_time = now
            logger.warning(
                "circuit_failure",
                extra={
                    "circuit": self.name,
                    "state": self._state.value,
                    "failures": self.failure_count,
                    "threshold": self.failure_threshold,
                    "error": str(exc),
                },
            )
            if was_probe or self.failure_count >= self.failure_threshold:
                self.opened_at = now
                self.success_count = 0
                self._set_state(CircuitState.OPEN)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        self._before_call()
        try:
            result = await operation()
        except Exception as exc:
            self._on_failure(exc)
            raise
        except BaseException:
            # Cancelled: not a verdict on the dependency
            with self._lock:
                self._probe_in_flight = False
            raise
        self._on_success()
        return result

    def stats(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self.success_count,
            "last_failure_time": self.last_failure_time,
        }

    def force_reset(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.success_count = 0
            self._probe_in_flight = False
            self._set_state(CircuitState.CLOSED)


_breakers: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(name: str, **options: Any) -> CircuitBreaker:
    """Process-wide breaker for ``name``; options apply on first creation only."""
    with _registry_lock:
        breaker = _breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, **options)
            _breakers[name] = breaker
        return breaker


def circuit_stats() -> Dict[str, Dict[str, Any]]:
    with _registry_lock:
        return {name: b.stats() for name, b in _breakers.items()}


def reset_circuit_breakers() -> None:
    with _registry_lock:
        _breakers.clear()
