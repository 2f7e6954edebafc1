import pytest

from nathia.app.core.circuit_breaker import CircuitBreaker, CircuitState, circuit_stats, get_circuit_breaker
from nathia.app.core.errors import CircuitOpenError, ProviderConfigError, ProviderHTTPError, RetryExhaustedError
from nathia.app.core.resilience import call_with_resilience
from nathia.app.core.retry import RetryPolicy


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class Op:
    def __init__(self, fail=True, status=503):
        self.fail = fail
        self.status = status
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.fail:
            raise ProviderHTTPError(self.status, "boom")
        return "ok"


async def _trip(breaker, op, times):
    for _ in range(times):
        with pytest.raises(ProviderHTTPError):
            await breaker.call(op)


@pytest.mark.anyio
async def test_opens_after_threshold_and_stops_calling():
    clock = Clock()
    breaker = CircuitBreaker("svc", failure_threshold=5, reset_timeout_s=30, clock=clock)
    op = Op()
    await _trip(breaker, op, 5)
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(CircuitOpenError) as exc_info:
        await breaker.call(op)
    assert op.calls == 5
    assert exc_info.value.circuit == "svc"


@pytest.mark.anyio
async def test_success_resets_consecutive_failures():
    breaker = CircuitBreaker("svc", failure_threshold=3, clock=Clock())
    op = Op()
    await _trip(breaker, op, 2)
    op.fail = False
    await breaker.call(op)
    op.fail = True
    await _trip(breaker, op, 2)
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.anyio
async def test_client_errors_do_not_trip_the_breaker():
    breaker = CircuitBreaker("svc", failure_threshold=2, clock=Clock())
    op = Op(status=404)
    await _trip(breaker, op, 5)
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0


@pytest.mark.anyio
async def test_missing_configuration_is_not_a_dependency_failure():
    breaker = CircuitBreaker("svc", failure_threshold=2, clock=Clock())

    async def unconfigured():
        raise ProviderConfigError("QA_API_URL not configured")

    for _ in range(4):
        with pytest.raises(ProviderConfigError):
            await call_with_resilience(unconfigured, breaker, RetryPolicy(max_retries=3, min_delay_ms=0))
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0


@pytest.mark.anyio
async def test_half_open_probe_closes_on_success():
    clock = Clock()
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=30, clock=clock)
    op = Op()
    await _trip(breaker, op, 1)
    clock.now = 29.9
    with pytest.raises(CircuitOpenError):
        await breaker.call(op)

    clock.now = 30.0
    op.fail = False
    assert await breaker.call(op) == "ok"
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.anyio
async def test_half_open_probe_failure_reopens():
    clock = Clock()
    breaker = CircuitBreaker("svc", failure_threshold=3, reset_timeout_s=10, clock=clock)
    op = Op()
    await _trip(breaker, op, 3)
    clock.now = 10.0
    await _trip(breaker, op, 1)
    assert breaker.state == CircuitState.OPEN
    assert breaker.opened_at == 10.0


@pytest.mark.anyio
async def test_only_one_probe_in_half_open():
    clock = Clock()
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=1, clock=clock)
    await _trip(breaker, Op(), 1)
    clock.now = 5.0

    async def nested():
        # A second caller arrives while the probe is still running
        with pytest.raises(CircuitOpenError):
            await breaker.call(Op(fail=False))
        return "probe"

    assert await breaker.call(nested) == "probe"
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.anyio
async def test_open_breaker_short_circuits_retries():
    breaker = CircuitBreaker("svc", failure_threshold=2, reset_timeout_s=60, clock=Clock())
    op = Op()
    delays = []

    async def sleep(s):
        delays.append(s)

    with pytest.raises(CircuitOpenError):
        await call_with_resilience(op, breaker, RetryPolicy(max_retries=5), sleep=sleep)
    assert op.calls == 2
    assert len(delays) == 2


@pytest.mark.anyio
async def test_retry_exhaustion_is_distinct_from_open_circuit():
    breaker = CircuitBreaker("svc", failure_threshold=10, clock=Clock())

    async def sleep(s):
        return None

    with pytest.raises(RetryExhaustedError):
        await call_with_resilience(Op(), breaker, RetryPolicy(max_retries=2), sleep=sleep)
    assert breaker.state == CircuitState.CLOSED


def test_registry_and_force_reset():
    b = get_circuit_breaker("gemini", failure_threshold=1)
    assert get_circuit_breaker("gemini") is b
    b._set_state(CircuitState.OPEN)
    assert circuit_stats()["gemini"]["state"] == "OPEN"
    b.force_reset()
    assert circuit_stats()["gemini"]["state"] == "CLOSED"
