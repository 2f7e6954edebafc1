import pytest

from nathia.app.core.errors import (
    CircuitOpenError,
    ProviderConfigError,
    ProviderHTTPError,
    RetryExhaustedError,
    ValidationError,
)
from nathia.app.core.retry import API_CALL_POLICY, RetryPolicy, compute_delay_ms, is_retryable, with_retry


class FakeErr(Exception):
    def __init__(self, status_code=None):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class Flaky:
    """Raises the queued errors in order, then returns ``value``."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.mark.anyio
async def test_retries_transient_errors_then_succeeds():
    op = Flaky([FakeErr(503), FakeErr(503)])
    sleep = FakeSleep()
    assert await with_retry(op, API_CALL_POLICY, sleep=sleep) == "ok"
    assert op.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.anyio
async def test_client_error_is_not_retried():
    op = Flaky([FakeErr(404)])
    sleep = FakeSleep()
    with pytest.raises(FakeErr):
        await with_retry(op, API_CALL_POLICY, sleep=sleep)
    assert op.calls == 1
    assert sleep.delays == []


@pytest.mark.anyio
async def test_exhaustion_reports_attempts_and_last_error():
    last = FakeErr(500)
    op = Flaky([FakeErr(500), FakeErr(502), FakeErr(503), last])
    sleep = FakeSleep()
    with pytest.raises(RetryExhaustedError) as exc_info:
        await with_retry(op, API_CALL_POLICY, name="gemini", sleep=sleep)
    err = exc_info.value
    assert err.attempts == 4
    assert err.last_error is last
    assert err.status_code == 500
    assert err.__cause__ is last
    assert op.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.anyio
async def test_network_errors_without_status_are_retried():
    op = Flaky([ConnectionError("reset")])
    assert await with_retry(op, RetryPolicy(max_retries=1), sleep=FakeSleep()) == "ok"
    assert op.calls == 2


@pytest.mark.anyio
async def test_on_retry_callback_sees_each_failure():
    seen = []
    op = Flaky([FakeErr(500)])
    await with_retry(op, API_CALL_POLICY, sleep=FakeSleep(), on_retry=lambda e, n: seen.append(n))
    assert seen == [1]


def test_delay_is_capped_and_jitter_stays_in_band():
    policy = RetryPolicy(min_delay_ms=1000, max_delay_ms=8000, backoff_factor=2.0)
    assert [compute_delay_ms(n, policy) for n in (1, 2, 3, 4, 5)] == [1000, 2000, 4000, 8000, 8000]

    jittered = policy.with_jitter(0.2)
    assert compute_delay_ms(1, jittered, rng=lambda: 0.0) == pytest.approx(800)
    assert compute_delay_ms(1, jittered, rng=lambda: 1.0) == pytest.approx(1200)


def test_retryable_classification():
    assert is_retryable(FakeErr(500)) is True
    assert is_retryable(FakeErr(429)) is False
    assert is_retryable(ProviderHTTPError(400, "bad")) is False
    assert is_retryable(ValidationError("x")) is False
    assert is_retryable(CircuitOpenError("gemini", "OPEN")) is False
    assert is_retryable(ProviderConfigError("GEMINI_API_KEY missing")) is False
    assert is_retryable(TimeoutError()) is True


@pytest.mark.anyio
async def test_named_policies(monkeypatch):
    from nathia.app.core import retry

    sleep = FakeSleep()
    monkeypatch.setattr(retry, "default_sleep", sleep)

    assert await retry.retry_api_call(Flaky([FakeErr(500)])) == "ok"
    assert await retry.retry_upload(Flaky([FakeErr(500), FakeErr(500)])) == "ok"
    assert sleep.delays == [1.0, 2.0, 4.0]
