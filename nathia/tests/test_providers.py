import json

import httpx
import pytest

from nathia.app.config import Settings
from nathia.app.core.circuit_breaker import circuit_stats
from nathia.app.core.errors import ProviderConfigError, ProviderHTTPError, RateLimitExceeded, RetryExhaustedError
from nathia.app.orchestration.llm import GeminiClient
from nathia.app.orchestration.qa import AnswerCache, QAClient


def make_settings(**overrides):
    base = dict(
        GEMINI_API_KEY="test-key",
        QA_API_URL="https://qa.example.test/ask",
        QA_API_KEY="qa-key",
        RETRY_JITTER=0.0,
    )
    base.update(overrides)
    return Settings(**base)


@pytest.fixture
def no_sleep(monkeypatch):
    async def fake_sleep(seconds):
        return None

    monkeypatch.setattr("nathia.app.core.retry.default_sleep", fake_sleep)


def gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.mark.anyio
async def test_gemini_generate_posts_prompt_and_reads_text():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_body("Olá, mamãe!"))

    client = GeminiClient(make_settings(), transport=httpx.MockTransport(handler))
    out = await client.generate("oi", history=[{"role": "assistant", "content": "antes"}])
    assert out == "Olá, mamãe!"
    assert "models/gemini-2.5-flash:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert [c["role"] for c in seen["body"]["contents"]] == ["model", "user"]


@pytest.mark.anyio
async def test_gemini_without_key_is_a_config_error():
    client = GeminiClient(make_settings(GEMINI_API_KEY=""))
    with pytest.raises(ProviderConfigError):
        await client.generate("oi")


@pytest.fixture
def recorded_sleeps(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("nathia.app.core.retry.default_sleep", fake_sleep)
    return sleeps


@pytest.mark.anyio
async def test_missing_gemini_key_skips_backoff_and_breaker(recorded_sleeps):
    client = GeminiClient(make_settings(GEMINI_API_KEY="", RETRY_JITTER=0.2))
    for _ in range(6):
        with pytest.raises(ProviderConfigError):
            await client.generate_resilient("oi")
    assert recorded_sleeps == []
    # Never reached the breaker
    assert "gemini" not in circuit_stats()


@pytest.mark.anyio
async def test_missing_qa_url_skips_backoff_and_breaker(recorded_sleeps):
    client = QAClient(make_settings(QA_API_URL=""))
    with pytest.raises(ProviderConfigError) as exc_info:
        await client.ask("Quando vacinar?", "u1")
    assert exc_info.value.code == "PROVIDER_NOT_CONFIGURED"
    assert recorded_sleeps == []
    assert "qa" not in circuit_stats()


@pytest.mark.anyio
async def test_gemini_retries_server_errors(no_sleep):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, text="overloaded")
        return httpx.Response(200, json=gemini_body("ok"))

    client = GeminiClient(make_settings(), transport=httpx.MockTransport(handler))
    assert await client.generate_resilient("oi") == "ok"
    assert calls["n"] == 3


@pytest.mark.anyio
async def test_gemini_client_error_is_not_retried(no_sleep):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(404, text="model not found")

    client = GeminiClient(make_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(ProviderHTTPError) as exc_info:
        await client.generate_resilient("oi")
    assert exc_info.value.status_code == 404
    assert calls["n"] == 1


@pytest.mark.anyio
async def test_gemini_empty_candidates_exhaust_retries(no_sleep):
    client = GeminiClient(make_settings(), transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    with pytest.raises(RetryExhaustedError):
        await client.generate_resilient("oi")


@pytest.mark.anyio
async def test_qa_answer_and_cache():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        assert request.headers["Authorization"] == "Bearer qa-key"
        assert json.loads(request.content) == {"question": "Quando começar papinha?", "userId": "u1"}
        sources = [{"title": f"fonte {i}", "url": f"https://x/{i}"} for i in range(6)]
        return httpx.Response(200, json={"answer": "Por volta dos 6 meses.", "sources": sources})

    client = QAClient(make_settings(), transport=httpx.MockTransport(handler))
    first = await client.ask("Quando começar papinha?", "u1")
    assert first.answer == "Por volta dos 6 meses."
    assert len(first.sources) == 4
    assert first.cached is False

    second = await client.ask("  quando começar   PAPINHA? ", "u1")
    assert second.cached is True
    assert calls["n"] == 1


@pytest.mark.anyio
async def test_qa_rate_limit_is_not_retried(no_sleep):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(429, json={"error": "limit_exceeded"})

    client = QAClient(make_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(RateLimitExceeded) as exc_info:
        await client.ask("pergunta", "u1")
    assert exc_info.value.code == "limit_exceeded"
    assert calls["n"] == 1


def test_answer_cache_expires():
    now = {"t": 0.0}
    cache = AnswerCache(ttl_s=10, clock=lambda: now["t"])
    from nathia.app.models.chat import QAResponse

    cache.put("Pergunta", QAResponse(answer="a"))
    assert cache.get("pergunta") is not None
    now["t"] = 10.5
    assert cache.get("pergunta") is None
