import pytest

from nathia.app.config import get_settings
from nathia.app.core.circuit_breaker import circuit_stats
from nathia.app.core.config import ConfigStore
from nathia.app.core.errors import CircuitOpenError, ProviderHTTPError, RetryExhaustedError, ValidationError
from nathia.app.models.chat import ChatContext, ChatMessage, MessageRole
from nathia.app.orchestration.graph import FALLBACK_REPLY, Orchestrator
from nathia.app.orchestration.llm import GeminiClient
from nathia.app.orchestration.metadata import turn_metadata
from nathia.app.safety.moderation import ModerationEngine
from nathia.app.safety.triage import TriageEngine


class StubGenerator:
    def __init__(self, reply="Você está fazendo o seu melhor. Que tal descansar um pouco?", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate_resilient(self, prompt, system="", history=None):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def make_orchestrator(generator, sos_calls=None):
    async def recorder(user_id, context):
        if sos_calls is not None:
            sos_calls.append(user_id)

    async def notifier(user_id, context):
        return None

    store = ConfigStore()
    return Orchestrator(
        triage=TriageEngine(store=store, recorder=recorder, notifier=notifier),
        moderation=ModerationEngine(store=store),
        generator=generator,
        settings=get_settings(),
    )


@pytest.mark.anyio
async def test_risk_turn_runs_sos_and_never_calls_generator():
    gen = StubGenerator()
    sos_calls = []
    orch = make_orchestrator(gen, sos_calls)
    result = await orch.handle_turn("Estou muito cansada, às vezes quero morrer", ChatContext(user_id="u1"))

    assert gen.prompts == []
    assert sos_calls == ["u1"]
    assert result.safety.path == "sos"
    assert result.safety.risk.level.value == "risk"
    assert result.safety.sos.resources_displayed == ["CVV", "SAMU", "LIGUE_180"]
    assert "188" in result.reply
    assert any(a.action == "call_phone" for a in result.actions)


@pytest.mark.anyio
async def test_normal_turn_generates_with_context():
    gen = StubGenerator(reply="<b>Oi</b> <script>alert(1)</script>mamãe, estou aqui.")
    orch = make_orchestrator(gen)
    ctx = ChatContext(
        user_id="u1",
        current_mood="worried",
        conversation_history=[
            ChatMessage(role=MessageRole.USER, content=f"mensagem {i}") for i in range(5)
        ],
    )
    result = await orch.handle_turn("Como faço o bebê dormir? Estou cansada", ctx)

    assert result.safety.path == "generated"
    assert result.reply == "Oi mamãe, estou aqui."
    prompt = gen.prompts[0]
    assert "Humor detectado: worried" in prompt
    assert "mensagem 4" in prompt and "mensagem 2" in prompt
    assert "mensagem 1" not in prompt
    assert result.next_step == "Vou te mostrar dicas sobre sono e descanso para mães."
    assert any(a.type == "content" for a in result.actions)
    assert result.sentiment.sentiment == "cansaço"


@pytest.mark.parametrize(
    "error",
    [
        RetryExhaustedError(4, ProviderHTTPError(503, "unavailable"), "gemini"),
        CircuitOpenError("gemini", "OPEN"),
        ProviderHTTPError(400, "bad request"),
    ],
)
@pytest.mark.anyio
async def test_provider_failures_fall_back(error):
    orch = make_orchestrator(StubGenerator(error=error))
    result = await orch.handle_turn("Oi, tudo bem?", ChatContext(user_id="u1"))
    assert result.reply == FALLBACK_REPLY
    assert result.safety.path == "fallback"
    assert result.safety.fallback_reason == error.code


@pytest.mark.anyio
async def test_shared_unsafe_message_gets_rewrite_suggestion():
    gen = StubGenerator()
    orch = make_orchestrator(gen)
    ctx = ChatContext(user_id="u1", shared=True)
    result = await orch.handle_turn("Você DEVERIA amamentar, mães de verdade fazem isso", ctx)

    assert gen.prompts == []
    assert result.safety.path == "rewrite"
    assert result.safety.decision.value == "review"
    assert "Sugestão:" in result.reply


@pytest.mark.anyio
async def test_private_message_skips_moderation():
    orch = make_orchestrator(StubGenerator())
    result = await orch.handle_turn("Você DEVERIA amamentar, mães de verdade fazem isso", ChatContext(user_id="u1"))
    assert result.safety.path == "generated"
    assert result.safety.moderation is None


@pytest.mark.anyio
async def test_watch_turn_offers_support():
    orch = make_orchestrator(StubGenerator())
    result = await orch.handle_turn("Me sinto esgotada", ChatContext(user_id="u1"))
    assert result.safety.risk.level.value == "watch"
    assert any(a.action == "show_support_resources" for a in result.actions)


@pytest.mark.anyio
async def test_input_validation():
    orch = make_orchestrator(StubGenerator())
    with pytest.raises(ValidationError):
        await orch.handle_turn("", ChatContext(user_id="u1"))
    with pytest.raises(ValidationError):
        await orch.handle_turn("oi", ChatContext(user_id=" "))
    history = [ChatMessage(role=MessageRole.USER, content="x") for _ in range(101)]
    with pytest.raises(ValidationError):
        await orch.handle_turn("oi", ChatContext(user_id="u1", conversation_history=history))


@pytest.mark.anyio
async def test_turn_metadata_is_normalised():
    orch = make_orchestrator(StubGenerator(error=CircuitOpenError("gemini", "OPEN")))
    result = await orch.handle_turn("Oi", ChatContext(user_id="u1"))
    md = turn_metadata(result)
    assert md["path"] == "fallback"
    assert md["fallback_reason"] == "CIRCUIT_OPEN"
    assert md["risk_level"] == "ok"
    assert md["moderation_decision"] is None


@pytest.mark.anyio
async def test_unconfigured_generator_falls_back_without_backoff(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("nathia.app.core.retry.default_sleep", fake_sleep)
    settings = get_settings().model_copy(update={"GEMINI_API_KEY": ""})
    store = ConfigStore()
    orch = Orchestrator(
        triage=TriageEngine(store=store),
        moderation=ModerationEngine(store=store),
        generator=GeminiClient(settings),
        settings=settings,
    )
    result = await orch.handle_turn("Como faço papinha?", ChatContext(user_id="u1"))
    assert result.reply == FALLBACK_REPLY
    assert result.safety.fallback_reason == "PROVIDER_NOT_CONFIGURED"
    assert sleeps == []
    assert "gemini" not in circuit_stats()
