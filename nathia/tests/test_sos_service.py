import json

import httpx
import pytest

from nathia.app.config import Settings
from nathia.app.core.errors import ProviderHTTPError
from nathia.app.models.safety import RiskLevel
from nathia.app.services.sos import ModerationWebhook, build_triage_engine


def settings_with_webhook(url="https://mod.example.test/hook"):
    return Settings(MODERATION_WEBHOOK_URL=url)


@pytest.mark.anyio
async def test_webhook_posts_high_priority_notice():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    engine = build_triage_engine(settings_with_webhook())
    engine.notifier = ModerationWebhook(settings_with_webhook(), transport=httpx.MockTransport(handler))
    risk = engine.assess_risk("quero morrer")
    await engine.notifier("u1", {"risk_assessment": risk, "session_id": "s1"})

    assert seen[0]["priority"] == "HIGH"
    assert seen[0]["userId"] == "u1"
    assert seen[0]["riskLevel"] == RiskLevel.RISK.value


@pytest.mark.anyio
async def test_webhook_failure_surfaces_as_provider_error():
    hook = ModerationWebhook(settings_with_webhook(), transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    with pytest.raises(ProviderHTTPError):
        await hook("u1", {})


@pytest.mark.anyio
async def test_sos_still_answers_when_webhook_and_db_fail():
    async def broken_recorder(user_id, context):
        raise RuntimeError("db unavailable")

    engine = build_triage_engine(settings_with_webhook())
    engine.recorder = broken_recorder
    engine.notifier = ModerationWebhook(settings_with_webhook(), transport=httpx.MockTransport(lambda r: httpx.Response(502)))

    result = await engine.trigger_sos("u1", {})
    assert result.event_recorded is False
    assert result.sent_to_moderation is False
    assert len(result.support_contacts) == 3


@pytest.mark.anyio
async def test_without_webhook_url_notice_is_logged(caplog):
    hook = ModerationWebhook(Settings(MODERATION_WEBHOOK_URL=""))
    with caplog.at_level("WARNING"):
        await hook("u1", {})
    assert any(r.getMessage() == "sos_moderation_notice" for r in caplog.records)
