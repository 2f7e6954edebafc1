import pytest

from nathia.app.core.config import ConfigStore
from nathia.app.core.errors import ValidationError
from nathia.app.models.safety import ModerationDecision, RiskLevel
from nathia.app.models.sql_models import CommunityPost
from nathia.app.safety.moderation import ModerationEngine
from nathia.app.safety.triage import TriageEngine
from nathia.app.services.community import CommunityService


class Recorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, user_id, context):
        self.calls.append((user_id, context))


@pytest.fixture
def effects():
    return Recorder(), Recorder()


@pytest.fixture
def service(db, effects):
    recorder, notifier = effects
    store = ConfigStore()
    triage = TriageEngine(store=store, recorder=recorder, notifier=notifier)
    return CommunityService(moderation=ModerationEngine(store=store), triage=triage)


@pytest.mark.anyio
async def test_toxic_risk_post_still_triggers_sos(service, effects, db):
    recorder, notifier = effects
    text = "Você é idiota, burra, estúpida. Quero morrer"
    assert service.triage.assess_risk(text).level == RiskLevel.RISK
    assert service.moderation.decide(await service.moderation.analyze(text)) == ModerationDecision.REJECT

    out = await service.create_post("u1", text)

    assert [c[0] for c in recorder.calls] == ["u1"]
    assert [c[0] for c in notifier.calls] == ["u1"]
    assert out["hidden"] is True
    assert out["moderation_status"] == "pending_review"
    assert out["decision"] == "reject"
    assert [c.phone for c in out["sos"].support_contacts] == ["188", "192", "180"]

    session = db()
    try:
        assert session.query(CommunityPost).filter(CommunityPost.user_id == "u1").count() == 1
    finally:
        session.close()


@pytest.mark.anyio
async def test_rejected_post_without_risk_is_not_stored(service, effects, db):
    recorder, notifier = effects
    with pytest.raises(ValidationError) as exc_info:
        await service.create_post("u2", "Você é uma idiota, burra e incompetente")
    assert "rationale" in exc_info.value.details
    assert recorder.calls == [] and notifier.calls == []

    session = db()
    try:
        assert session.query(CommunityPost).count() == 0
    finally:
        session.close()


@pytest.mark.anyio
async def test_approved_post_has_no_sos(service, effects):
    out = await service.create_post("u3", "Força, mamães! Vocês são incríveis.")
    assert out["hidden"] is False
    assert "sos" not in out
    assert effects[0].calls == []
