from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ....config import get_settings
from ....models.safety import ModerationAnalysis, ModerationDecision, SOSActionResult
from ....orchestration.llm import build_moderation_engine
from ....safety.moderation import ModerationEngine
from ....safety.triage import TriageEngine
from ....services.sos import build_triage_engine

router = APIRouter(tags=["safety"])


class SOSRequest(BaseModel):
    user_id: str = Field(alias="userId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ModerationRequest(BaseModel):
    content: str


class ModerationResponse(BaseModel):
    analysis: ModerationAnalysis
    decision: ModerationDecision


_moderation_engine: Optional[ModerationEngine] = None
_sos_engine: Optional[TriageEngine] = None


def get_sos_engine() -> TriageEngine:
    global _sos_engine
    if _sos_engine is None:
        _sos_engine = build_triage_engine()
    return _sos_engine


def get_analysis_engine() -> ModerationEngine:
    global _moderation_engine
    if _moderation_engine is None:
        _moderation_engine = build_moderation_engine(get_settings())
    return _moderation_engine


@router.post("/safety/sos", response_model=SOSActionResult)
async def sos(body: SOSRequest, engine: TriageEngine = Depends(get_sos_engine)):
    """Explicit SOS button. Always answers with emergency contacts."""
    context = {"session_id": body.session_id, "message": body.message, "source": "sos_button"}
    return await engine.trigger_sos(body.user_id, context)


@router.post("/moderation/analyze", response_model=ModerationResponse)
async def analyze(body: ModerationRequest, engine: ModerationEngine = Depends(get_analysis_engine)):
    analysis = await engine.analyze(body.content)
    return {"analysis": analysis, "decision": engine.decide(analysis)}
