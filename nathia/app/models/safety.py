from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    """Risk band assigned by triage, ordered ok < watch < risk."""

    OK = "ok"
    WATCH = "watch"
    RISK = "risk"


class Valence(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ModerationDecision(str, Enum):
    APPROVE = "approve"
    REVIEW = "review"
    REJECT = "reject"


class SentimentAnalysis(BaseModel):
    sentiment: str = ""
    intensity: int = Field(0, ge=0, le=10)
    valence: Valence = Valence.NEUTRAL
    keywords: List[str] = Field(default_factory=list)


class RiskAssessment(BaseModel):
    level: RiskLevel
    signals: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    requires_human_review: bool = False
    suggested_resources: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ModerationAnalysis(BaseModel):
    judgement_score: float = Field(ge=0.0, le=1.0)
    toxicity_score: float = Field(ge=0.0, le=1.0)
    is_safe: bool
    concerns: List[str] = Field(default_factory=list)
    suggested_rewrite: Optional[str] = None
    rationale: str = ""


class SupportContact(BaseModel):
    name: str
    phone: str
    description: str
    available_24_7: bool = True


class SOSActionResult(BaseModel):
    sent_to_moderation: bool
    event_recorded: bool
    resources_displayed: List[str]
    support_contacts: List[SupportContact]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
