from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .safety import ModerationAnalysis, ModerationDecision, RiskAssessment, SentimentAnalysis, SOSActionResult


class MessageRole(str, Enum):
    """Enum for message roles in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UserProfile(BaseModel):
    stage: Optional[str] = None
    concerns: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)


class ChatContext(BaseModel):
    """Per-turn context supplied by the caller.

    ``shared`` marks messages that will be persisted or shown to others
    (community posts); only those go through moderation.
    """

    user_id: str
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    user_profile: Optional[UserProfile] = None
    current_mood: Optional[str] = None
    session_id: Optional[str] = None
    shared: bool = False


class SuggestedAction(BaseModel):
    type: str  # navigation | content | group | habit | support
    label: str
    action: str
    params: Dict[str, Any] = Field(default_factory=dict)


class TurnSafety(BaseModel):
    path: str  # generated | fallback | sos | rewrite
    risk: RiskAssessment
    moderation: Optional[ModerationAnalysis] = None
    decision: Optional[ModerationDecision] = None
    sos: Optional[SOSActionResult] = None
    fallback_reason: Optional[str] = None


class TurnResult(BaseModel):
    reply: str
    actions: List[SuggestedAction] = Field(default_factory=list)
    next_step: Optional[str] = None
    sentiment: Optional[SentimentAnalysis] = None
    safety: TurnSafety


class QAResponse(BaseModel):
    answer: str
    sources: List[Dict[str, str]] = Field(default_factory=list)
    cached: bool = False
