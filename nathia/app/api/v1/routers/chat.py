from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ....models.chat import ChatContext, MessageRole, QAResponse, TurnResult
from ....orchestration.qa import QAClient
from ....services.chat import ChatService, get_chat_service

router = APIRouter(prefix="/ai", tags=["ai"])


# Models


class MessageCreate(BaseModel):
    session_id: str = Field(alias="sessionId", min_length=1)
    content: str = Field(min_length=1)
    role: MessageRole

    model_config = ConfigDict(populate_by_name=True)


class MessageOut(BaseModel):
    id: str
    session_id: str
    role: str
    content: str
    created_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    message: str
    context: ChatContext


class QARequest(BaseModel):
    question: str
    user_id: str = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True)


_qa_client: Optional[QAClient] = None


def get_qa_client() -> QAClient:
    global _qa_client
    if _qa_client is None:
        _qa_client = QAClient()
    return _qa_client


@router.post("/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def create_message(body: MessageCreate, service: ChatService = Depends(get_chat_service)):
    """Persist a chat message (plain text only)."""
    return await service.persist_message(body.session_id, body.content, body.role)


@router.post("/chat", response_model=TurnResult)
async def chat(body: ChatRequest, service: ChatService = Depends(get_chat_service)):
    """Run one orchestrated turn: triage, optional moderation, generation."""
    return await service.run_turn(body.message, body.context)


@router.post("/qa", response_model=QAResponse)
async def ask(body: QARequest, client: QAClient = Depends(get_qa_client)):
    return await client.ask(body.question, body.user_id)
