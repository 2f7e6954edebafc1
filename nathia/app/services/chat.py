import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import Settings, get_settings
from ..core.errors import ValidationError
from ..db.base import SessionLocal
from ..models.chat import ChatContext, MessageRole, TurnResult
from ..models.sql_models import AiMessage
from ..orchestration.graph import Orchestrator
from ..orchestration.llm import GeminiClient
from ..orchestration.metadata import turn_metadata
from ..orchestration.scrubber import sanitize_ai_message
from .sos import build_triage_engine

logger = logging.getLogger(__name__)


class ChatService:
    """Persists chat messages and runs orchestrated turns.

    Shared turns are moderated by the same engine as community posts, so
    unsafe messages get the AI rewrite whenever a generator key is set.
    """

    def __init__(
        self,
        orchestrator: Optional[Orchestrator] = None,
        generator: Optional[GeminiClient] = None,
        settings: Optional[Settings] = None,
    ):
        if orchestrator is None:
            settings = settings or get_settings()
            orchestrator = Orchestrator(triage=build_triage_engine(settings), generator=generator, settings=settings)
        self.orchestrator = orchestrator

    async def persist_message(
        self,
        session_id: str,
        content: str,
        role: MessageRole = MessageRole.USER,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Store a message after plain-text sanitisation."""
        if not session_id or not content:
            raise ValidationError("Campos obrigatórios faltando")
        clean = sanitize_ai_message(content)
        if not clean:
            raise ValidationError("Mensagem vazia após sanitização")

        db = SessionLocal()
        try:
            db_msg = AiMessage(
                session_id=session_id,
                role=role.value if hasattr(role, "value") else str(role),
                content=clean,
                created_at=datetime.now(timezone.utc),
                metadata_json=(metadata or {}),
            )
            db.add(db_msg)
            db.commit()
            db.refresh(db_msg)
            return {
                "id": db_msg.id,
                "session_id": db_msg.session_id,
                "role": db_msg.role,
                "content": db_msg.content,
                "created_at": db_msg.created_at,
                "metadata": db_msg.metadata_json or {},
            }
        finally:
            db.close()
            # Prevent scoped_session from caching objects across calls
            SessionLocal.remove()

    async def run_turn(self, message: str, ctx: ChatContext) -> TurnResult:
        result = await self.orchestrator.handle_turn(message, ctx)
        if ctx.session_id:
            meta = turn_metadata(result)
            await self.persist_message(ctx.session_id, message, MessageRole.USER, {"risk_level": meta["risk_level"]})
            await self.persist_message(ctx.session_id, result.reply, MessageRole.ASSISTANT, meta)
        logger.info(
            "turn_completed",
            extra={"user_id": ctx.user_id, "path": result.safety.path, "risk_level": result.safety.risk.level.value},
        )
        return result


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
