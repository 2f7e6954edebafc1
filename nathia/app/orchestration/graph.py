from typing import List, Optional, Protocol
import logging

from ..config import Settings, get_settings
from ..core.errors import AIServiceError, NathiaError, ValidationError
from ..models.chat import ChatContext, SuggestedAction, TurnResult, TurnSafety
from ..models.safety import RiskLevel
from ..safety.classifier import validate_message
from ..safety.moderation import ModerationEngine
from ..safety.triage import TriageEngine, get_triage_engine
from .context import build_chat_prompt, build_conversation_context, infer_next_step, infer_suggested_actions
from .llm import SYSTEM_POLICY, GeminiClient, build_moderation_engine
from .scrubber import sanitize_ai_message
from .triage import rewrite_reply, sos_actions, sos_reply

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "Desculpe, estou com dificuldade para responder agora. "
    "Tente novamente em alguns instantes. Se precisar de apoio imediato, o CVV atende 24h pelo 188."
)


class Generator(Protocol):
    async def generate_resilient(self, prompt: str, system: str = ..., history: Optional[List[dict]] = None) -> str: ...


class Orchestrator:
    """One chat turn: triage, optional moderation, then generation.

    Order is fixed. A ``risk`` turn ends in the SOS flow and the generator is
    never called; a shared message that fails moderation gets a rewrite
    suggestion instead of a reply.
    """

    def __init__(
        self,
        triage: Optional[TriageEngine] = None,
        moderation: Optional[ModerationEngine] = None,
        generator: Optional[Generator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.triage = triage or get_triage_engine()
        self.generator = generator or GeminiClient(self.settings)
        # Shared turns get the same AI rewrite as community posts
        self.moderation = moderation or build_moderation_engine(self.settings, self.generator)

    def _validate(self, message: str, ctx: ChatContext) -> None:
        validate_message(message, self.settings.MAX_MESSAGE_LENGTH)
        if not ctx.user_id or not ctx.user_id.strip():
            raise ValidationError("user_id é obrigatório")
        if len(ctx.conversation_history) > self.settings.MAX_HISTORY_MESSAGES:
            raise ValidationError(
                "Histórico de conversa muito longo",
                {"max_history": self.settings.MAX_HISTORY_MESSAGES},
            )

    async def handle_turn(self, message: str, ctx: ChatContext) -> TurnResult:
        self._validate(message, ctx)

        # 1) risk triage, always first
        risk = self.triage.assess_risk(message)
        if risk.level == RiskLevel.RISK:
            sos = await self.triage.trigger_sos(
                ctx.user_id,
                {"message": message, "risk_assessment": risk, "session_id": ctx.session_id},
            )
            logger.warning("turn_sos", extra={"user_id": ctx.user_id, "signals": len(risk.signals)})
            return TurnResult(
                reply=sos_reply(sos),
                actions=sos_actions(),
                next_step=None,
                safety=TurnSafety(path="sos", risk=risk, sos=sos),
            )

        try:
            sentiment = self.triage.classify_sentiment(message)

            # 2) moderation only for content others will see
            moderation = None
            decision = None
            if ctx.shared:
                moderation = await self.moderation.analyze(message)
                decision = self.moderation.decide(moderation)
                if not moderation.is_safe:
                    logger.info("turn_rewrite", extra={"user_id": ctx.user_id, "decision": decision.value})
                    return TurnResult(
                        reply=rewrite_reply(moderation),
                        sentiment=sentiment,
                        safety=TurnSafety(path="rewrite", risk=risk, moderation=moderation, decision=decision),
                    )

            # 3) generation
            prompt = build_chat_prompt(message, build_conversation_context(ctx))
            actions = infer_suggested_actions(message, ctx)
            if risk.level == RiskLevel.WATCH and not any(a.type == "support" for a in actions):
                actions.append(
                    SuggestedAction(type="support", label="Ver recursos de apoio", action="show_support_resources")
                )
            safety = TurnSafety(path="generated", risk=risk, moderation=moderation, decision=decision)

            try:
                raw = await self.generator.generate_resilient(prompt, system=SYSTEM_POLICY)
                reply = sanitize_ai_message(raw)
                if not reply:
                    raise AIServiceError("Resposta vazia após sanitização", "EMPTY_REPLY")
            except AIServiceError as e:
                logger.warning("turn_fallback", extra={"user_id": ctx.user_id, "reason": e.code})
                reply = FALLBACK_REPLY
                safety = safety.model_copy(update={"path": "fallback", "fallback_reason": e.code})

            return TurnResult(
                reply=reply,
                actions=actions,
                next_step=infer_next_step(message),
                sentiment=sentiment,
                safety=safety,
            )
        except NathiaError:
            raise
        except Exception as e:
            logger.exception("turn_failed", extra={"user_id": ctx.user_id})
            raise NathiaError("Erro ao processar chat", "CHAT_ERROR", {"error": str(e)}) from e

