"""Risk triage: per-message risk band, human-review flag and the SOS protocol.

Every message is assessed on its own; there is no session-level accumulation.
"""
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.config import ConfigStore, get_config_store
from ..core.errors import NathiaError, ValidationError
from ..models.safety import RiskAssessment, RiskLevel, SentimentAnalysis, SOSActionResult, Valence
from .classifier import Classifier, default_classifier, validate_message
from .resources import CRISIS_RESOURCE_IDS, emergency_contacts, suggested_resources

logger = logging.getLogger(__name__)

REVIEW_CONFIDENCE = 0.6

SosEffect = Callable[[str, Dict[str, Any]], Awaitable[None]]


async def log_sos_event(user_id: str, context: Dict[str, Any]) -> None:
    risk = context.get("risk_assessment")
    logger.warning(
        "sos_event",
        extra={
            "user_id": user_id,
            "has_message": bool(context.get("message")),
            "risk_level": getattr(getattr(risk, "level", None), "value", None),
        },
    )


async def log_moderation_notice(user_id: str, context: Dict[str, Any]) -> None:
    logger.warning("sos_moderation_notice", extra={"user_id": user_id, "priority": "HIGH"})


class TriageEngine:
    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        classifier: Optional[Classifier] = None,
        recorder: Optional[SosEffect] = None,
        notifier: Optional[SosEffect] = None,
    ):
        self.store = store or get_config_store()
        self.classifier = classifier or default_classifier
        self.recorder = recorder or log_sos_event
        self.notifier = notifier or log_moderation_notice

    def assess_risk(self, text: str) -> RiskAssessment:
        validate_message(text)
        cfg = self.store.current.triage
        try:
            hits = self.classifier.risk_signals(text, cfg.high_risk_keywords, cfg.watch_keywords)
            confidence = hits.confidence
            signals: List[str] = []

            # Any high-risk hit escalates straight to risk, regardless of watch hits
            if hits.high:
                level = RiskLevel.RISK
                signals.extend(f'Expressão de alto risco: "{k}"' for k in hits.high)
            elif len(hits.watch) >= 2:
                level = RiskLevel.WATCH
                signals.extend(f'Sinal de atenção: "{k}"' for k in hits.watch)
            elif hits.watch:
                level = RiskLevel.WATCH
                signals.append(f'Possível preocupação: "{hits.watch[0]}"')
            else:
                level = RiskLevel.OK

            if level == RiskLevel.WATCH:
                sentiment = self.classifier.sentiment(text)
                if sentiment.valence == Valence.NEGATIVE and sentiment.intensity >= cfg.intensity_alert:
                    signals.append(f"Intensidade emocional elevada ({sentiment.intensity}/10)")
        except Exception as e:
            raise NathiaError("Erro ao detectar risco", "RISK_DETECTION_ERROR", {"error": str(e)}) from e

        review = level == RiskLevel.RISK or (level == RiskLevel.WATCH and confidence > REVIEW_CONFIDENCE)
        assessment = RiskAssessment(
            level=level,
            signals=signals,
            confidence=confidence,
            requires_human_review=review,
            suggested_resources=suggested_resources(level, review),
        )
        logger.info(
            "risk_triage",
            extra={"level": level.value, "confidence": confidence, "signals": len(signals), "review": review},
        )
        return assessment

    def classify_sentiment(self, text: str) -> SentimentAnalysis:
        validate_message(text)
        try:
            return self.classifier.sentiment(text)
        except Exception as e:
            raise NathiaError("Erro ao classificar sentimento", "SENTIMENT_ERROR", {"error": str(e)}) from e

    async def trigger_sos(self, user_id: str, context: Optional[Dict[str, Any]] = None) -> SOSActionResult:
        """Record, notify, and always return emergency contacts.

        The two side effects are independent: either may fail (and is logged)
        without affecting the other or the returned contacts.
        """
        if not user_id or not str(user_id).strip():
            raise ValidationError("user_id é obrigatório para acionar SOS")
        context = context or {}

        recorded = False
        try:
            await self.recorder(user_id, context)
            recorded = True
        except Exception:
            logger.exception("sos_record_failed", extra={"user_id": user_id})

        notified = False
        try:
            await self.notifier(user_id, context)
            notified = True
        except Exception:
            logger.exception("sos_notify_failed", extra={"user_id": user_id})

        result = SOSActionResult(
            sent_to_moderation=notified,
            event_recorded=recorded,
            resources_displayed=list(CRISIS_RESOURCE_IDS),
            support_contacts=emergency_contacts(),
            timestamp=datetime.now(timezone.utc),
        )
        logger.warning(
            "sos_triggered",
            extra={"user_id": user_id, "recorded": recorded, "notified": notified},
        )
        return result


def triage_stats(assessments: List[RiskAssessment]) -> Dict[str, Any]:
    by_level = Counter({level.value: 0 for level in RiskLevel})
    by_level.update(a.level.value for a in assessments)
    total = len(assessments)
    return {
        "total": total,
        "by_level": dict(by_level),
        "avg_confidence": sum(a.confidence for a in assessments) / (total or 1),
        "requires_review": sum(1 for a in assessments if a.requires_human_review),
    }


_default_engine: Optional[TriageEngine] = None


def get_triage_engine() -> TriageEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = TriageEngine()
    return _default_engine


def assess_risk(text: str) -> RiskAssessment:
    return get_triage_engine().assess_risk(text)


async def trigger_sos(user_id: str, context: Optional[Dict[str, Any]] = None) -> SOSActionResult:
    return await get_triage_engine().trigger_sos(user_id, context)
