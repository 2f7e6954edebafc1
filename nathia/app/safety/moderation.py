"""Assisted moderation: judgement/toxicity scoring, decisions, rewrites.

``is_safe`` (per-dimension thresholds) and ``decide`` (auto-approve /
auto-reject thresholds) are deliberately separate computations; a message can
be unsafe and still land in the review band.
"""
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.config import ConfigStore, ModerationConfig, get_config_store
from ..core.errors import NathiaError
from ..models.safety import ModerationAnalysis, ModerationDecision
from .classifier import (
    MATERNAL_COMPARISONS,
    SHOULD_STATEMENTS,
    Classifier,
    default_classifier,
    validate_message,
)

logger = logging.getLogger(__name__)

CONCERN_SCORE = 0.5
TOPIC_CONCERN_SCORE = 0.4
MAX_EMOJIS = 2
MAX_SENTENCE_WORDS = 25

NO_PUBLISH_SUGGESTION = (
    "[SUGESTÃO: NÃO PUBLICAR] Esta mensagem contém linguagem prejudicial. "
    "Considere reformular completamente ou escolher não comentar."
)

# Informational contexts where prescriptive wording is acceptable
ALLOWED_PRESCRIPTIVE_CONTEXTS = (
    "segundo especialistas",
    "recomendação médica",
    "orientação profissional",
    "estudos mostram",
    "evidência científica",
)

TONE_POLICING = re.compile(r"\b(deveria|deve|tem que)\b", re.I)
ALARMIST = re.compile(r"\b(urgente|cuidado|perigo|nunca)\b", re.I)
EMOJI = re.compile("[\U0001F300-\U0001FAFF☀-➿]")
SENTENCE_SPLIT = re.compile(r"[.!?]+")

TOPIC_CONCERNS = (
    (("amamentação", "amamentar"), "Julgamento sobre amamentação"),
    (("parto", "cesariana", "cesárea"), "Julgamento sobre tipo de parto"),
    (("trabalho", "licença"), "Julgamento sobre escolhas profissionais"),
)

# Deterministic softening used when no AI rewriter is available
SOFTENINGS = (
    (re.compile(r"\bvocê (deveria|deve|tem que|precisa)\b", re.I), "você pode"),
    (re.compile(r"\b(deveria|deve|tem que|precisa)\b", re.I), "pode"),
    (re.compile(r"\b(sempre|nunca)\b", re.I), "às vezes"),
    (MATERNAL_COMPARISONS, "mães"),
)
SOFTENING_LEAD = "Uma sugestão com carinho: "

Rewriter = Callable[[str], Awaitable[str]]


def is_in_allowed_context(text: str) -> bool:
    lower = text.lower()
    return any(ctx in lower for ctx in ALLOWED_PRESCRIPTIVE_CONTEXTS)


def identify_concerns(text: str, judgement: float, toxicity: float) -> List[str]:
    concerns: List[str] = []
    lower = text.lower()

    if judgement > CONCERN_SCORE:
        concerns.append("Julgamento de escolhas maternas")
    if toxicity > CONCERN_SCORE:
        concerns.append("Linguagem ofensiva ou agressiva")

    if TONE_POLICING.search(text) and not is_in_allowed_context(text):
        concerns.append("Tom prescritivo/julgamental")
    if MATERNAL_COMPARISONS.search(lower):
        concerns.append("Linguagem comparativa entre mães")
    if ALARMIST.search(text):
        concerns.append("Tom alarmista")
    if len(EMOJI.findall(text)) > MAX_EMOJIS:
        concerns.append("Uso excessivo de emojis")
    if any(len(s.split()) > MAX_SENTENCE_WORDS for s in SENTENCE_SPLIT.split(text)):
        concerns.append("Frases muito longas")

    if judgement > TOPIC_CONCERN_SCORE:
        for words, concern in TOPIC_CONCERNS:
            if any(w in lower for w in words):
                concerns.append(concern)

    return concerns


def build_rationale(
    judgement_score: float,
    toxicity_score: float,
    concerns: Optional[List[str]] = None,
    cfg: Optional[ModerationConfig] = None,
) -> str:
    """Multi-paragraph explanation for the human moderator."""
    cfg = cfg or ModerationConfig()
    reasons: List[str] = []

    if judgement_score > CONCERN_SCORE:
        reasons.append(
            f"Julgamento detectado (score: {judgement_score:.2f}). "
            "A mensagem parece criticar ou julgar escolhas maternas."
        )
    if toxicity_score > CONCERN_SCORE:
        reasons.append(
            f"Toxicidade detectada (score: {toxicity_score:.2f}). "
            "A mensagem contém linguagem ofensiva ou agressiva."
        )
    if concerns:
        reasons.append(f"Preocupações identificadas: {', '.join(concerns)}")

    decision = decide_scores(judgement_score, toxicity_score, cfg)
    if decision == ModerationDecision.APPROVE:
        reasons.append("✅ Mensagem aprovada: dentro dos padrões da comunidade.")
    elif decision == ModerationDecision.REVIEW:
        reasons.append("⚠️ Revisão recomendada: mensagem pode ser melhorada.")
    else:
        reasons.append("❌ Bloqueio recomendado: mensagem viola diretrizes da comunidade.")

    return "\n\n".join(reasons)


def decide_scores(judgement_score: float, toxicity_score: float, cfg: ModerationConfig) -> ModerationDecision:
    if judgement_score >= cfg.auto_reject_threshold or toxicity_score >= cfg.auto_reject_threshold:
        return ModerationDecision.REJECT
    if judgement_score < cfg.auto_approve_threshold and toxicity_score < cfg.auto_approve_threshold:
        return ModerationDecision.APPROVE
    # Gray zone: a human decides
    return ModerationDecision.REVIEW


def soften_phrasing(text: str) -> str:
    out = text
    for pattern, replacement in SOFTENINGS:
        out = pattern.sub(replacement, out)
    out = re.sub(r"\s{2,}", " ", out).strip()
    return SOFTENING_LEAD + out


class ModerationEngine:
    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        classifier: Optional[Classifier] = None,
        rewriter: Optional[Rewriter] = None,
    ):
        self.store = store or get_config_store()
        self.classifier = classifier or default_classifier
        self.rewriter = rewriter

    def is_safe(self, judgement_score: float, toxicity_score: float, cfg: Optional[ModerationConfig] = None) -> bool:
        cfg = cfg or self.store.current.moderation
        return judgement_score < cfg.judgement_threshold and toxicity_score < cfg.toxicity_threshold

    def decide(self, analysis: ModerationAnalysis) -> ModerationDecision:
        return decide_scores(analysis.judgement_score, analysis.toxicity_score, self.store.current.moderation)

    def detect_judgement(self, text: str) -> float:
        validate_message(text)
        try:
            return self.classifier.judgement_score(text)
        except Exception as e:
            raise NathiaError("Erro ao detectar julgamento", "JUDGEMENT_DETECTION_ERROR", {"error": str(e)}) from e

    def detect_toxicity(self, text: str) -> float:
        validate_message(text)
        try:
            return self.classifier.toxicity_score(text)
        except Exception as e:
            raise NathiaError("Erro ao detectar toxicidade", "TOXICITY_DETECTION_ERROR", {"error": str(e)}) from e

    async def suggest_rewrite(
        self,
        text: str,
        judgement_score: Optional[float] = None,
        toxicity_score: Optional[float] = None,
    ) -> str:
        """Gentle rewrite, or the fixed do-not-publish instruction for severe content."""
        validate_message(text)
        cfg = self.store.current.moderation
        judgement = self.detect_judgement(text) if judgement_score is None else judgement_score
        toxicity = self.detect_toxicity(text) if toxicity_score is None else toxicity_score

        # Never auto-rewrite severely toxic/judgemental content
        if judgement >= cfg.rewrite_ceiling or toxicity >= cfg.rewrite_ceiling:
            return NO_PUBLISH_SUGGESTION

        if self.rewriter is not None:
            try:
                rewritten = (await self.rewriter(text) or "").strip()
                if rewritten:
                    return rewritten
            except Exception as e:
                logger.warning("rewrite_provider_failed: %s", e)
        return soften_phrasing(text)

    async def analyze(self, text: str) -> ModerationAnalysis:
        validate_message(text)
        cfg = self.store.current.moderation

        judgement = self.detect_judgement(text)
        toxicity = self.detect_toxicity(text)
        safe = self.is_safe(judgement, toxicity, cfg)
        try:
            concerns = identify_concerns(text, judgement, toxicity)
        except Exception as e:
            raise NathiaError("Erro ao analisar mensagem", "MODERATION_ERROR", {"error": str(e)}) from e

        rewrite: Optional[str] = None
        if not safe:
            rewrite = await self.suggest_rewrite(text, judgement, toxicity)

        analysis = ModerationAnalysis(
            judgement_score=judgement,
            toxicity_score=toxicity,
            is_safe=safe,
            concerns=concerns,
            suggested_rewrite=rewrite,
            rationale=build_rationale(judgement, toxicity, concerns, cfg),
        )
        logger.info(
            "moderation_analysis",
            extra={
                "judgement": judgement,
                "toxicity": toxicity,
                "is_safe": safe,
                "decision": decide_scores(judgement, toxicity, cfg).value,
                "concerns": len(concerns),
            },
        )
        return analysis


def moderation_stats(analyses: List[ModerationAnalysis], cfg: Optional[ModerationConfig] = None) -> Dict[str, Any]:
    cfg = cfg or get_config_store().current.moderation
    total = len(analyses)
    decisions = [decide_scores(a.judgement_score, a.toxicity_score, cfg) for a in analyses]
    return {
        "total": total,
        "approved": decisions.count(ModerationDecision.APPROVE),
        "rejected": decisions.count(ModerationDecision.REJECT),
        "needs_review": decisions.count(ModerationDecision.REVIEW),
        "avg_judgement": sum(a.judgement_score for a in analyses) / (total or 1),
        "avg_toxicity": sum(a.toxicity_score for a in analyses) / (total or 1),
    }


_default_engine: Optional[ModerationEngine] = None


def get_moderation_engine() -> ModerationEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = ModerationEngine()
    return _default_engine


async def analyze(text: str) -> ModerationAnalysis:
    return await get_moderation_engine().analyze(text)


def decide(analysis: ModerationAnalysis) -> ModerationDecision:
    return get_moderation_engine().decide(analysis)
