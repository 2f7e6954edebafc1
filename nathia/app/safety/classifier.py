"""Keyword/heuristic classifier shared by triage and moderation.

Everything here is pure string matching over curated pt-BR lists. Triage and
moderation only talk to the ``Classifier`` protocol so a model-based
implementation can be dropped in later.
"""
import re
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

from ..core.errors import ValidationError
from ..models.safety import SentimentAnalysis, Valence

MAX_MESSAGE_LENGTH = 5000

# Risk confidence ladder
NO_MATCH_CONFIDENCE = 0.1
SINGLE_WATCH_CONFIDENCE = 0.4
WATCH_CONFIDENCE_STEP = 0.1
WATCH_CONFIDENCE_CAP = 0.7
HIGH_RISK_BASE_CONFIDENCE = 0.6
HIGH_RISK_CONFIDENCE_STEP = 0.15
HIGH_RISK_CONFIDENCE_CAP = 0.9


# ---------------------------------------------------------------------------
# Judgement / toxicity patterns
# ---------------------------------------------------------------------------

SHOULD_STATEMENTS = re.compile(r"\b(deveria|deveriam|deve|devem|tem que|têm que|precisa|é obrigada|é obrigado)\b")
ABSOLUTES = re.compile(r"\b(sempre|nunca|todo|toda|todos|todas|nenhum|nenhuma)\b")
MATERNAL_COMPARISONS = re.compile(r"\b(melhor mãe|mães? de verdade|boas? mães?|más? mães?|mãe desnaturada)\b")
PRESCRIPTIVE_WORDS = re.compile(r"\b(errad[oa]|cert[oa]|corret[oa]|incorret[oa]|adequad[oa]|inadequad[oa])\b")
JUDGEMENTAL_PHRASES = re.compile(r"\bisso é\s+(ruim|mal|errado|vergonha|uma vergonha)\b")
IMPERATIVES = re.compile(r"\b(faça|pare|deixe|não faça|evite|nunca faça)\b")

# (pattern, weight per match)
JUDGEMENT_WEIGHTS = (
    (SHOULD_STATEMENTS, 0.2),
    (ABSOLUTES, 0.1),
    (MATERNAL_COMPARISONS, 0.35),
    (PRESCRIPTIVE_WORDS, 0.1),
    (JUDGEMENTAL_PHRASES, 0.25),
)
IMPERATIVE_BONUS = 0.2
SHOUTED_SHOULD_BONUS = 0.1

OFFENSIVE_WORDS = (
    "idiota",
    "burra",
    "burro",
    "estúpida",
    "estúpido",
    "incompetente",
    "péssima",
    "horrível",
    "ridícula",
    "nojenta",
)
PERSONAL_ATTACKS = re.compile(
    r"\b(você é|você está sendo|seu comportamento é)\s+(uma?\s+)?(ruim|mal|má|terrível|péssim[oa]|horrível)"
)
EXTREME_NEGATIONS = re.compile(r"\b(não tem ideia|não sabe nada|não entende nada)\b")
SARCASM = re.compile(r"\b(parabéns|claro|óbvio|nossa|uau)\s*[!.]{2,}")
WORD_4PLUS = re.compile(r"\b\w{4,}\b")

OFFENSIVE_WEIGHT = 0.3
ATTACK_WEIGHT = 0.25
NEGATION_WEIGHT = 0.2
SARCASM_WEIGHT = 0.15
CAPS_BONUS = 0.2
CAPS_MIN_WORDS = 3


# ---------------------------------------------------------------------------
# Sentiment lexicon
# ---------------------------------------------------------------------------

# keyword -> sentiment label
EMOTIONAL_WORDS = {
    "feliz": "alegria",
    "alegre": "alegria",
    "triste": "tristeza",
    "preocupada": "ansiedade",
    "ansiosa": "ansiedade",
    "medo": "medo",
    "cansada": "cansaço",
    "exausta": "cansaço",
    "sozinha": "solidão",
    "frustrada": "frustração",
    "grata": "gratidão",
    "esperançosa": "esperança",
    "desesperada": "desespero",
    "confusa": "confusão",
    "culpada": "culpa",
    "amor": "amor",
    "raiva": "raiva",
}
POSITIVE_WORDS = frozenset({"feliz", "alegre", "grata", "esperançosa", "amor"})
NEGATIVE_WORDS = frozenset({"triste", "preocupada", "ansiosa", "medo", "desesperada", "raiva", "culpada"})
INTENSIFIERS = ("muito", "extremamente", "demais", "tanto", "completamente")


def validate_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    if not isinstance(text, str):
        raise ValidationError("Mensagem é obrigatória e deve ser texto")
    if not text.strip():
        raise ValidationError("Mensagem não pode estar vazia")
    if len(text) > max_length:
        raise ValidationError(f"Mensagem muito longa (máx {max_length} caracteres)", {"length": len(text)})
    return text


def match_keywords(text: str, keywords: Sequence[str]) -> List[str]:
    """Keywords found in ``text`` (case-folded substring match), in list order."""
    folded = text.casefold()
    return [kw for kw in keywords if kw.casefold() in folded]


@dataclass
class RiskSignals:
    high: List[str] = field(default_factory=list)
    watch: List[str] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        if self.high:
            extra = len(self.high) - 1
            return round(min(HIGH_RISK_CONFIDENCE_CAP, HIGH_RISK_BASE_CONFIDENCE + extra * HIGH_RISK_CONFIDENCE_STEP), 2)
        if len(self.watch) >= 2:
            return round(min(WATCH_CONFIDENCE_CAP, SINGLE_WATCH_CONFIDENCE + len(self.watch) * WATCH_CONFIDENCE_STEP), 2)
        if len(self.watch) == 1:
            return SINGLE_WATCH_CONFIDENCE
        return NO_MATCH_CONFIDENCE


class Classifier(Protocol):
    def risk_signals(self, text: str, high_risk: Sequence[str], watch: Sequence[str]) -> RiskSignals: ...

    def judgement_score(self, text: str) -> float: ...

    def toxicity_score(self, text: str) -> float: ...

    def sentiment(self, text: str) -> SentimentAnalysis: ...


class KeywordClassifier:
    """Substring/regex classifier. Callers validate input first."""

    def risk_signals(self, text: str, high_risk: Sequence[str], watch: Sequence[str]) -> RiskSignals:
        return RiskSignals(high=match_keywords(text, high_risk), watch=match_keywords(text, watch))

    def judgement_score(self, text: str) -> float:
        lower = text.lower()
        score = 0.0
        for pattern, weight in JUDGEMENT_WEIGHTS:
            score += len(pattern.findall(lower)) * weight

        if len(IMPERATIVES.findall(lower)) > 2:
            score += IMPERATIVE_BONUS

        # A should-statement written in caps ("DEVERIA") reads as a reprimand
        shouted = [w for w in WORD_4PLUS.findall(text) if w.isupper()]
        if any(SHOULD_STATEMENTS.fullmatch(w.lower()) for w in shouted):
            score += SHOUTED_SHOULD_BONUS

        return round(min(score, 1.0), 2)

    def toxicity_score(self, text: str) -> float:
        lower = text.lower()
        score = 0.0
        for word in OFFENSIVE_WORDS:
            if word in lower:
                score += OFFENSIVE_WEIGHT
        score += len(PERSONAL_ATTACKS.findall(lower)) * ATTACK_WEIGHT
        score += len(EXTREME_NEGATIONS.findall(lower)) * NEGATION_WEIGHT
        score += len(SARCASM.findall(lower)) * SARCASM_WEIGHT

        caps_words = [w for w in WORD_4PLUS.findall(text) if w.isupper()]
        if len(caps_words) >= CAPS_MIN_WORDS:
            score += CAPS_BONUS

        return round(min(score, 1.0), 2)

    def sentiment(self, text: str) -> SentimentAnalysis:
        keywords = match_keywords(text, list(EMOTIONAL_WORDS))
        return SentimentAnalysis(
            sentiment=EMOTIONAL_WORDS[keywords[0]] if keywords else "neutro",
            intensity=estimate_intensity(text, keywords),
            valence=infer_valence(keywords),
            keywords=keywords,
        )


def infer_valence(keywords: Sequence[str]) -> Valence:
    positive = sum(1 for k in keywords if k in POSITIVE_WORDS)
    negative = sum(1 for k in keywords if k in NEGATIVE_WORDS)
    if positive > negative:
        return Valence.POSITIVE
    if negative > positive:
        return Valence.NEGATIVE
    return Valence.NEUTRAL


def estimate_intensity(text: str, keywords: Sequence[str]) -> int:
    lower = text.lower()
    intensity = len(keywords) * 2
    if any(i in lower for i in INTENSIFIERS):
        intensity += 2
    intensity += min(text.count("!"), 2)
    intensity += min(text.count("?"), 1)
    return max(0, min(intensity, 10))


default_classifier = KeywordClassifier()
