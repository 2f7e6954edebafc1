from typing import Any, Dict

from ..models.chat import TurnResult


def turn_metadata(result: TurnResult) -> Dict[str, Any]:
    """Flatten a turn's safety block into the metadata persisted with the reply."""
    safety = result.safety
    md: Dict[str, Any] = {
        "path": safety.path,
        "risk_level": safety.risk.level.value,
        "risk_confidence": safety.risk.confidence,
        "requires_human_review": safety.risk.requires_human_review,
        "risk_signals": list(safety.risk.signals),
        "suggested_resources": list(safety.risk.suggested_resources),
        "fallback_reason": safety.fallback_reason,
    }
    if safety.moderation is not None:
        md["judgement_score"] = safety.moderation.judgement_score
        md["toxicity_score"] = safety.moderation.toxicity_score
    if safety.decision is not None:
        md["moderation_decision"] = safety.decision.value
    if safety.sos is not None:
        md["sos_sent_to_moderation"] = safety.sos.sent_to_moderation
    if result.sentiment is not None:
        md["sentiment"] = result.sentiment.sentiment
        md["valence"] = result.sentiment.valence.value
    return normalize_meta(md)


def normalize_meta(meta: Dict[str, Any]) -> Dict[str, Any]:
    """Ensure canonical keys exist with safe defaults and coerce common types."""
    out: Dict[str, Any] = dict(meta or {})
    out.setdefault("path", "generated")
    out.setdefault("risk_level", "ok")
    try:
        out["risk_confidence"] = float(out.get("risk_confidence", 0.0))
    except (TypeError, ValueError):
        out["risk_confidence"] = 0.0
    out["requires_human_review"] = bool(out.get("requires_human_review", False))
    out.setdefault("risk_signals", [])
    out.setdefault("suggested_resources", [])
    out.setdefault("moderation_decision", None)
    out.setdefault("judgement_score", None)
    out.setdefault("toxicity_score", None)
    out.setdefault("sos_sent_to_moderation", None)
    out.setdefault("fallback_reason", None)
    out.setdefault("sentiment", None)
    out.setdefault("valence", None)
    return out
