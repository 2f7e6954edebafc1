from typing import TYPE_CHECKING, List, Tuple

if TYPE_CHECKING:
    from ..core.config import NathiaConfig


WEIGHT_SUM_TOLERANCE = 0.01


def validate_config(cfg: "NathiaConfig") -> Tuple[bool, List[str]]:
    """Validate NAT-IA thresholds beyond basic Pydantic constraints.

    Returns (ok, errors)
    """
    errors: List[str] = []

    thresholds = {
        "triage.risk_threshold": cfg.triage.risk_threshold,
        "triage.watch_threshold": cfg.triage.watch_threshold,
        "moderation.judgement_threshold": cfg.moderation.judgement_threshold,
        "moderation.toxicity_threshold": cfg.moderation.toxicity_threshold,
        "moderation.auto_approve_threshold": cfg.moderation.auto_approve_threshold,
        "moderation.auto_reject_threshold": cfg.moderation.auto_reject_threshold,
        "recommendations.min_match_score": cfg.recommendations.min_match_score,
    }
    for name, value in thresholds.items():
        if not (0.0 <= float(value) <= 1.0):
            errors.append(f"{name} must be within [0, 1], got {value}")

    if cfg.moderation.auto_approve_threshold > cfg.moderation.auto_reject_threshold:
        errors.append("moderation.auto_approve_threshold must not exceed auto_reject_threshold")

    if not (0 <= cfg.triage.intensity_alert <= 10):
        errors.append(f"triage.intensity_alert out of range (0-10): {cfg.triage.intensity_alert}")

    # Keyword lists
    if not cfg.triage.high_risk_keywords:
        errors.append("triage.high_risk_keywords must not be empty")
    for kw in list(cfg.triage.high_risk_keywords) + list(cfg.triage.watch_keywords):
        if not kw.strip() or kw != kw.lower():
            errors.append(f"keyword must be non-empty lowercase text: {kw!r}")

    # Recommendation weights sum to 1.0
    weights = cfg.recommendations.weights
    if any(w < 0 for w in weights.values()):
        errors.append("recommendations.weights must be non-negative")
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        errors.append(f"recommendations.weights must sum to 1.0 (got {total:.3f})")

    recs = cfg.recommendations
    for name in ("max_contents", "max_circles", "max_habits"):
        if getattr(recs, name) < 0:
            errors.append(f"recommendations.{name} must not be negative")

    habits = cfg.habits
    if habits.micro_goals_count < 1:
        errors.append("habits.micro_goals_count must be at least 1")
    if habits.default_deadline_days < 1:
        errors.append("habits.default_deadline_days must be at least 1")
    if habits.celebration_streak < 1:
        errors.append("habits.celebration_streak must be at least 1")
    if any(d < 1 for d in habits.reminder_days):
        errors.append("habits.reminder_days must be positive")

    return (len(errors) == 0, errors)
