"""NAT-IA domain configuration.

Thresholds and keyword lists used by triage and moderation. The whole
configuration is an immutable value; ``ConfigStore`` swaps it atomically on
reload so readers never observe a half-updated configuration. Engines take
one snapshot (``store.current``) per call.
"""
import json
import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Literal, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..config import get_settings
from ..policies.validator import validate_config
from .errors import ValidationError

logger = logging.getLogger(__name__)


HIGH_RISK_KEYWORDS: Tuple[str, ...] = (
    "quero morrer",
    "penso em suicídio",
    "não aguento mais viver",
    "vou fazer mal",
    "machucar o bebê",
    "acabar com tudo",
    "melhor não estar aqui",
    "não quero mais viver",
)

WATCH_KEYWORDS: Tuple[str, ...] = (
    "muito triste",
    "choro o tempo todo",
    "não consigo parar de chorar",
    "exausta",
    "esgotada",
    "não consigo dormir",
    "sozinha",
    "ninguém me entende",
    "não sinto nada",
    "entorpecida",
    "não consigo cuidar",
    "pensamentos ruins",
    "medo de ficar sozinha com bebê",
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TriageConfig(_Frozen):
    high_risk_keywords: Tuple[str, ...] = HIGH_RISK_KEYWORDS
    watch_keywords: Tuple[str, ...] = WATCH_KEYWORDS
    # Range-checked only; levels come from keyword hits, not from these
    risk_threshold: float = 0.7
    watch_threshold: float = 0.4
    # Sentiment intensity (0-10) that raises an alert signal
    intensity_alert: int = 8


class ModerationConfig(_Frozen):
    judgement_threshold: float = 0.3
    toxicity_threshold: float = 0.3
    auto_approve_threshold: float = 0.2
    auto_reject_threshold: float = 0.8
    # Above this (either score) no rewrite is attempted
    rewrite_ceiling: float = 0.8


class RecommendationWeights(_Frozen):
    stage_match: float = 0.4
    interest_match: float = 0.3
    recent_activity: float = 0.2
    trending: float = 0.1


class RecommendationConfig(_Frozen):
    max_contents: int = 5
    max_circles: int = 3
    max_habits: int = 1
    min_match_score: float = 0.5
    factors: RecommendationWeights = Field(default_factory=RecommendationWeights)

    @property
    def weights(self) -> Dict[str, float]:
        return self.factors.model_dump()


class HabitConfig(_Frozen):
    micro_goals_count: int = 3
    default_deadline_days: int = 7
    # Days without a completion after which a gentle reminder is due
    reminder_days: Tuple[int, ...] = (1, 3, 7)
    celebration_streak: int = 3


class NathiaConfig(_Frozen):
    version: str = "1.0.0"
    triage: TriageConfig = Field(default_factory=TriageConfig)
    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    recommendations: RecommendationConfig = Field(default_factory=RecommendationConfig)
    habits: HabitConfig = Field(default_factory=HabitConfig)

    @model_validator(mode="after")
    def _check_ranges(self) -> "NathiaConfig":
        ok, errs = validate_config(self)
        if not ok:
            raise ValueError("; ".join(errs))
        return self


def build_config(data: Mapping[str, Any]) -> NathiaConfig:
    """Build a validated config from a plain mapping."""
    try:
        return NathiaConfig.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError("Invalid NAT-IA configuration", {"errors": e.errors(include_url=False)}) from e


class ConfigStore:
    def __init__(self, config: NathiaConfig | None = None):
        self._lock = threading.Lock()
        self._config = config or NathiaConfig()

    @property
    def current(self) -> NathiaConfig:
        return self._config

    def reload(self, config: NathiaConfig | Mapping[str, Any]) -> NathiaConfig:
        new = config if isinstance(config, NathiaConfig) else build_config(config)
        with self._lock:
            old = self._config
            self._config = new
        logger.info("config_reload", extra={"old_version": old.version, "new_version": new.version})
        return new

    def load_file(self, path: str | Path) -> NathiaConfig:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
        return self.reload(data)

    def _swap(self, section: str, mutate: Callable[[Dict[str, Any]], None]) -> NathiaConfig:
        # Read, merge and swap under one lock so concurrent updates never drop each other
        with self._lock:
            data = self._config.model_dump()
            if section not in data or not isinstance(data[section], dict):
                raise ValidationError(f"Unknown config section: {section}")
            mutate(data[section])
            new = build_config(data)
            self._config = new
        return new

    def update_section(self, section: str, **changes: Any) -> NathiaConfig:
        """Replace fields of one section; the result is validated and swapped whole."""
        new = self._swap(section, lambda data: data.update(changes))
        logger.info("config_update", extra={"section": section, "fields": sorted(changes)})
        return new

    def add_risk_keywords(self, kind: Literal["high", "watch"], keywords: Iterable[str]) -> NathiaConfig:
        field = "high_risk_keywords" if kind == "high" else "watch_keywords"
        additions = [kw.strip().lower() for kw in keywords if kw and kw.strip()]

        def merge(triage: Dict[str, Any]) -> None:
            merged = list(triage[field])
            for kw in additions:
                if kw not in merged:
                    merged.append(kw)
            triage[field] = tuple(merged)

        new = self._swap("triage", merge)
        logger.info("config_keywords_added", extra={"kind": kind, "count": len(additions)})
        return new


@lru_cache()
def get_config_store() -> ConfigStore:
    store = ConfigStore()
    path = (get_settings().NATHIA_CONFIG_FILE or "").strip()
    if path:
        store.load_file(path)
        logger.info("Loaded NAT-IA config from %s", path)
    return store
