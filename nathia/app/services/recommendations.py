"""Personalised content, circle and habit recommendations.

Content scores are a weighted sum of the configured factors (stage match,
interest match, mood fit, trending), capped at 1.0. Items below
``min_match_score`` are dropped; the rest are ranked and cut to the
configured maximums.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from ..core.config import ConfigStore, RecommendationConfig, get_config_store
from ..core.errors import NathiaError, ValidationError
from ..models.chat import UserProfile
from ..models.coaching import (
    Circle,
    CircleRecommendations,
    ContentItem,
    ContentRecommendations,
    Difficulty,
    Feedback,
    Habit,
    HabitRecommendation,
    RecommendationContext,
)
from .habits import starter_goal

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

FEEDBACK_MULTIPLIERS = {"like": 1.3, "click": 1.2, "dislike": 0.5, "ignore": 0.9}

MOOD_KEYWORDS = {
    "worried": ("guia", "informação", "checklist", "preparação"),
    "sad": ("autocuidado", "apoio", "mental", "emocional"),
    "tired": ("sono", "descanso", "energia", "rotina"),
    "happy": ("desenvolvimento", "marcos", "celebrar"),
    "anxious": ("respiração", "mindfulness", "calma", "relaxamento"),
}

# Circle and habit scores use fixed bonuses over a base score
CIRCLE_BASE, CIRCLE_STAGE, CIRCLE_CONCERN, CIRCLE_INTEREST = 0.3, 0.3, 0.25, 0.15
HABIT_BASE, HABIT_GOAL = 0.3, 0.4
HABIT_EASE = {Difficulty.EASY: 0.2, Difficulty.MEDIUM: 0.1, Difficulty.HARD: 0.0}

CONTENT_CATALOG = (
    ContentItem(
        id="content_1",
        title="Guia do Segundo Trimestre",
        type="article",
        estimated_time="10 min",
        topics=("gravidez", "segundo trimestre"),
    ),
    ContentItem(
        id="content_2",
        title="Sono do Recém-Nascido: O Que Esperar",
        type="article",
        estimated_time="8 min",
        topics=("sono", "puerperio"),
        trending=True,
    ),
    ContentItem(
        id="content_3",
        title="Checklist: Bolsa da Maternidade",
        type="checklist",
        estimated_time="5 min",
        topics=("parto", "terceiro trimestre"),
    ),
    ContentItem(
        id="content_4",
        title="Respiração e Calma no Pós-Parto",
        type="audio",
        estimated_time="6 min",
        topics=("saude mental", "puerperio"),
    ),
    ContentItem(
        id="content_5",
        title="Amamentação: Primeiros Dias",
        type="video",
        estimated_time="12 min",
        topics=("amamentacao", "puerperio"),
        trending=True,
    ),
)

CIRCLE_CATALOG = (
    Circle(
        id="circle_1",
        name="Mães do Segundo Trimestre",
        description="Compartilhe experiências com outras mães na mesma fase",
    ),
    Circle(id="circle_2", name="Sono e Rotina", description="Dicas e apoio sobre sono do bebê"),
    Circle(
        id="circle_3",
        name="Puerperio e Saude Mental",
        description="Um espaço seguro para falar de emoções depois do parto",
    ),
)

HABIT_CATALOG = (
    Habit(
        id="habit_1",
        title="Journaling Materno",
        description="Registrar pensamentos e emoções diariamente",
        category="saude_mental",
    ),
    Habit(
        id="habit_2",
        title="Caminhada Diária",
        description="Caminhar 15 minutos por dia",
        category="saude_fisica",
    ),
)

DEFAULT_HABIT = Habit(
    id="default_habit",
    title="Momento de Pausa",
    description="Tirar 5 minutos para respirar e relaxar",
    category="autocuidado",
)


def _norm(text: str) -> str:
    return text.lower().replace("_", " ")


def _mentions(haystack: str, needles: Iterable[str]) -> bool:
    return any(_norm(n) in haystack for n in needles if n)


def validate_user_id(user_id: str) -> None:
    if not user_id or not isinstance(user_id, str):
        raise ValidationError("user_id é obrigatório")


def content_score(item: ContentItem, ctx: RecommendationContext, cfg: RecommendationConfig) -> float:
    weights = cfg.factors
    text = _norm(" ".join((item.title,) + item.topics))
    score = 0.0
    if ctx.current_stage and _norm(ctx.current_stage) in text:
        score += weights.stage_match
    interests = list(ctx.recent_activity)
    if ctx.preferences:
        interests += ctx.preferences.interests
    if _mentions(text, interests):
        score += weights.interest_match
    if ctx.current_mood and _mentions(text, MOOD_KEYWORDS.get(ctx.current_mood, ())):
        score += weights.recent_activity
    if item.trending:
        score += weights.trending
    return min(score, 1.0)


def content_reason(item: ContentItem, ctx: RecommendationContext) -> str:
    text = _norm(" ".join((item.title,) + item.topics))
    reasons = []
    if ctx.current_stage and _norm(ctx.current_stage) in text:
        reasons.append("alinhado com sua fase atual")
    if _mentions(text, ctx.recent_activity):
        reasons.append("relacionado ao que você tem buscado")
    if ctx.current_mood:
        reasons.append("útil para como você está se sentindo agora")
    return ", ".join(reasons) or "conteúdo relevante para sua jornada"


def content_justification(items: Sequence[ContentItem], ctx: RecommendationContext) -> str:
    if not items:
        return "Não encontramos conteúdos específicos agora, mas continue explorando!"
    reasons = []
    if ctx.current_stage:
        reasons.append(f"conteúdos para sua fase atual ({ctx.current_stage})")
    if ctx.recent_activity:
        reasons.append(f"baseado em seus interesses: {', '.join(ctx.recent_activity[:2])}")
    if not reasons:
        return "Selecionamos conteúdos relevantes para você"
    return f"Recomendamos {' e '.join(reasons)}"


def circle_score(circle: Circle, profile: UserProfile) -> float:
    name, description = _norm(circle.name), _norm(circle.description)
    score = CIRCLE_BASE
    if profile.stage and _norm(profile.stage) in name:
        score += CIRCLE_STAGE
    if _mentions(name, profile.concerns):
        score += CIRCLE_CONCERN
    if _mentions(description, profile.interests):
        score += CIRCLE_INTEREST
    return min(score, 1.0)


def circle_reason(circle: Circle, profile: UserProfile) -> str:
    name = _norm(circle.name)
    if profile.stage and _norm(profile.stage) in name:
        return "Outras mães na mesma fase que você"
    if _mentions(name, profile.concerns):
        return "Comunidade focada em suas preocupações"
    return "Espaço acolhedor para compartilhar experiências"


def habit_score(habit: Habit, profile: UserProfile) -> float:
    score = HABIT_BASE
    if _mentions(_norm(f"{habit.category} {habit.title}"), profile.goals):
        score += HABIT_GOAL
    score += HABIT_EASE[habit.difficulty]
    return min(score, 1.0)


def rerank_with_feedback(recommendations: Sequence[R], feedback: Iterable[Feedback]) -> List[R]:
    """Scale each ``match_score`` by the user's reaction, cap at 1.0 and re-sort.

    like x1.3, click x1.2, dislike x0.5, ignore x0.9. Ties keep their order.
    """
    actions: Dict[str, str] = {f.id: f.action for f in feedback}
    adjusted = []
    for rec in recommendations:
        factor = FEEDBACK_MULTIPLIERS.get(actions.get(rec.id, ""), 1.0)
        adjusted.append(rec.model_copy(update={"match_score": min(rec.match_score * factor, 1.0)}))
    return sorted(adjusted, key=lambda r: r.match_score, reverse=True)


def _top(items: Sequence[R], min_score: float, limit: int) -> List[R]:
    kept = [i for i in items if i.match_score >= min_score]
    return sorted(kept, key=lambda i: i.match_score, reverse=True)[:limit]


class RecommendationService:
    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        contents: Sequence[ContentItem] = CONTENT_CATALOG,
        circles: Sequence[Circle] = CIRCLE_CATALOG,
        habits: Sequence[Habit] = HABIT_CATALOG,
    ):
        self.store = store or get_config_store()
        self.contents = contents
        self.circles = circles
        self.habits = habits

    def find_habit(self, habit_id: str) -> Optional[Habit]:
        if habit_id == DEFAULT_HABIT.id:
            return DEFAULT_HABIT
        return next((h for h in self.habits if h.id == habit_id), None)

    def recommend_content(
        self,
        user_id: str,
        ctx: RecommendationContext,
        feedback: Iterable[Feedback] = (),
    ) -> ContentRecommendations:
        validate_user_id(user_id)
        config = self.store.current
        cfg = config.recommendations
        try:
            scored = [
                item.model_copy(update={"match_score": content_score(item, ctx, cfg), "reason": content_reason(item, ctx)})
                for item in self.contents
            ]
            feedback = list(feedback)
            if feedback:
                scored = rerank_with_feedback(scored, feedback)
            items = _top(scored, cfg.min_match_score, cfg.max_contents)
        except Exception as e:
            raise NathiaError("Erro ao recomendar conteúdo", "CONTENT_RECOMMENDATION_ERROR", {"error": str(e)}) from e

        logger.info("content_recommended", extra={"user_id": user_id, "count": len(items)})
        return ContentRecommendations(
            items=items,
            justification=content_justification(items, ctx),
            algorithm_version=config.version,
        )

    def recommend_circles(self, user_id: str, profile: UserProfile) -> CircleRecommendations:
        validate_user_id(user_id)
        cfg = self.store.current.recommendations
        try:
            scored = [
                c.model_copy(update={"match_score": circle_score(c, profile), "reason": circle_reason(c, profile)})
                for c in self.circles
            ]
            circles = _top(scored, cfg.min_match_score, cfg.max_circles)
        except Exception as e:
            raise NathiaError("Erro ao recomendar círculos", "CIRCLE_RECOMMENDATION_ERROR", {"error": str(e)}) from e
        return CircleRecommendations(circles=circles, match_scores={c.id: c.match_score for c in circles})

    def recommend_habits(self, user_id: str, profile: UserProfile) -> List[HabitRecommendation]:
        """Best-matching habits, one by default; a gentle pause habit when nothing fits."""
        validate_user_id(user_id)
        config = self.store.current
        cfg = config.recommendations
        try:
            scored = sorted(((habit_score(h, profile), h) for h in self.habits), key=lambda p: p[0], reverse=True)
            picked = [h for s, h in scored if s >= cfg.min_match_score][: cfg.max_habits]
        except Exception as e:
            raise NathiaError("Erro ao recomendar hábito", "HABIT_RECOMMENDATION_ERROR", {"error": str(e)}) from e

        if not picked:
            return [
                HabitRecommendation(
                    habit=DEFAULT_HABIT,
                    micro_goals=[starter_goal(DEFAULT_HABIT, config.habits)],
                    justification="Um hábito simples e essencial para começar a cuidar de você",
                )
            ]
        goals = " e ".join(profile.goals) or "bem-estar"
        return [
            HabitRecommendation(
                habit=h,
                micro_goals=[starter_goal(h, config.habits)],
                justification=f"Este hábito vai te ajudar a {h.description.lower()}, alinhado com seus objetivos de {goals}.",
            )
            for h in picked
        ]


_recommendation_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    global _recommendation_service
    if _recommendation_service is None:
        _recommendation_service = RecommendationService()
    return _recommendation_service
