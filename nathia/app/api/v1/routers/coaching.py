from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ....core.errors import NotFoundError
from ....models.chat import UserProfile
from ....models.coaching import (
    Barrier,
    CircleRecommendations,
    ContentRecommendations,
    Feedback,
    HabitProgress,
    HabitRecommendation,
    MicroGoal,
    MotivationalMessage,
    RecommendationContext,
    TimeSuggestion,
)
from ....services.habits import (
    HabitService,
    create_micro_goal,
    gentle_reminder,
    get_habit_service,
    identify_barriers,
    reminder_due,
    suggest_times,
)
from ....services.recommendations import RecommendationService, get_recommendation_service

router = APIRouter(prefix="/coaching", tags=["coaching"])


class ContentRequest(BaseModel):
    user_id: str = Field(alias="userId")
    context: RecommendationContext = Field(default_factory=RecommendationContext)
    feedback: List[Feedback] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ProfileRequest(BaseModel):
    user_id: str = Field(alias="userId")
    profile: UserProfile = Field(default_factory=UserProfile)

    model_config = ConfigDict(populate_by_name=True)


class MicroGoalRequest(BaseModel):
    goal: str


class CompletionRequest(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ProgressOut(BaseModel):
    progress: HabitProgress
    message: MotivationalMessage
    barriers: List[Barrier] = Field(default_factory=list)
    reminder: Optional[str] = None


class HabitPlanOut(BaseModel):
    times: List[TimeSuggestion]
    reminder: str


@router.post("/recommendations/content", response_model=ContentRecommendations)
async def recommend_content(body: ContentRequest, service: RecommendationService = Depends(get_recommendation_service)):
    return service.recommend_content(body.user_id, body.context, body.feedback)


@router.post("/recommendations/circles", response_model=CircleRecommendations)
async def recommend_circles(body: ProfileRequest, service: RecommendationService = Depends(get_recommendation_service)):
    return service.recommend_circles(body.user_id, body.profile)


@router.post("/recommendations/habits", response_model=List[HabitRecommendation])
async def recommend_habits(body: ProfileRequest, service: RecommendationService = Depends(get_recommendation_service)):
    return service.recommend_habits(body.user_id, body.profile)


@router.post("/habits/micro-goals", response_model=MicroGoal)
async def micro_goal(body: MicroGoalRequest, habits: HabitService = Depends(get_habit_service)):
    return create_micro_goal(body.goal, habits.store.current.habits)


@router.get("/habits/{habit_id}/plan", response_model=HabitPlanOut)
async def habit_plan(habit_id: str, service: RecommendationService = Depends(get_recommendation_service)):
    habit = service.find_habit(habit_id)
    if habit is None:
        raise NotFoundError("Hábito não encontrado", {"habit_id": habit_id})
    return {"times": suggest_times(habit), "reminder": gentle_reminder(habit)}


def _progress_out(progress: HabitProgress, habits: HabitService, catalog: RecommendationService) -> dict:
    reminder = None
    habit = catalog.find_habit(progress.habit_id)
    if habit is not None and reminder_due(progress, habits.store.current.habits):
        reminder = gentle_reminder(habit)
    return {
        "progress": progress,
        "message": habits.coach(progress),
        "barriers": identify_barriers(progress),
        "reminder": reminder,
    }


@router.get("/habits/{habit_id}/progress", response_model=ProgressOut)
async def habit_progress(
    habit_id: str,
    user_id: str = Query(alias="userId", min_length=1),
    habits: HabitService = Depends(get_habit_service),
    catalog: RecommendationService = Depends(get_recommendation_service),
):
    return _progress_out(habits.track_progress(user_id, habit_id), habits, catalog)


@router.post("/habits/{habit_id}/completions", response_model=ProgressOut)
async def complete_habit(
    habit_id: str,
    body: CompletionRequest,
    habits: HabitService = Depends(get_habit_service),
    catalog: RecommendationService = Depends(get_recommendation_service),
):
    """Record today's completion and answer with a non-comparative message."""
    return _progress_out(habits.register_completion(body.user_id, habit_id), habits, catalog)
