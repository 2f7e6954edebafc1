from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from .chat import UserProfile


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ContentItem(BaseModel):
    id: str
    title: str
    type: str  # article | video | audio | checklist
    estimated_time: str = ""
    topics: Tuple[str, ...] = ()
    trending: bool = False
    match_score: float = 0.0
    reason: str = ""


class Circle(BaseModel):
    id: str
    name: str
    description: str
    match_score: float = 0.0
    reason: str = ""


class Habit(BaseModel):
    id: str
    title: str
    description: str
    category: str
    frequency: str = "daily"  # daily | weekly | custom
    difficulty: Difficulty = Difficulty.EASY


class RecommendationContext(BaseModel):
    recent_activity: List[str] = Field(default_factory=list)
    current_mood: Optional[str] = None
    current_stage: Optional[str] = None
    preferences: Optional[UserProfile] = None


class Feedback(BaseModel):
    id: str
    action: Literal["like", "dislike", "click", "ignore"]


class ContentRecommendations(BaseModel):
    items: List[ContentItem]
    justification: str
    algorithm_version: str


class CircleRecommendations(BaseModel):
    circles: List[Circle]
    match_scores: Dict[str, float] = Field(default_factory=dict)


class MicroGoal(BaseModel):
    title: str
    steps: List[str]
    deadline_days: int
    difficulty: Difficulty
    parent_goal: Optional[str] = None


class HabitRecommendation(BaseModel):
    habit: Habit
    micro_goals: List[MicroGoal]
    justification: str


class MotivationalMessage(BaseModel):
    message: str
    tone: Literal["encouraging", "celebrating", "gentle_reminder", "supportive"]
    # Messages never compare the mother with anyone else
    avoid_comparison: bool = True


class HabitProgress(BaseModel):
    user_id: str
    habit_id: str
    streak: int = 0
    completion: int = Field(0, ge=0, le=100)
    last_completed: Optional[datetime] = None
    total_completions: int = 0


class Barrier(BaseModel):
    barrier: str
    suggestion: str


class TimeSuggestion(BaseModel):
    time: str
    reason: str
