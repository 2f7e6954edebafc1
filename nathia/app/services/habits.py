"""Habit coaching: micro-goals, motivational messages and progress tracking.

Messages are gentle and never comparative. Progress lives in the
``habit_progress`` table, one row per (user, habit).
"""
import logging
import random
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from ..core.config import ConfigStore, HabitConfig, get_config_store
from ..core.errors import NathiaError, ValidationError
from ..db.base import SessionLocal
from ..models.coaching import (
    Barrier,
    Difficulty,
    Habit,
    HabitProgress,
    MicroGoal,
    MotivationalMessage,
    TimeSuggestion,
)
from ..models.sql_models import HabitProgressRecord

logger = logging.getLogger(__name__)

Choose = Callable[[Sequence[str]], str]

MIN_GOAL_LENGTH = 5
MAX_GOAL_LENGTH = 500
COMPLETION_STEP = 5

EASY_HINTS = ("começar", "tentar", "explorar", "5 minutos", "pequeno")
HARD_HINTS = ("transformar", "completamente", "sempre", "todo dia", "radical")

PRACTICAL_STEPS = (
    "Escolher um momento específico do dia",
    "Preparar o que for necessário com antecedência",
    "Começar pequeno, com 5-10 minutos",
    "Anotar como se sentiu depois",
    "Celebrar cada vez que conseguir, sem cobrança",
)

EXTRA_DAYS = {Difficulty.EASY: 0, Difficulty.MEDIUM: 7, Difficulty.HARD: 14}

GENTLE_REMINDERS = (
    "Sem pressão, mas lembrei de você hoje. Que tal retomar quando der?",
    "Tudo bem se você pausou. Começar de novo também é parte do processo.",
    "Seu objetivo ainda está aqui te esperando, sem julgamento. Volte quando quiser.",
    "Dias difíceis acontecem. O importante é não desistir de si mesma.",
)

SUPPORTIVE = (
    "Você está indo bem. Continue cuidando de você.",
    "Cada pequeno passo te leva mais perto do que você quer.",
    "Orgulhe-se de estar tentando. Isso já é muito.",
    "Você merece esse tempo pra você.",
)

# (category needles, suggestions); first match wins
TIME_SLOTS = (
    (("mental", "journal"), (("21:00", "Momento tranquilo antes de dormir"), ("07:00", "Começar o dia com clareza mental"))),
    (("fisica", "exercicio"), (("06:30", "Energia da manhã"), ("10:00", "Após rotina matinal"))),
    (("autocuidado",), (("14:00", "Pausa no meio do dia"), ("20:00", "Momento de relaxamento noturno"))),
)
DEFAULT_TIME_SLOTS = (("09:00", "Início do dia"), ("15:00", "Tarde"))


def _utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def days_since(then: datetime, now: Optional[datetime] = None) -> int:
    """Calendar days (UTC) between two instants."""
    now = now or datetime.now(timezone.utc)
    return (_utc(now).date() - _utc(then).date()).days


def validate_goal(goal: str) -> str:
    if not isinstance(goal, str) or not goal.strip():
        raise ValidationError("Objetivo é obrigatório")
    goal = goal.strip()
    if len(goal) < MIN_GOAL_LENGTH:
        raise ValidationError(f"Objetivo muito curto (mínimo {MIN_GOAL_LENGTH} caracteres)")
    if len(goal) > MAX_GOAL_LENGTH:
        raise ValidationError(f"Objetivo muito longo (máximo {MAX_GOAL_LENGTH} caracteres)")
    return goal


def infer_difficulty(goal: str) -> Difficulty:
    lower = goal.lower()
    if any(h in lower for h in EASY_HINTS):
        return Difficulty.EASY
    if any(h in lower for h in HARD_HINTS):
        return Difficulty.HARD
    return Difficulty.MEDIUM


WANT = re.compile(r"^\s*(?:eu\s+)?quero\s+", re.IGNORECASE)


def micro_goal_title(goal: str) -> str:
    """Turns "quero caminhar mais" into "Começar a caminhar mais"."""
    if WANT.match(goal):
        return "Começar a " + WANT.sub("", goal, count=1)
    return f"Primeiros passos: {goal.lower()}"


def create_micro_goal(goal: str, cfg: Optional[HabitConfig] = None) -> MicroGoal:
    """Break a broad goal into one achievable micro-goal."""
    goal = validate_goal(goal)
    cfg = cfg or get_config_store().current.habits
    difficulty = infer_difficulty(goal)
    return MicroGoal(
        title=micro_goal_title(goal),
        steps=list(PRACTICAL_STEPS[: cfg.micro_goals_count]),
        deadline_days=cfg.default_deadline_days + EXTRA_DAYS[difficulty],
        difficulty=difficulty,
        parent_goal=goal,
    )


def starter_goal(habit: Habit, cfg: Optional[HabitConfig] = None) -> MicroGoal:
    cfg = cfg or get_config_store().current.habits
    return MicroGoal(
        title=f"Começar {habit.title.lower()}",
        steps=["Definir horário do dia", "Preparar material necessário", "Fazer primeira tentativa"],
        deadline_days=cfg.default_deadline_days,
        difficulty=habit.difficulty,
    )


def motivational_message(
    progress: HabitProgress,
    cfg: Optional[HabitConfig] = None,
    now: Optional[datetime] = None,
    choose: Choose = random.choice,
) -> MotivationalMessage:
    """Celebrate streaks, encourage progress, or nudge gently; never compare."""
    cfg = cfg or get_config_store().current.habits
    if progress.streak >= cfg.celebration_streak:
        streak = progress.streak
        options = [
            f"{streak} dias seguidos! Você está construindo um hábito de verdade.",
            f"Olha só! {streak} dias de consistência. Cada dia conta.",
            f"{streak} dias! Percebe como está ficando mais fácil?",
            f"Incrível! {streak} dias mostrando que você é capaz.",
        ]
        if progress.total_completions >= 20:
            options.append(f"{progress.total_completions} vezes que você priorizou esse objetivo. Isso é inspirador!")
        return MotivationalMessage(message=choose(options), tone="celebrating")
    if progress.completion >= 50:
        return MotivationalMessage(
            message=f"Você já está {progress.completion}% no caminho. Continue no seu ritmo, cada passo importa.",
            tone="encouraging",
        )
    if progress.last_completed is None or days_since(progress.last_completed, now) > 3:
        return MotivationalMessage(message=choose(GENTLE_REMINDERS), tone="gentle_reminder")
    return MotivationalMessage(message=choose(SUPPORTIVE), tone="supportive")


def gentle_reminder(habit: Habit, choose: Choose = random.choice) -> str:
    name = habit.title.lower()
    return choose(
        [
            f"Oi! Que tal reservar alguns minutos para {name} hoje? Não precisa ser perfeito, só começar já é ótimo.",
            f"Lembrete carinhoso: {habit.title} pode fazer bem pra você hoje. Mas se não der, tudo bem também!",
            f"Ei! Pensei em você e no seu objetivo de {name}. Que tal tentar hoje, no seu tempo?",
            f"Sem pressão, mas {name} pode ser aquele momento de cuidado que você merece hoje.",
        ]
    )


def reminder_due(progress: HabitProgress, cfg: Optional[HabitConfig] = None, now: Optional[datetime] = None) -> bool:
    """True on the configured days after the last completion."""
    if progress.last_completed is None:
        return False
    cfg = cfg or get_config_store().current.habits
    return days_since(progress.last_completed, now) in cfg.reminder_days


def suggest_times(habit: Habit) -> List[TimeSuggestion]:
    category = habit.category.lower()
    slots = DEFAULT_TIME_SLOTS
    for needles, options in TIME_SLOTS:
        if any(n in category for n in needles):
            slots = options
            break
    return [TimeSuggestion(time=t, reason=r) for t, r in slots]


def identify_barriers(progress: HabitProgress, now: Optional[datetime] = None) -> List[Barrier]:
    barriers: List[Barrier] = []
    if progress.streak < 2 and progress.total_completions > 5:
        barriers.append(
            Barrier(
                barrier="Dificuldade de manter consistência",
                suggestion="Que tal escolher um horário fixo e criar um lembrete?",
            )
        )
    if progress.completion < 30:
        barriers.append(
            Barrier(
                barrier="Objetivo pode estar muito ambicioso",
                suggestion="Vamos simplificar? Comece com versões menores desse hábito.",
            )
        )
    if progress.last_completed is not None and days_since(progress.last_completed, now) > 7:
        barriers.append(
            Barrier(
                barrier="Hábito pode ter perdido prioridade",
                suggestion="Esse hábito ainda faz sentido pra você agora? Podemos ajustar.",
            )
        )
    return barriers


def next_streak(progress: HabitProgress, now: datetime) -> int:
    if progress.last_completed is None:
        return 1
    gap = days_since(progress.last_completed, now)
    if gap == 0:
        # Same day: no double count
        return max(progress.streak, 1)
    if gap == 1:
        return progress.streak + 1
    return 1


def _progress_of(row: HabitProgressRecord) -> HabitProgress:
    return HabitProgress(
        user_id=row.user_id,
        habit_id=row.habit_id,
        streak=row.streak,
        completion=row.completion,
        last_completed=_utc(row.last_completed) if row.last_completed else None,
        total_completions=row.total_completions,
    )


def _validate_ids(user_id: str, habit_id: str) -> None:
    if not user_id:
        raise ValidationError("user_id é obrigatório")
    if not habit_id:
        raise ValidationError("habit_id é obrigatório")


class HabitService:
    def __init__(self, store: Optional[ConfigStore] = None):
        self.store = store or get_config_store()

    def track_progress(self, user_id: str, habit_id: str) -> HabitProgress:
        _validate_ids(user_id, habit_id)
        db = SessionLocal()
        try:
            row = (
                db.query(HabitProgressRecord)
                .filter(HabitProgressRecord.user_id == user_id, HabitProgressRecord.habit_id == habit_id)
                .first()
            )
            if row is None:
                return HabitProgress(user_id=user_id, habit_id=habit_id)
            return _progress_of(row)
        except Exception as e:
            logger.exception("Error loading habit progress")
            raise NathiaError("Erro ao rastrear progresso", "TRACK_PROGRESS_ERROR", {"error": str(e)}) from e
        finally:
            db.close()
            SessionLocal.remove()

    def register_completion(self, user_id: str, habit_id: str, now: Optional[datetime] = None) -> HabitProgress:
        """Record one completion: streak, completion (+5%, capped at 100) and total."""
        _validate_ids(user_id, habit_id)
        now = now or datetime.now(timezone.utc)
        db = SessionLocal()
        try:
            row = (
                db.query(HabitProgressRecord)
                .filter(HabitProgressRecord.user_id == user_id, HabitProgressRecord.habit_id == habit_id)
                .first()
            )
            if row is None:
                row = HabitProgressRecord(user_id=user_id, habit_id=habit_id, streak=0, completion=0, total_completions=0)
                db.add(row)
            current = _progress_of(row)
            row.streak = next_streak(current, now)
            row.completion = min(current.completion + COMPLETION_STEP, 100)
            row.total_completions = current.total_completions + 1
            row.last_completed = now
            db.commit()
            db.refresh(row)
            progress = _progress_of(row)
        except Exception as e:
            db.rollback()
            logger.exception("Error saving habit completion")
            raise NathiaError("Erro ao registrar completude", "REGISTER_COMPLETION_ERROR", {"error": str(e)}) from e
        finally:
            db.close()
            SessionLocal.remove()

        logger.info("habit_completed", extra={"user_id": user_id, "habit_id": habit_id, "streak": progress.streak})
        return progress

    def coach(self, progress: HabitProgress, now: Optional[datetime] = None) -> MotivationalMessage:
        return motivational_message(progress, self.store.current.habits, now)


_habit_service: Optional[HabitService] = None


def get_habit_service() -> HabitService:
    global _habit_service
    if _habit_service is None:
        _habit_service = HabitService()
    return _habit_service
