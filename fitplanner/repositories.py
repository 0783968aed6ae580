# ===== fitplanner/repositories.py =====
"""
Explicit data access per entity.

The engine never queries models directly: every service receives a
Repositories bundle built from a SQLAlchemy session. Each repository only
exposes the reads and writes the engine needs.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session, joinedload

from fitplanner.models import (
    AdaptiveLearning, AIWorkoutPlan, Exercise, Meal, NutritionCalculator,
    NutritionLog, UserPreferences, WorkoutHistory
)

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Raised when a referenced record does not exist"""


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes, treat them as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ExerciseRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_active(self, equipment: Optional[Iterable[str]] = None,
                    difficulty: Optional[str] = None,
                    category: Optional[str] = None) -> List[Exercise]:
        query = self.db.query(Exercise).filter(Exercise.is_active.is_(True))
        if difficulty:
            query = query.filter(Exercise.difficulty == difficulty)
        if category:
            query = query.filter(Exercise.category == category)
        exercises = query.order_by(Exercise.id).all()

        if equipment is not None:
            available = set(equipment)
            exercises = [
                ex for ex in exercises
                if set(ex.equipment or []) - {"none", "bodyweight"} <= available
            ]
        return exercises

    def get(self, exercise_id: int) -> Optional[Exercise]:
        return self.db.query(Exercise).filter(Exercise.id == exercise_id).first()


class MealRepository:
    def __init__(self, db: Session):
        self.db = db

    def find(self, meal_type: str, min_calories: Optional[float] = None,
             max_calories: Optional[float] = None,
             excluded_tags: Optional[Iterable[str]] = None,
             cuisines: Optional[Iterable[str]] = None) -> List[Meal]:
        """Active public meals of one type, ordered by id"""
        query = self.db.query(Meal).filter(
            Meal.is_active.is_(True),
            Meal.is_public.is_(True),
            Meal.meal_type == meal_type
        )
        if min_calories is not None:
            query = query.filter(Meal.calories >= min_calories)
        if max_calories is not None:
            query = query.filter(Meal.calories <= max_calories)
        meals = query.order_by(Meal.id).all()

        # Tags are a JSON list, filtered here to stay portable across SQLite/PostgreSQL
        excluded = set(excluded_tags or [])
        if excluded:
            meals = [meal for meal in meals if not excluded.intersection(meal.tags or [])]
        wanted_cuisines = set(cuisines or [])
        if wanted_cuisines:
            meals = [meal for meal in meals if meal.cuisine in wanted_cuisines]
        return meals

    def get(self, meal_id: int) -> Optional[Meal]:
        return self.db.query(Meal).filter(Meal.id == meal_id).first()


class UserPreferencesRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[UserPreferences]:
        return self.db.query(UserPreferences).filter(UserPreferences.user_id == user_id).first()

    def upsert(self, user_id: int, data: Dict[str, Any]) -> UserPreferences:
        existing = self.get(user_id)
        if existing:
            for key, value in data.items():
                setattr(existing, key, value)
        else:
            existing = UserPreferences(user_id=user_id, **data)
            self.db.add(existing)
        self.db.commit()
        self.db.refresh(existing)
        return existing


class WorkoutHistoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def recent(self, user_id: int, limit: int = 50) -> List[WorkoutHistory]:
        """Newest first, with the catalog exercise loaded"""
        return self.db.query(WorkoutHistory).options(
            joinedload(WorkoutHistory.exercise)
        ).filter(
            WorkoutHistory.user_id == user_id
        ).order_by(
            WorkoutHistory.created_at.desc(), WorkoutHistory.id.desc()
        ).limit(limit).all()

    def since(self, user_id: int, start: Optional[datetime] = None) -> List[WorkoutHistory]:
        query = self.db.query(WorkoutHistory).filter(WorkoutHistory.user_id == user_id)
        if start is not None:
            query = query.filter(WorkoutHistory.created_at >= start)
        return query.order_by(WorkoutHistory.created_at.desc(), WorkoutHistory.id.desc()).all()

    def page(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[WorkoutHistory], int]:
        query = self.db.query(WorkoutHistory).filter(WorkoutHistory.user_id == user_id)
        total = query.count()
        items = query.order_by(
            WorkoutHistory.created_at.desc(), WorkoutHistory.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return items, total

    def add(self, entry: WorkoutHistory) -> WorkoutHistory:
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry


class AIWorkoutPlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def latest(self, user_id: int) -> Optional[AIWorkoutPlan]:
        return self.db.query(AIWorkoutPlan).filter(
            AIWorkoutPlan.user_id == user_id
        ).order_by(AIWorkoutPlan.ai_version.desc(), AIWorkoutPlan.id.desc()).first()

    def active(self, user_id: int) -> Optional[AIWorkoutPlan]:
        return self.db.query(AIWorkoutPlan).filter(
            AIWorkoutPlan.user_id == user_id,
            AIWorkoutPlan.is_active.is_(True)
        ).order_by(AIWorkoutPlan.id.desc()).first()

    def get(self, user_id: int, plan_id: int) -> Optional[AIWorkoutPlan]:
        return self.db.query(AIWorkoutPlan).filter(
            AIWorkoutPlan.id == plan_id,
            AIWorkoutPlan.user_id == user_id
        ).first()

    def all_for_user(self, user_id: int) -> List[AIWorkoutPlan]:
        return self.db.query(AIWorkoutPlan).filter(
            AIWorkoutPlan.user_id == user_id
        ).order_by(AIWorkoutPlan.id).all()

    def create_active(self, plan: AIWorkoutPlan) -> AIWorkoutPlan:
        """Deactivate the user's other plans then insert the new one.

        Not atomic across concurrent requests: the last writer wins.
        """
        self.db.query(AIWorkoutPlan).filter(
            AIWorkoutPlan.user_id == plan.user_id,
            AIWorkoutPlan.is_active.is_(True)
        ).update({AIWorkoutPlan.is_active: False}, synchronize_session=False)
        plan.is_active = True
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def expire_stale(self, user_id: int, now: datetime) -> int:
        stale = [
            plan for plan in self.db.query(AIWorkoutPlan).filter(
                AIWorkoutPlan.user_id == user_id,
                AIWorkoutPlan.is_active.is_(True)
            ).all()
            if plan.expires_at is not None and as_utc(plan.expires_at) <= now
        ]
        for plan in stale:
            plan.is_active = False
        if stale:
            self.db.commit()
            logger.info(f"Expired {len(stale)} AI plan(s) for user {user_id}")
        return len(stale)

    def save(self, plan: AIWorkoutPlan) -> AIWorkoutPlan:
        self.db.commit()
        self.db.refresh(plan)
        return plan


class NutritionCalculatorRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, user_id: int) -> Optional[NutritionCalculator]:
        return self.db.query(NutritionCalculator).filter(
            NutritionCalculator.user_id == user_id,
            NutritionCalculator.is_active.is_(True)
        ).first()

    def upsert(self, user_id: int, data: Dict[str, Any]) -> NutritionCalculator:
        existing = self.db.query(NutritionCalculator).filter(
            NutritionCalculator.user_id == user_id
        ).first()
        if existing:
            for key, value in data.items():
                setattr(existing, key, value)
        else:
            existing = NutritionCalculator(user_id=user_id, **data)
            self.db.add(existing)
        self.db.commit()
        self.db.refresh(existing)
        return existing


class NutritionLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def upsert(self, user_id: int, log_date: date, data: Dict[str, Any]) -> NutritionLog:
        existing = self.db.query(NutritionLog).filter(
            NutritionLog.user_id == user_id,
            NutritionLog.log_date == log_date
        ).first()
        if existing:
            for key, value in data.items():
                setattr(existing, key, value)
        else:
            existing = NutritionLog(user_id=user_id, log_date=log_date, **data)
            self.db.add(existing)
        self.db.commit()
        self.db.refresh(existing)
        return existing

    def between(self, user_id: int, start: date, end: date) -> List[NutritionLog]:
        return self.db.query(NutritionLog).filter(
            NutritionLog.user_id == user_id,
            NutritionLog.log_date >= start,
            NutritionLog.log_date <= end
        ).order_by(NutritionLog.log_date).all()

    def latest(self, user_id: int) -> Optional[NutritionLog]:
        return self.db.query(NutritionLog).filter(
            NutritionLog.user_id == user_id
        ).order_by(NutritionLog.log_date.desc()).first()

    def recent(self, user_id: int, limit: int = 30) -> List[NutritionLog]:
        return self.db.query(NutritionLog).filter(
            NutritionLog.user_id == user_id
        ).order_by(NutritionLog.log_date.desc()).limit(limit).all()


class AdaptiveLearningRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[AdaptiveLearning]:
        return self.db.query(AdaptiveLearning).filter(AdaptiveLearning.user_id == user_id).first()

    def get_or_create(self, user_id: int) -> AdaptiveLearning:
        record = self.get(user_id)
        if record is None:
            record = AdaptiveLearning(
                user_id=user_id,
                workout_patterns={},
                exercise_preferences={},
                nutrition_patterns={},
                performance_insights={},
                recommendations={}
            )
            self.db.add(record)
            self.db.flush()
        return record

    def save(self, record: AdaptiveLearning) -> AdaptiveLearning:
        self.db.commit()
        self.db.refresh(record)
        return record


@dataclass
class Repositories:
    exercises: ExerciseRepository
    meals: MealRepository
    preferences: UserPreferencesRepository
    history: WorkoutHistoryRepository
    plans: AIWorkoutPlanRepository
    nutrition: NutritionCalculatorRepository
    nutrition_logs: NutritionLogRepository
    learning: AdaptiveLearningRepository

    @classmethod
    def for_session(cls, db: Session) -> "Repositories":
        return cls(
            exercises=ExerciseRepository(db),
            meals=MealRepository(db),
            preferences=UserPreferencesRepository(db),
            history=WorkoutHistoryRepository(db),
            plans=AIWorkoutPlanRepository(db),
            nutrition=NutritionCalculatorRepository(db),
            nutrition_logs=NutritionLogRepository(db),
            learning=AdaptiveLearningRepository(db),
        )
