# ===== fitplanner/schemas.py =====
from pydantic import BaseModel, validator
from typing import List, Optional, Dict, Any
from datetime import date, datetime

from fitplanner.constants import LEVELS, PLATEAU_SESSIONS

PAIN_LEVELS = ["none", "mild", "moderate", "severe"]
FORM_LEVELS = ["poor", "fair", "good", "excellent"]


def _check_range(value, low, high, name):
    if value is not None and not (low <= value <= high):
        raise ValueError(f"{name} must be between {low} and {high}")
    return value


# ===== PREFERENCES =====

class InjuryRecord(BaseModel):
    body_part: str
    description: Optional[str] = None
    severity: str = "mild"  # mild, moderate, severe
    recovered: bool = False
    restrictions: List[str] = []


class PreferencesUpdate(BaseModel):
    fitness_goals: Optional[List[str]] = None
    experience_level: Optional[str] = None
    workout_frequency: Optional[int] = None
    workout_duration: Optional[int] = None  # minutes
    available_equipment: Optional[List[str]] = None
    preferred_workout_types: Optional[List[str]] = None
    injury_history: Optional[List[InjuryRecord]] = None
    dietary_restrictions: Optional[List[str]] = None
    food_preferences: Optional[List[str]] = None
    meal_frequency: Optional[int] = None
    cooking_skill: Optional[str] = None
    budget_range: Optional[str] = None
    time_constraints: Optional[Dict[str, Any]] = None
    motivation_level: Optional[int] = None
    social_preferences: Optional[Dict[str, bool]] = None

    @validator('experience_level')
    def validate_level(cls, v):
        if v is not None and v not in LEVELS:
            raise ValueError(f"experience_level must be one of {LEVELS}")
        return v

    @validator('workout_frequency')
    def validate_frequency(cls, v):
        return _check_range(v, 1, 7, "workout_frequency")

    @validator('motivation_level')
    def validate_motivation(cls, v):
        return _check_range(v, 1, 10, "motivation_level")

    @validator('meal_frequency')
    def validate_meal_frequency(cls, v):
        return _check_range(v, 1, 6, "meal_frequency")


class PreferencesResponse(BaseModel):
    user_id: int
    fitness_goals: List[str] = []
    experience_level: str
    workout_frequency: int
    workout_duration: int
    available_equipment: Optional[List[str]] = None
    preferred_workout_types: List[str] = []
    injury_history: List[Dict[str, Any]] = []
    dietary_restrictions: List[str] = []
    food_preferences: List[str] = []
    meal_frequency: int
    motivation_level: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== WORKOUT HISTORY =====

class WorkoutSetEntry(BaseModel):
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[float] = None  # minutes
    distance: Optional[float] = None
    rest_time: Optional[int] = None  # seconds
    rpe: Optional[int] = None
    completed: bool = True
    notes: Optional[str] = None

    @validator('rpe')
    def validate_rpe(cls, v):
        return _check_range(v, 1, 10, "rpe")


class WorkoutFeedback(BaseModel):
    enjoyment: Optional[int] = None
    difficulty: Optional[int] = None
    effectiveness: Optional[int] = None
    comments: Optional[str] = None
    would_repeat: Optional[bool] = None
    modifications: List[str] = []

    @validator('enjoyment', 'difficulty', 'effectiveness')
    def validate_scores(cls, v):
        return _check_range(v, 1, 10, "feedback score")


class WorkoutHistoryCreate(BaseModel):
    exercise_id: int
    workout_plan_id: Optional[int] = None
    session_id: Optional[int] = None
    sets: List[WorkoutSetEntry]
    difficulty: Optional[str] = None
    form: Optional[str] = None
    pain: str = "none"
    feedback: Optional[WorkoutFeedback] = None
    improvements: List[str] = []
    next_session_recommendations: List[str] = []

    @validator('pain')
    def validate_pain(cls, v):
        if v not in PAIN_LEVELS:
            raise ValueError(f"pain must be one of {PAIN_LEVELS}")
        return v

    @validator('form')
    def validate_form(cls, v):
        if v is not None and v not in FORM_LEVELS:
            raise ValueError(f"form must be one of {FORM_LEVELS}")
        return v


# ===== AI WORKOUT PLAN =====

class PlanConstraints(BaseModel):
    duration: Optional[int] = None  # weeks
    time_per_session: Optional[int] = None  # minutes

    @validator('duration')
    def validate_duration(cls, v):
        return _check_range(v, 1, 52, "duration")


class WorkoutPlanRequest(BaseModel):
    preferences: Optional[PreferencesUpdate] = None
    goals: List[str] = []
    constraints: PlanConstraints = PlanConstraints()


class PlanFeedback(BaseModel):
    plan_id: int
    rating: Optional[int] = None  # 1-5
    completion_rate: Optional[float] = None  # 0-1
    effectiveness: Optional[int] = None  # 1-10
    comments: Optional[str] = None

    @validator('rating')
    def validate_rating(cls, v):
        return _check_range(v, 1, 5, "rating")

    @validator('completion_rate')
    def validate_completion(cls, v):
        return _check_range(v, 0, 1, "completion_rate")


# ===== NUTRITION =====

class BodyComposition(BaseModel):
    weight: float  # kg
    height: float  # cm
    age: int
    gender: str = "other"
    body_fat_percentage: Optional[float] = None
    activity_level: str = "moderately_active"

    @validator('weight', 'height', 'age')
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v


class NutritionGoals(BaseModel):
    primary: str = "maintenance"  # weight_loss, muscle_gain, maintenance, performance, health
    target_weight: Optional[float] = None
    target_body_fat: Optional[float] = None
    timeline: Optional[int] = None  # weeks
    priority: Optional[str] = None


class NutritionRestrictions(BaseModel):
    dietary: List[str] = []  # vegetarian, vegan, gluten_free
    allergies: List[str] = []


class FoodPreferences(BaseModel):
    cuisine: List[str] = []
    liked: List[str] = []
    disliked: List[str] = []


class NutritionPreferences(BaseModel):
    meal_frequency: Optional[int] = None
    restrictions: NutritionRestrictions = NutritionRestrictions()
    food_preferences: FoodPreferences = FoodPreferences()


class NutritionRequest(BaseModel):
    body_composition: BodyComposition
    goals: NutritionGoals = NutritionGoals()
    preferences: NutritionPreferences = NutritionPreferences()


class FoodNutrition(BaseModel):
    calories: float
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class CustomFood(BaseModel):
    name: str
    nutrition: FoodNutrition


class TrackedMeal(BaseModel):
    meal_id: Optional[int] = None
    meal_type: Optional[str] = None
    time: Optional[str] = None  # HH:MM
    servings: float = 1
    custom_food: Optional[CustomFood] = None

    @validator('custom_food', always=True)
    def validate_reference(cls, v, values):
        if v is None and values.get('meal_id') is None:
            raise ValueError("meal_id or custom_food is required")
        return v


class TrackRequest(BaseModel):
    date: date
    meals: List[TrackedMeal]


# ===== ADAPTIVE LEARNING =====

class PlateauRecord(BaseModel):
    exercise_id: int
    best_weight: float
    history_id: Optional[int] = None
    exercise: Optional[str] = None
    duration: int = PLATEAU_SESSIONS
    resolved: bool = False
    solution: Optional[str] = None
    detected_at: Optional[str] = None  # ISO datetime

    @validator('best_weight')
    def validate_best_weight(cls, v):
        if v < 0:
            raise ValueError("best_weight must not be negative")
        return v


class InjuryInsight(BaseModel):
    body_part: str
    history_id: Optional[int] = None
    exercise_id: Optional[int] = None
    severity: str = "severe"
    recovery_time: Optional[int] = None  # hours
    prevention: List[str] = []
    recorded_at: Optional[str] = None  # ISO datetime

    @validator('severity')
    def validate_severity(cls, v):
        if v not in PAIN_LEVELS:
            raise ValueError(f"severity must be one of {PAIN_LEVELS}")
        return v


class PerformanceInsightsUpdate(BaseModel):
    strength_gains: Optional[List[Dict[str, Any]]] = None
    endurance_gains: Optional[List[Dict[str, Any]]] = None
    plateaus: Optional[List[PlateauRecord]] = None
    injuries: Optional[List[InjuryInsight]] = None


class AdaptiveLearningUpdate(BaseModel):
    workout_patterns: Optional[Dict[str, Any]] = None
    exercise_preferences: Optional[Dict[str, Any]] = None
    nutrition_patterns: Optional[Dict[str, Any]] = None
    performance_insights: Optional[PerformanceInsightsUpdate] = None
    recommendations: Optional[Dict[str, Any]] = None
    learning_rate: Optional[float] = None

    @validator('learning_rate')
    def validate_rate(cls, v):
        return _check_range(v, 0, 1, "learning_rate")
