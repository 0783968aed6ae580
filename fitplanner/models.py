# ===== fitplanner/models.py =====
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, ForeignKey, JSON, Boolean, Text, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from fitplanner.database import Base


def utcnow():
    return datetime.now(timezone.utc)


# ===== CATALOGS (read-only for the engine) =====

class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False)  # strength, hypertrophy, power, cardio, hiit, endurance, flexibility, mobility
    primary_muscles = Column(JSON, nullable=False, default=lambda: [])  # ["chest", "triceps"]
    equipment = Column(JSON, nullable=False, default=lambda: [])  # [] or ["none"] = no equipment
    difficulty = Column(String, nullable=False, default="beginner")
    is_active = Column(Boolean, default=True, index=True)


class Meal(Base):
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    meal_type = Column(String, nullable=False, index=True)  # breakfast, lunch, dinner, snack
    cuisine = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=lambda: [])

    # Nutrition per serving
    calories = Column(Float, nullable=False)
    protein = Column(Float, nullable=False, default=0.0)
    carbs = Column(Float, nullable=False, default=0.0)
    fat = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, default=True)
    is_public = Column(Boolean, default=True)


# ===== USER PROFILE =====

class UserPreferences(Base):
    """One record per user, written with upsert semantics"""
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True)

    fitness_goals = Column(JSON, nullable=False, default=lambda: [])
    experience_level = Column(String, default="beginner")
    workout_frequency = Column(Integer, default=3)  # 1-7
    workout_duration = Column(Integer, default=60)  # minutes
    available_equipment = Column(JSON, nullable=True)
    preferred_workout_types = Column(JSON, default=lambda: [])
    injury_history = Column(JSON, default=lambda: [])
    # Format: [{"body_part": "knee", "description": "...", "severity": "moderate",
    #           "recovered": false, "restrictions": ["no jumping"]}]
    dietary_restrictions = Column(JSON, default=lambda: [])
    food_preferences = Column(JSON, default=lambda: [])
    meal_frequency = Column(Integer, default=3)  # 1-6
    cooking_skill = Column(String, default="beginner")
    budget_range = Column(String, default="medium")
    time_constraints = Column(JSON, default=lambda: {})
    motivation_level = Column(Integer, default=5)  # 1-10
    social_preferences = Column(JSON, default=lambda: {"solo": True, "partner": False, "group": False})

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class WorkoutHistory(Base):
    """Append-only performance entry per (user, session, exercise)"""
    __tablename__ = "workout_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False)
    workout_plan_id = Column(Integer, nullable=True)  # external plan, reference only
    session_id = Column(Integer, nullable=True)  # external session, reference only
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False)

    performance = Column(JSON, nullable=False, default=lambda: {})
    # Format: {
    #   "sets": [{"reps": 10, "weight": 40, "duration": 0, "distance": null,
    #             "rest_time": 90, "rpe": 7, "completed": true, "notes": ""}],
    #   "total_volume": 1200, "max_weight": 40, "max_reps": 10, "average_rpe": 7,
    #   "difficulty": "moderate", "form": "good", "pain": "none"
    # }
    feedback = Column(JSON, nullable=True, default=lambda: {})
    # Format: {"enjoyment": 8, "difficulty": 6, "effectiveness": 7,
    #          "comments": "...", "would_repeat": true, "modifications": []}
    improvements = Column(JSON, default=lambda: [])
    next_session_recommendations = Column(JSON, default=lambda: [])

    created_at = Column(DateTime, default=utcnow)

    exercise = relationship("Exercise")

    __table_args__ = (
        Index('idx_history_user_created', 'user_id', 'created_at'),
        Index('idx_history_exercise_user', 'exercise_id', 'user_id'),
    )


class AIWorkoutPlan(Base):
    """Versioned generated plan, at most one is_active per user (best-effort)"""
    __tablename__ = "ai_workout_plans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False)
    ai_version = Column(Integer, default=1)
    generation_reason = Column(String(30), nullable=False, default="initial_creation")
    algorithm = Column(String(20), default="rule_based")

    goals = Column(JSON, default=lambda: [])
    plan = Column(JSON, nullable=False, default=lambda: {})
    personalization_factors = Column(JSON, default=lambda: [])
    # Format: [{"factor": "fitness_level", "weight": 0.3, "applied": true}]
    adaptations = Column(JSON, default=lambda: [])
    # Format: [{"type": "exercise_substitution", "reason": "...", "original_value": "...",
    #           "adapted_value": "...", "confidence": 0.8}]
    performance_predictions = Column(JSON, default=lambda: {})
    feedback = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_ai_plan_user_active', 'user_id', 'is_active'),
    )


class NutritionCalculator(Base):
    """Calculated nutrition targets and meal plan, one per user"""
    __tablename__ = "nutrition_calculators"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True)

    body_composition = Column(JSON, nullable=False)
    goals = Column(JSON, nullable=False)
    calculated_macros = Column(JSON, nullable=False)
    meal_plan = Column(JSON, nullable=False)
    restrictions = Column(JSON, default=lambda: {})
    preferences = Column(JSON, default=lambda: {})

    is_active = Column(Boolean, default=True)
    last_updated = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)


class NutritionLog(Base):
    """Tracked intake for one user and day"""
    __tablename__ = "nutrition_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False)
    log_date = Column(Date, nullable=False)

    meals = Column(JSON, default=lambda: [])
    totals = Column(JSON, nullable=False)  # {"calories": .., "protein": .., "carbs": .., "fat": ..}
    progress = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_nutrition_log_user_date', 'user_id', 'log_date', unique=True),
    )


class AdaptiveLearning(Base):
    """Standing per-user learning profile, refreshed on each significant event"""
    __tablename__ = "adaptive_learning"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True)

    workout_patterns = Column(JSON, default=lambda: {})
    # Format: {"preferred_days": [], "preferred_times": [], "average_duration": 0,
    #          "consistency": 0.3, "progression_rate": 0.1}
    exercise_preferences = Column(JSON, default=lambda: {})
    # Format: {"favorite_exercises": [{"exercise_id", "frequency", "last_performed", "average_rating"}],
    #          "avoided_exercises": [{"exercise_id", "reason", "alternative_id"}],
    #          "exercise_categories": {"strength": {"preference": 0.5, "proficiency": 0.25}, ...}}
    nutrition_patterns = Column(JSON, default=lambda: {})
    performance_insights = Column(JSON, default=lambda: {})
    # Format: {"strength_gains": [], "endurance_gains": [], "plateaus": [], "injuries": []}
    recommendations = Column(JSON, default=lambda: {})

    learning_rate = Column(Float, default=0.1)
    last_analysis = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)
