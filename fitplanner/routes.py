# ===== fitplanner/routes.py =====
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging

from fitplanner.adaptive_learning import AdaptiveLearningTracker, learning_to_dict
from fitplanner.analytics import build_analytics
from fitplanner.catalog import CatalogCache
from fitplanner.database import get_db, get_session_factory
from fitplanner.fitness_analyzer import summarize_sets
from fitplanner.models import WorkoutHistory
from fitplanner.nutrition_calculator import NutritionCalculatorService
from fitplanner.repositories import NotFoundError, Repositories
from fitplanner.schemas import (
    AdaptiveLearningUpdate, NutritionRequest, PlanFeedback, PreferencesResponse,
    PreferencesUpdate, TrackRequest, WorkoutHistoryCreate, WorkoutPlanRequest
)
from fitplanner.workout_planner import AIWorkoutPlanner, plan_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


def get_catalog(request: Request) -> CatalogCache:
    return request.app.state.catalog


def get_repos(db: Session = Depends(get_db)) -> Repositories:
    return Repositories.for_session(db)


def history_to_dict(entry: WorkoutHistory) -> dict:
    return {
        'id': entry.id,
        'user_id': entry.user_id,
        'workout_plan_id': entry.workout_plan_id,
        'session_id': entry.session_id,
        'exercise_id': entry.exercise_id,
        'performance': entry.performance,
        'feedback': entry.feedback,
        'improvements': entry.improvements,
        'next_session_recommendations': entry.next_session_recommendations,
        'created_at': entry.created_at.isoformat() if entry.created_at else None
    }


def refresh_adaptive_profile(session_factory, catalog: Optional[CatalogCache], user_id: int, source: str):
    """Background task: runs after the response with its own session"""
    db = session_factory()
    try:
        tracker = AdaptiveLearningTracker(Repositories.for_session(db), catalog)
        if source == "nutrition":
            tracker.update_from_nutrition(user_id)
        else:
            tracker.update_from_workouts(user_id)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Adaptive update ({source}) failed for user {user_id}: {str(e)}", exc_info=True)
    finally:
        db.close()


# ===== PREFERENCES =====

@router.get("/api/users/{user_id}/preferences", response_model=PreferencesResponse)
async def get_preferences(user_id: int, repos: Repositories = Depends(get_repos)):
    preferences = repos.preferences.get(user_id)
    if not preferences:
        raise HTTPException(status_code=404, detail="Preferences not found")
    return preferences


@router.post("/api/users/{user_id}/preferences", response_model=PreferencesResponse)
async def update_preferences(user_id: int, request: PreferencesUpdate,
                             repos: Repositories = Depends(get_repos)):
    data = request.dict(exclude_none=True)
    preferences = repos.preferences.upsert(user_id, data)
    logger.info(f"✅ Preferences saved for user {user_id}: {sorted(data)}")
    return preferences


# ===== AI WORKOUT PLAN =====

@router.post("/api/users/{user_id}/ai-workout-plan")
async def generate_ai_workout_plan(user_id: int, request: WorkoutPlanRequest,
                                   repos: Repositories = Depends(get_repos),
                                   catalog: CatalogCache = Depends(get_catalog)):
    planner = AIWorkoutPlanner(repos, catalog)
    override = request.preferences.dict(exclude_none=True) if request.preferences else None
    try:
        return planner.generate_personalized_workout(
            user_id, override, request.goals, request.constraints.dict(exclude_none=True)
        )
    except Exception as e:
        logger.error(f"❌ AI plan generation failed for user {user_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="AI workout plan generation failed")


@router.get("/api/users/{user_id}/ai-workout-plan/current")
async def get_current_ai_plan(user_id: int, repos: Repositories = Depends(get_repos),
                              catalog: CatalogCache = Depends(get_catalog)):
    plan = AIWorkoutPlanner(repos, catalog).get_current_plan(user_id)
    if not plan:
        raise HTTPException(status_code=404, detail="No active AI workout plan")
    return plan_to_dict(plan)


@router.post("/api/users/{user_id}/ai-workout-plan/feedback")
async def submit_ai_plan_feedback(user_id: int, request: PlanFeedback,
                                  repos: Repositories = Depends(get_repos),
                                  catalog: CatalogCache = Depends(get_catalog)):
    try:
        plan = AIWorkoutPlanner(repos, catalog).record_plan_feedback(
            user_id, request.plan_id, request.dict(exclude={'plan_id'})
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Feedback recorded", "plan": plan_to_dict(plan)}


# ===== NUTRITION =====

@router.post("/api/users/{user_id}/nutrition-calculator")
async def calculate_nutrition(user_id: int, request: NutritionRequest,
                              repos: Repositories = Depends(get_repos)):
    service = NutritionCalculatorService(repos)
    try:
        return service.calculate_personalized_nutrition(
            user_id,
            request.body_composition.dict(),
            request.goals.dict(),
            request.preferences.dict(exclude_none=True)
        )
    except Exception as e:
        logger.error(f"❌ Nutrition calculation failed for user {user_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Nutrition calculation failed")


@router.get("/api/users/{user_id}/nutrition-calculator/current")
async def get_current_nutrition(user_id: int, repos: Repositories = Depends(get_repos)):
    record = repos.nutrition.get_active(user_id)
    if not record:
        raise HTTPException(status_code=404, detail="Nutrition calculator not found")
    return {
        'user_id': record.user_id,
        'body_composition': record.body_composition,
        'goals': record.goals,
        'calculated_macros': record.calculated_macros,
        'meal_plan': record.meal_plan,
        'restrictions': record.restrictions,
        'preferences': record.preferences,
        'last_updated': record.last_updated.isoformat() if record.last_updated else None
    }


@router.get("/api/users/{user_id}/nutrition-calculator/recommendations")
async def get_nutrition_recommendations(user_id: int, repos: Repositories = Depends(get_repos)):
    return NutritionCalculatorService(repos).get_nutrition_recommendations(user_id)


@router.post("/api/users/{user_id}/nutrition-calculator/track")
async def track_nutrition(user_id: int, request: TrackRequest, background_tasks: BackgroundTasks,
                          repos: Repositories = Depends(get_repos),
                          session_factory=Depends(get_session_factory),
                          catalog: CatalogCache = Depends(get_catalog)):
    meals = [meal.dict(exclude_none=True) for meal in request.meals]
    try:
        progress = NutritionCalculatorService(repos).track_nutrition_progress(user_id, request.date, meals)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    background_tasks.add_task(refresh_adaptive_profile, session_factory, catalog, user_id, "nutrition")
    return {"date": request.date.isoformat(), "progress": progress}


@router.get("/api/users/{user_id}/nutrition-calculator/insights")
async def get_nutrition_insights(user_id: int, period: str = Query("week", pattern="^(week|month)$"),
                                 repos: Repositories = Depends(get_repos)):
    return NutritionCalculatorService(repos).get_nutrition_insights(user_id, period)


# ===== WORKOUT HISTORY =====

@router.post("/api/users/{user_id}/workout-history")
async def record_workout_history(user_id: int, request: WorkoutHistoryCreate,
                                 background_tasks: BackgroundTasks,
                                 repos: Repositories = Depends(get_repos),
                                 session_factory=Depends(get_session_factory),
                                 catalog: CatalogCache = Depends(get_catalog)):
    if not repos.exercises.get(request.exercise_id):
        raise HTTPException(status_code=404, detail="Exercise not found")

    sets = [s.dict() for s in request.sets]
    performance = {
        'sets': sets,
        **summarize_sets(sets),
        'difficulty': request.difficulty,
        'form': request.form,
        'pain': request.pain
    }
    entry = repos.history.add(WorkoutHistory(
        user_id=user_id,
        workout_plan_id=request.workout_plan_id,
        session_id=request.session_id,
        exercise_id=request.exercise_id,
        performance=performance,
        feedback=request.feedback.dict() if request.feedback else {},
        improvements=request.improvements,
        next_session_recommendations=request.next_session_recommendations
    ))
    logger.info(f"🏋️ Workout history {entry.id} stored for user {user_id} (exercise {request.exercise_id})")

    background_tasks.add_task(refresh_adaptive_profile, session_factory, catalog, user_id, "workouts")
    return history_to_dict(entry)


@router.get("/api/users/{user_id}/workout-history")
async def list_workout_history(user_id: int, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                               repos: Repositories = Depends(get_repos)):
    items, total = repos.history.page(user_id, page, limit)
    return {
        "items": [history_to_dict(item) for item in items],
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit
    }


# ===== ADAPTIVE LEARNING =====

@router.get("/api/users/{user_id}/adaptive-learning")
async def get_adaptive_learning(user_id: int, repos: Repositories = Depends(get_repos),
                                catalog: CatalogCache = Depends(get_catalog)):
    try:
        record = AdaptiveLearningTracker(repos, catalog).get(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return learning_to_dict(record)


@router.post("/api/users/{user_id}/adaptive-learning/update")
async def update_adaptive_learning(user_id: int, request: AdaptiveLearningUpdate,
                                   repos: Repositories = Depends(get_repos),
                                   catalog: CatalogCache = Depends(get_catalog)):
    record = AdaptiveLearningTracker(repos, catalog).apply_update(user_id, request.dict(exclude_none=True))
    return learning_to_dict(record)


# ===== ANALYTICS & CATALOG =====

@router.get("/api/users/{user_id}/analytics")
async def get_analytics(user_id: int, period: str = Query("month", pattern="^(week|month|all)$"),
                        repos: Repositories = Depends(get_repos)):
    return build_analytics(repos, user_id, period)


@router.post("/api/catalog/refresh")
async def refresh_catalog(db: Session = Depends(get_db), catalog: CatalogCache = Depends(get_catalog)):
    count = catalog.refresh(db)
    return {"exercises": count, "loaded_at": catalog.loaded_at.isoformat()}
