# ===== fitplanner/workout_planner.py =====
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fitplanner.catalog import CatalogCache
from fitplanner.config import Settings, get_settings
from fitplanner.constants import (
    BASE_REST_SECONDS, BASE_SETS, BASE_WEIGHTS, CARDIO_REST_SECONDS, DAILY_PROGRESSION,
    DEFAULT_PLAN_WEEKS, DEFAULT_REPS, DEFAULT_WORKOUT_FREQUENCY, DELOAD_WEEK,
    EXERCISE_SELECTION_RATIO, EXPECTED_CALORIES_PLACEHOLDER, FOCUS_MUSCLES, FOCUS_ROTATION,
    GOAL_CATEGORIES, GOAL_NAMES, GOAL_REPS, GOAL_REPS_PRIORITY, LEVEL_NAMES,
    MAX_EXERCISES_PER_DAY, MAX_PROGRESSION_FACTOR, MAX_SETS, MIN_EXERCISES_PER_DAY,
    NO_EQUIPMENT, PERSONALIZATION_FACTORS, SECONDS_PER_REP, WEEKLY_PROGRESSION, level_ordinal
)
from fitplanner.fitness_analyzer import FitnessAnalysis, FitnessAnalyzer, pref_value
from fitplanner.models import AIWorkoutPlan
from fitplanner.repositories import NotFoundError, Repositories

logger = logging.getLogger(__name__)


# ===== PURE RULES =====

def progression_factor(week: int, day: int) -> float:
    """Progressive overload multiplier, never above 1.5"""
    weekly = 1 + (week - 1) * WEEKLY_PROGRESSION
    daily = 1 + (day - 1) * DAILY_PROGRESSION
    return min(MAX_PROGRESSION_FACTOR, weekly * daily)


def workout_focus(day: int) -> str:
    return FOCUS_ROTATION[(day - 1) % len(FOCUS_ROTATION)]


def calculate_confidence(analysis: FitnessAnalysis) -> float:
    confidence = 0.5
    if analysis.consistency > 0.7:
        confidence += 0.2
    if analysis.progression_rate > 0.1:
        confidence += 0.1
    if analysis.injury_risk < 0.3:
        confidence += 0.1
    if analysis.motivation_level > 7:
        confidence += 0.1
    return round(min(confidence, 0.95), 2)


def generate_recommendations(analysis: FitnessAnalysis) -> List[str]:
    recommendations = []
    if analysis.consistency < 0.5:
        recommendations.append("Train more often to improve your results")
    if analysis.injury_risk > 0.5:
        recommendations.append("Focus on technique and warm up thoroughly")
    if analysis.progression_rate < 0.05:
        recommendations.append("Try raising the intensity or changing exercises")
    return recommendations


def predict_performance(plan: Dict[str, Any], analysis: FitnessAnalysis) -> Dict[str, Any]:
    total_seconds = sum(day['estimated_duration'] for day in plan['exercises'])
    return {
        'expected_difficulty': min(10, max(1, analysis.motivation_level + 2)),
        'expected_duration': total_seconds / 60,
        'expected_calories': EXPECTED_CALORIES_PLACEHOLDER,
        'success_probability': min(0.9, 0.5 + analysis.consistency * 0.4)
    }


def personalization_factors() -> List[Dict[str, Any]]:
    return [{'factor': name, 'weight': weight, 'applied': True} for name, weight in PERSONALIZATION_FACTORS]


def requires_equipment(exercise: Dict[str, Any]) -> set:
    return set(exercise.get('equipment') or []) - NO_EQUIPMENT


def plan_to_dict(plan: AIWorkoutPlan) -> Dict[str, Any]:
    return {
        'id': plan.id,
        'user_id': plan.user_id,
        'ai_version': plan.ai_version,
        'generation_reason': plan.generation_reason,
        'algorithm': plan.algorithm,
        'goals': plan.goals,
        'plan': plan.plan,
        'personalization_factors': plan.personalization_factors,
        'adaptations': plan.adaptations,
        'performance_predictions': plan.performance_predictions,
        'feedback': plan.feedback,
        'is_active': plan.is_active,
        'expires_at': plan.expires_at.isoformat() if plan.expires_at else None,
        'created_at': plan.created_at.isoformat() if plan.created_at else None
    }


class AIWorkoutPlanner:
    """
    Rule-based workout plan synthesizer.

    Reads history and preferences through the repositories, the exercise
    catalog through the shared CatalogCache, and persists one versioned
    AIWorkoutPlan per call.
    """

    def __init__(self, repos: Repositories, catalog: CatalogCache,
                 settings: Optional[Settings] = None):
        self.repos = repos
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.analyzer = FitnessAnalyzer()

    def generate_personalized_workout(self, user_id: int,
                                      preferences_override: Optional[Dict[str, Any]] = None,
                                      goals: Optional[List[str]] = None,
                                      constraints: Optional[Dict[str, Any]] = None,
                                      now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        constraints = constraints or {}

        stored = self.repos.preferences.get(user_id)
        preferences = stored if stored is not None else preferences_override
        goals = list(goals or pref_value(preferences, 'fitness_goals', []) or ['general_fitness'])

        history = self.repos.history.recent(user_id, limit=self.settings.history_window)
        analysis = self.analyzer.analyze(history, preferences, now=now)

        logger.info(f"🧠 Generating AI plan for user {user_id}: goals={goals} level={analysis.experience_level}")

        adaptations: List[Dict[str, Any]] = []
        plan = self.create_workout_plan(preferences, goals, constraints, analysis,
                                        self._learned_ids(user_id), adaptations)

        previous = self.repos.plans.latest(user_id)
        reason = self.generation_reason(previous, goals, preferences)

        ai_plan = AIWorkoutPlan(
            user_id=user_id,
            ai_version=(previous.ai_version + 1) if previous else 1,
            generation_reason=reason,
            algorithm="rule_based",
            goals=goals,
            plan=plan,
            personalization_factors=personalization_factors(),
            adaptations=adaptations,
            performance_predictions=predict_performance(plan, analysis),
            expires_at=now + timedelta(days=self.settings.plan_validity_days)
        )
        ai_plan = self.repos.plans.create_active(ai_plan)

        confidence = calculate_confidence(analysis)
        logger.info(
            f"✅ AI plan v{ai_plan.ai_version} saved for user {user_id} "
            f"({reason}, {len(plan['exercises'])} days, confidence {confidence})"
        )

        return {
            'plan': plan,
            'ai_plan_id': ai_plan.id,
            'ai_version': ai_plan.ai_version,
            'generation_reason': reason,
            'confidence': confidence,
            'recommendations': generate_recommendations(analysis),
            'performance_predictions': ai_plan.performance_predictions
        }

    def _learned_ids(self, user_id: int) -> Dict[str, set]:
        """Favourite and avoided exercise ids kept by the adaptive profile"""
        learned = {'avoided': set(), 'preferred': set()}
        record = self.repos.learning.get(user_id)
        if record is None:
            return learned
        prefs = record.exercise_preferences or {}
        learned['avoided'] = {
            item.get('exercise_id') for item in prefs.get('avoided_exercises', [])
            if item.get('exercise_id') is not None
        }
        learned['preferred'] = {
            item.get('exercise_id') for item in prefs.get('favorite_exercises', [])
            if item.get('exercise_id') is not None
        }
        return learned

    def generation_reason(self, previous: Optional[AIWorkoutPlan], goals: List[str], preferences: Any) -> str:
        if previous is None:
            return "initial_creation"
        if set(previous.goals or []) != set(goals):
            return "goal_change"
        injuries = pref_value(preferences, 'injury_history', []) or []
        if any(not injury.get('recovered', False) for injury in injuries):
            return "injury_adaptation"
        return "progression"

    # ===== PLAN =====

    def create_workout_plan(self, preferences: Any, goals: List[str], constraints: Dict[str, Any],
                            analysis: FitnessAnalysis, learned: Dict[str, set],
                            adaptations: List[Dict[str, Any]]) -> Dict[str, Any]:
        frequency = pref_value(preferences, 'workout_frequency', DEFAULT_WORKOUT_FREQUENCY)
        duration = constraints.get('duration') or DEFAULT_PLAN_WEEKS
        time_per_session = constraints.get('time_per_session') or pref_value(preferences, 'workout_duration')
        level = analysis.experience_level
        primary_goal = goals[0] if goals else 'general_fitness'

        plan = {
            'name': f"{GOAL_NAMES.get(primary_goal, GOAL_NAMES['general_fitness'])} Plan - "
                    f"{LEVEL_NAMES.get(level, LEVEL_NAMES['beginner'])}",
            'description': f"Workout plan tailored to {', '.join(goals)} goals at {level} level",
            'duration': duration,
            'frequency': frequency,
            'difficulty': level_ordinal(level),
            'rest_days': 7 - frequency,
            'time_per_session': time_per_session,
            'progression': {
                'rate': min(analysis.progression_rate + 0.1, 0.3),
                'method': 'linear',
                'deload_week': DELOAD_WEEK
            },
            'exercises': []
        }

        # Selection only depends on the focus, so each rotation slot is computed once
        selections: Dict[str, List[Dict[str, Any]]] = {}
        for week in range(1, duration + 1):
            for day in range(1, frequency + 1):
                focus = workout_focus(day)
                if focus not in selections:
                    selections[focus] = self.select_exercises(
                        goals, analysis, preferences, focus, learned, adaptations
                    )
                plan['exercises'].append(
                    self.generate_workout_day(week, day, focus, selections[focus], goals, analysis, time_per_session)
                )

        return plan

    def generate_workout_day(self, week: int, day: int, focus: str, selection: List[Dict[str, Any]],
                             goals: List[str], analysis: FitnessAnalysis,
                             time_per_session: Optional[int]) -> Dict[str, Any]:
        exercises = [self.configure_exercise(ex, analysis, goals, week, day) for ex in selection]
        estimated = sum(ex['estimated_duration'] for ex in exercises)
        workout_day = {
            'week': week,
            'day': day,
            'name': f"Day {day}",
            'focus': focus,
            'exercises': exercises,
            'estimated_duration': estimated
        }
        if time_per_session and estimated > time_per_session * 60:
            workout_day['exceeds_time_budget'] = True
        return workout_day

    # ===== SELECTION =====

    def select_exercises(self, goals: List[str], analysis: FitnessAnalysis, preferences: Any,
                         focus: str, learned: Optional[Dict[str, set]] = None,
                         adaptations: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        learned = learned or {'avoided': set(), 'preferred': set()}
        avoided = analysis.avoided_ids | learned['avoided']
        preferred = analysis.preferred_ids | learned['preferred']

        exercises = self.catalog.exercises
        exercises = self.filter_by_equipment(exercises, pref_value(preferences, 'available_equipment'))
        exercises = self.filter_by_difficulty(exercises, analysis.experience_level)
        exercises = self.filter_by_goals(exercises, goals)
        exercises = [ex for ex in exercises if ex['id'] not in avoided]

        focused = self.filter_by_focus(exercises, focus)
        if not focused and exercises:
            logger.warning(f"⚠️ No exercise matches focus '{focus}', using the whole filtered catalog")
            if adaptations is not None:
                adaptations.append({
                    'type': 'focus_relaxed',
                    'reason': f"No exercise available for focus {focus}",
                    'original_value': focus,
                    'adapted_value': 'any',
                    'confidence': 0.5
                })
            focused = exercises

        # sorted() is stable: non-preferred keep catalog order
        focused = sorted(focused, key=lambda ex: 0 if ex['id'] in preferred else 1)

        count = min(MAX_EXERCISES_PER_DAY,
                    max(MIN_EXERCISES_PER_DAY, math.floor(len(focused) * EXERCISE_SELECTION_RATIO)))
        return focused[:count]

    def filter_by_equipment(self, exercises: List[Dict[str, Any]],
                            available: Optional[List[str]]) -> List[Dict[str, Any]]:
        if available is None:
            return exercises
        available_set = set(available)
        return [ex for ex in exercises if requires_equipment(ex) <= available_set]

    def filter_by_difficulty(self, exercises: List[Dict[str, Any]], level: str) -> List[Dict[str, Any]]:
        user_level = level_ordinal(level)
        return [ex for ex in exercises if abs(level_ordinal(ex.get('difficulty')) - user_level) <= 1]

    def filter_by_goals(self, exercises: List[Dict[str, Any]], goals: List[str]) -> List[Dict[str, Any]]:
        categories = set()
        for goal in goals:
            if goal in GOAL_CATEGORIES and GOAL_CATEGORIES[goal] is None:
                return exercises
            categories.update(GOAL_CATEGORIES.get(goal) or [])
        if not categories:
            return exercises
        return [ex for ex in exercises if ex.get('category') in categories]

    def filter_by_focus(self, exercises: List[Dict[str, Any]], focus: str) -> List[Dict[str, Any]]:
        muscles = set(FOCUS_MUSCLES.get(focus, []))
        if not muscles:
            return exercises
        return [ex for ex in exercises if muscles.intersection(ex.get('primary_muscles') or [])]

    # ===== CONFIGURATION =====

    def configure_exercise(self, exercise: Dict[str, Any], analysis: FitnessAnalysis,
                           goals: List[str], week: int, day: int) -> Dict[str, Any]:
        base_sets = self.calculate_base_sets(exercise, analysis)
        base_reps = self.calculate_base_reps(exercise, goals)
        base_weight = self.calculate_base_weight(exercise, analysis)
        rest_time = self.calculate_rest_time(exercise, analysis)

        factor = progression_factor(week, day)
        sets = max(1, math.floor(base_sets * factor))
        reps = max(1, math.floor(base_reps * factor))
        weight = max(0, math.floor(base_weight * factor))

        return {
            'exercise_id': exercise['id'],
            'name': exercise['name'],
            'sets': sets,
            'reps': reps,
            'weight': weight,
            'rest_time': rest_time,
            'notes': self.exercise_notes(exercise, analysis),
            'estimated_duration': sets * reps * SECONDS_PER_REP + sets * rest_time,
            'difficulty': max(1, min(5, level_ordinal(analysis.experience_level)
                                     + level_ordinal(exercise.get('difficulty')) - 1))
        }

    def calculate_base_sets(self, exercise: Dict[str, Any], analysis: FitnessAnalysis) -> int:
        sets = BASE_SETS.get(analysis.experience_level, BASE_SETS['beginner'])
        if exercise.get('category') == 'cardio':
            return 1
        if exercise.get('category') == 'strength':
            return min(sets + 1, MAX_SETS)
        return sets

    def calculate_base_reps(self, exercise: Dict[str, Any], goals: List[str]) -> int:
        reps = DEFAULT_REPS
        for goal in GOAL_REPS_PRIORITY:
            if goal in goals:
                reps = GOAL_REPS[goal]
                break
        if exercise.get('category') == 'cardio':
            return 1  # duration-based
        if exercise.get('category') == 'strength':
            return max(1, reps - 2)
        return reps

    def calculate_base_weight(self, exercise: Dict[str, Any], analysis: FitnessAnalysis) -> int:
        if exercise.get('category') == 'cardio' or not requires_equipment(exercise):
            return 0
        return BASE_WEIGHTS.get(analysis.strength_level, BASE_WEIGHTS['beginner'])

    def calculate_rest_time(self, exercise: Dict[str, Any], analysis: FitnessAnalysis) -> int:
        if exercise.get('category') == 'cardio':
            return CARDIO_REST_SECONDS
        return BASE_REST_SECONDS.get(analysis.experience_level, BASE_REST_SECONDS['beginner'])

    def exercise_notes(self, exercise: Dict[str, Any], analysis: FitnessAnalysis) -> str:
        notes = []
        if analysis.injury_risk > 0.5:
            notes.append("Focus on proper form and controlled movement")
        if analysis.experience_level == 'beginner':
            notes.append("Start with lighter weight to master form")
        if exercise.get('category') == 'cardio':
            notes.append("Maintain steady pace throughout")
        return ". ".join(notes)

    # ===== STORED PLANS =====

    def get_current_plan(self, user_id: int, now: Optional[datetime] = None) -> Optional[AIWorkoutPlan]:
        now = now or datetime.now(timezone.utc)
        self.repos.plans.expire_stale(user_id, now)
        return self.repos.plans.active(user_id)

    def record_plan_feedback(self, user_id: int, plan_id: int, feedback: Dict[str, Any]) -> AIWorkoutPlan:
        plan = self.repos.plans.get(user_id, plan_id)
        if plan is None:
            raise NotFoundError(f"AI plan {plan_id} not found for user {user_id}")

        plan.feedback = {
            'rating': feedback.get('rating'),
            'completion_rate': feedback.get('completion_rate'),
            'effectiveness': feedback.get('effectiveness'),
            'comments': feedback.get('comments'),
            'submitted_at': datetime.now(timezone.utc).isoformat()
        }
        plan = self.repos.plans.save(plan)
        logger.info(f"📝 Feedback stored for AI plan {plan_id} (user {user_id})")
        return plan
