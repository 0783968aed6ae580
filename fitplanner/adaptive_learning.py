# ===== fitplanner/adaptive_learning.py =====
"""
Standing per-user learning profile.

Refreshed after each tracked session (update_from_workouts) or logged
nutrition day (update_from_nutrition). Lists are merged by key so that
records older than the history window are kept.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm.attributes import flag_modified

from fitplanner.catalog import CatalogCache, exercise_to_dict
from fitplanner.config import Settings, get_settings
from fitplanner.constants import (
    CATEGORY_GROUPS, DEFAULT_LEARNING_RATE, INJURY_PREVENTION, INTENSITY_BY_RECOVERY,
    LIST_MERGE_KEYS, MEAL_TIME_WINDOW_MINUTES, NEXT_WORKOUT_CATEGORIES, NUTRITION_LOG_WINDOW,
    PLATEAU_SESSIONS, PREFERRED_DAYS_LIMIT, RECOMMENDED_EXERCISES_LIMIT, REST_INJURY_RISK,
    TIME_OF_DAY_BOUNDS, TRACKED_CATEGORIES, WEEKDAYS
)
from fitplanner.fitness_analyzer import (
    FitnessAnalysis, FitnessAnalyzer, entry_max_weight, entry_total_duration,
    is_cardio_entry, is_strength_entry, pref_value
)
from fitplanner.models import AdaptiveLearning
from fitplanner.repositories import NotFoundError, Repositories, as_utc

logger = logging.getLogger(__name__)

JSON_SECTIONS = (
    'workout_patterns', 'exercise_preferences', 'nutrition_patterns',
    'performance_insights', 'recommendations'
)


# ===== MERGING =====

def merge_values(existing: Any, incoming: Any, field: Optional[str] = None) -> Any:
    """
    Deep merge: dicts per key, record lists per LIST_MERGE_KEYS key, other lists as a union.
    Records without their key are appended unless an identical one is stored.
    """
    if isinstance(existing, dict) and isinstance(incoming, dict):
        merged = dict(existing)
        for key, value in incoming.items():
            merged[key] = merge_values(existing.get(key), value, key)
        return merged

    if isinstance(existing, list) and isinstance(incoming, list):
        key = LIST_MERGE_KEYS.get(field)
        if key is None or not all(isinstance(item, dict) for item in existing + incoming):
            merged = list(existing)
            for item in incoming:
                if item not in merged:
                    merged.append(item)
            return merged

        merged = [dict(item) for item in existing]
        # Stored duplicates are kept, incoming values update the latest one
        position = {item[key]: i for i, item in enumerate(merged) if item.get(key) is not None}
        for item in incoming:
            value = item.get(key)
            if value is not None and value in position:
                merged[position[value]].update(item)
            elif value is None and item in merged:
                continue
            else:
                merged.append(dict(item))
                if value is not None:
                    position[value] = len(merged) - 1
        return merged

    return incoming


def learning_to_dict(record: AdaptiveLearning) -> Dict[str, Any]:
    return {
        'user_id': record.user_id,
        'workout_patterns': record.workout_patterns or {},
        'exercise_preferences': record.exercise_preferences or {},
        'nutrition_patterns': record.nutrition_patterns or {},
        'performance_insights': record.performance_insights or {},
        'recommendations': record.recommendations or {},
        'learning_rate': record.learning_rate,
        'last_analysis': record.last_analysis.isoformat() if record.last_analysis else None
    }


# ===== SMALL HELPERS =====

def time_of_day(hour: int) -> str:
    for upper, label in TIME_OF_DAY_BOUNDS:
        if hour < upper:
            return label
    return "evening"


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def _minutes(clock: str) -> Optional[int]:
    try:
        hours, minutes = clock.split(":")[:2]
        return int(hours) * 60 + int(minutes)
    except (AttributeError, ValueError):
        return None


def _clock(minutes: float) -> str:
    minutes = int(round(minutes))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _category_group(entry) -> Optional[str]:
    exercise = getattr(entry, 'exercise', None)
    if exercise is None:
        return None
    return CATEGORY_GROUPS.get(exercise.category)


def _blend(stored: Optional[float], observed: float, rate: float) -> float:
    if stored is None:
        return round(observed, 3)
    return round(stored + rate * (observed - stored), 3)


class AdaptiveLearningTracker:
    def __init__(self, repos: Repositories, catalog: Optional[CatalogCache] = None,
                 settings: Optional[Settings] = None):
        self.repos = repos
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.analyzer = FitnessAnalyzer()

    def get(self, user_id: int) -> AdaptiveLearning:
        record = self.repos.learning.get(user_id)
        if record is None:
            raise NotFoundError(f"No adaptive learning profile for user {user_id}")
        return record

    def _catalog_exercises(self) -> List[Dict[str, Any]]:
        if self.catalog is not None and len(self.catalog):
            return self.catalog.exercises
        return [exercise_to_dict(ex) for ex in self.repos.exercises.list_active()]

    # ===== WORKOUTS =====

    def update_from_workouts(self, user_id: int, now: Optional[datetime] = None) -> AdaptiveLearning:
        now = now or datetime.now(timezone.utc)
        history = self.repos.history.recent(user_id, limit=self.settings.history_window)
        preferences = self.repos.preferences.get(user_id)
        analysis = self.analyzer.analyze(history, preferences, now=now)

        record = self.repos.learning.get_or_create(user_id)
        rate = record.learning_rate if record.learning_rate is not None else DEFAULT_LEARNING_RATE

        # Scalars and rankings are recomputed from the window, not accumulated
        record.workout_patterns = {**(record.workout_patterns or {}), **self.workout_patterns(history, analysis)}
        record.exercise_preferences = self.exercise_preferences(
            record.exercise_preferences or {}, history, analysis, rate
        )
        record.performance_insights = self.performance_insights(
            record.performance_insights or {}, history, analysis
        )
        record.recommendations = self.recommendation_snapshot(record, analysis, preferences)
        record.last_analysis = now

        for section in JSON_SECTIONS:
            flag_modified(record, section)
        record = self.repos.learning.save(record)

        logger.info(
            f"🔁 Adaptive profile updated for user {user_id} from {len(history)} entries "
            f"(consistency={analysis.consistency:.2f}, next={record.recommendations.get('next_workout')})"
        )
        return record

    def workout_patterns(self, history, analysis: FitnessAnalysis) -> Dict[str, Any]:
        days = Counter()
        times = Counter()
        sessions: Dict[Any, float] = {}

        for h in history:
            created = as_utc(h.created_at)
            if created is None:
                continue
            days[WEEKDAYS[created.weekday()]] += 1
            times[time_of_day(created.hour)] += 1

            session_key = h.session_id if h.session_id is not None else created.date()
            sets = (h.performance or {}).get('sets') or []
            rest_minutes = sum(s.get('rest_time') or 0 for s in sets) / 60
            sessions[session_key] = sessions.get(session_key, 0) + entry_total_duration(h) + rest_minutes

        preferred_days = sorted(days, key=lambda d: (-days[d], WEEKDAYS.index(d)))[:PREFERRED_DAYS_LIMIT]
        order = ["morning", "afternoon", "evening"]
        preferred_times = sorted(times, key=lambda t: (-times[t], order.index(t)))

        return {
            'preferred_days': preferred_days,
            'preferred_times': preferred_times,
            'average_duration': round(sum(sessions.values()) / len(sessions), 1) if sessions else 0,
            'consistency': analysis.consistency,
            'progression_rate': min(1.0, analysis.progression_rate)
        }

    def exercise_preferences(self, stored: Dict[str, Any], history, analysis: FitnessAnalysis,
                             rate: float) -> Dict[str, Any]:
        last_performed: Dict[int, datetime] = {}
        for h in history:
            created = as_utc(h.created_at)
            if created and (h.exercise_id not in last_performed or created > last_performed[h.exercise_id]):
                last_performed[h.exercise_id] = created

        favourites = merge_values(stored.get('favorite_exercises', []), [
            {
                'exercise_id': item['exercise_id'],
                'frequency': item['frequency'],
                'last_performed': _iso(last_performed.get(item['exercise_id'])),
                'average_rating': round(item['avg_rating'], 2)
            }
            for item in analysis.preferred_exercises
        ], 'favorite_exercises')
        favourites = sorted(favourites, key=lambda item: item.get('frequency') or 0, reverse=True)

        catalog = self._catalog_exercises()
        avoided_ids = {item.get('exercise_id') for item in stored.get('avoided_exercises', [])} | analysis.avoided_ids
        avoided = merge_values(stored.get('avoided_exercises', []), [
            {
                'exercise_id': item['exercise_id'],
                'reason': item['reason'],
                'alternative_id': self.find_alternative(item['exercise_id'], catalog, avoided_ids)
            }
            for item in analysis.avoided_exercises
            if item.get('exercise_id') is not None
        ], 'avoided_exercises')

        return {
            'favorite_exercises': favourites,
            'avoided_exercises': avoided,
            'exercise_categories': self.category_scores(
                stored.get('exercise_categories', {}), history, rate
            )
        }

    def find_alternative(self, exercise_id: int, catalog: List[Dict[str, Any]],
                         avoided_ids: set) -> Optional[int]:
        """First active exercise of the same category that is not avoided"""
        category = next((ex['category'] for ex in catalog if ex['id'] == exercise_id), None)
        if category is None:
            return None
        for ex in catalog:
            if ex['category'] == category and ex['id'] != exercise_id and ex['id'] not in avoided_ids:
                return ex['id']
        return None

    def category_scores(self, stored: Dict[str, Any], history, rate: float) -> Dict[str, Any]:
        """Preference = share of entries, proficiency = share of completed sets, blended with the learning rate"""
        entries: Dict[str, int] = {}
        completed: Dict[str, int] = {}
        total_sets: Dict[str, int] = {}

        for h in history:
            group = _category_group(h)
            if group is None:
                continue
            entries[group] = entries.get(group, 0) + 1
            for s in (h.performance or {}).get('sets') or []:
                total_sets[group] = total_sets.get(group, 0) + 1
                if s.get('completed', True):
                    completed[group] = completed.get(group, 0) + 1

        scores = {}
        total_entries = sum(entries.values())
        for category in TRACKED_CATEGORIES:
            previous = stored.get(category) or {}
            if not entries.get(category):
                scores[category] = previous
                continue
            observed_preference = entries[category] / total_entries
            observed_proficiency = (
                completed.get(category, 0) / total_sets[category] if total_sets.get(category) else 0.0
            )
            scores[category] = {
                'preference': _blend(previous.get('preference'), observed_preference, rate),
                'proficiency': _blend(previous.get('proficiency'), observed_proficiency, rate)
            }
        return scores

    def performance_insights(self, stored: Dict[str, Any], history, analysis: FitnessAnalysis) -> Dict[str, Any]:
        # Oldest first per exercise
        by_exercise: Dict[int, List] = {}
        for h in sorted(history, key=lambda h: (as_utc(h.created_at) or datetime.min.replace(tzinfo=timezone.utc), h.id)):
            by_exercise.setdefault(h.exercise_id, []).append(h)

        strength_gains = []
        endurance_gains = []
        for exercise_id, entries in by_exercise.items():
            if len(entries) < 2:
                continue
            first, last = entries[0], entries[-1]
            timeframe = (as_utc(last.created_at) - as_utc(first.created_at)).days
            if is_strength_entry(first):
                start, end = entry_max_weight(first), entry_max_weight(last)
                if start > 0:
                    strength_gains.append({
                        'exercise_id': exercise_id,
                        'exercise': first.exercise.name,
                        'improvement': round((end - start) / start, 3),
                        'timeframe': timeframe
                    })
            if is_cardio_entry(first):
                start, end = entry_total_duration(first), entry_total_duration(last)
                if start > 0:
                    endurance_gains.append({
                        'exercise_id': exercise_id,
                        'metric': 'duration',
                        'improvement': round((end - start) / start, 3),
                        'timeframe': timeframe
                    })

        return {
            'strength_gains': merge_values(stored.get('strength_gains', []), strength_gains, 'strength_gains'),
            'endurance_gains': merge_values(stored.get('endurance_gains', []), endurance_gains, 'endurance_gains'),
            'plateaus': self.update_plateaus(stored.get('plateaus', []), by_exercise),
            'injuries': merge_values(stored.get('injuries', []), self.injury_records(history, analysis), 'injuries')
        }

    def update_plateaus(self, plateaus: List[Dict[str, Any]], by_exercise: Dict[int, List]) -> List[Dict[str, Any]]:
        plateaus = [dict(p) for p in plateaus]
        open_by_exercise = {}
        for p in plateaus:
            if p.get('resolved'):
                continue
            if p.get('exercise_id') is None or not isinstance(p.get('best_weight'), (int, float)):
                logger.warning(f"⚠️ Skipping incomplete plateau record: {p}")
                continue
            open_by_exercise[p['exercise_id']] = p

        for exercise_id, entries in by_exercise.items():
            weights = [entry_max_weight(h) for h in entries]
            if not any(weights):
                continue
            latest = weights[-1]
            current = open_by_exercise.get(exercise_id)

            if current is not None:
                if latest > current['best_weight']:
                    current['resolved'] = True
                    current['solution'] = 'progressive_overload'
                    logger.info(f"📈 Plateau resolved on exercise {exercise_id}")
                continue

            if len(weights) <= PLATEAU_SESSIONS:
                continue
            best_before = max(weights[:-PLATEAU_SESSIONS])
            if best_before > 0 and max(weights[-PLATEAU_SESSIONS:]) <= best_before:
                plateaus.append({
                    'exercise_id': exercise_id,
                    'history_id': entries[-1].id,
                    'exercise': entries[-1].exercise.name if entries[-1].exercise else None,
                    'best_weight': best_before,
                    'duration': PLATEAU_SESSIONS,
                    'resolved': False,
                    'solution': None,
                    'detected_at': _iso(entries[-1].created_at)
                })
                logger.info(f"⏸️ Plateau detected on exercise {exercise_id} at {best_before}")

        return plateaus

    def injury_records(self, history, analysis: FitnessAnalysis) -> List[Dict[str, Any]]:
        records = []
        for h in history:
            if (h.performance or {}).get('pain') != 'severe':
                continue
            muscles = (h.exercise.primary_muscles or []) if h.exercise else []
            records.append({
                'history_id': h.id,
                'exercise_id': h.exercise_id,
                'body_part': muscles[0] if muscles else 'unknown',
                'severity': 'severe',
                'recovery_time': analysis.recovery_time,
                'prevention': list(INJURY_PREVENTION),
                'recorded_at': _iso(h.created_at)
            })
        return records

    def recommendation_snapshot(self, record: AdaptiveLearning, analysis: FitnessAnalysis,
                                preferences: Any) -> Dict[str, Any]:
        categories = (record.exercise_preferences or {}).get('exercise_categories', {})
        avoided_ids = {a.get('exercise_id') for a in (record.exercise_preferences or {}).get('avoided_exercises', [])}
        injuries = pref_value(preferences, 'injury_history', []) or []
        avoid_areas = [i.get('body_part') for i in injuries if not i.get('recovered', False) and i.get('body_part')]

        if analysis.injury_risk > REST_INJURY_RISK or analysis.recovery_time >= max(INTENSITY_BY_RECOVERY):
            next_workout = 'rest'
        elif not any(categories.get(c) for c in NEXT_WORKOUT_CATEGORIES):
            next_workout = 'mixed'
        else:
            # Least trained category first, to keep the week balanced
            next_workout = min(
                NEXT_WORKOUT_CATEGORIES,
                key=lambda c: ((categories.get(c) or {}).get('preference', 0), NEXT_WORKOUT_CATEGORIES.index(c))
            )

        intensity = INTENSITY_BY_RECOVERY.get(analysis.recovery_time, 'moderate')
        if analysis.injury_risk > REST_INJURY_RISK:
            intensity = 'low'

        catalog = {ex['id']: ex for ex in self._catalog_exercises()}
        candidates = [
            item['exercise_id']
            for item in (record.exercise_preferences or {}).get('favorite_exercises', [])
            if item.get('exercise_id') is not None and item['exercise_id'] not in avoided_ids
            and (next_workout in ('rest', 'mixed')
                 or CATEGORY_GROUPS.get((catalog.get(item['exercise_id']) or {}).get('category')) == next_workout)
        ]

        average_duration = (record.workout_patterns or {}).get('average_duration')
        return {
            'next_workout': next_workout,
            'focus_areas': [] if next_workout in ('rest', 'mixed') else [next_workout],
            'avoid_areas': avoid_areas,
            'intensity': intensity,
            'duration': round(average_duration) if average_duration else pref_value(preferences, 'workout_duration', 60),
            'exercises': candidates[:RECOMMENDED_EXERCISES_LIMIT]
        }

    # ===== NUTRITION =====

    def update_from_nutrition(self, user_id: int, now: Optional[datetime] = None) -> AdaptiveLearning:
        now = now or datetime.now(timezone.utc)
        logs = self.repos.nutrition_logs.recent(user_id, limit=NUTRITION_LOG_WINDOW)
        record = self.repos.learning.get_or_create(user_id)

        patterns = dict(record.nutrition_patterns or {})
        if logs:
            patterns['macro_preferences'] = self.macro_preferences(logs)
            patterns['meal_timing'] = merge_values(
                patterns.get('meal_timing', []), self.meal_timing(logs), 'meal_timing'
            )

        preferences = self.repos.preferences.get(user_id)
        if preferences is not None:
            food = dict(patterns.get('food_preferences') or {})
            food['liked'] = list(preferences.food_preferences or [])
            food['restrictions'] = list(preferences.dietary_restrictions or [])
            patterns['food_preferences'] = food

        record.nutrition_patterns = patterns
        record.last_analysis = now
        flag_modified(record, 'nutrition_patterns')
        record = self.repos.learning.save(record)
        logger.info(f"🍽️ Nutrition patterns updated for user {user_id} from {len(logs)} logged days")
        return record

    def macro_preferences(self, logs) -> Dict[str, Dict[str, float]]:
        """Average intake vs target (preference) and mean deviation from it (tolerance)"""
        result = {}
        for macro in ('protein', 'carbs', 'fat'):
            percentages = [
                ((log.progress or {}).get(macro) or {}).get('percentage')
                for log in logs
            ]
            percentages = [p for p in percentages if p is not None]
            if not percentages:
                continue
            result[macro] = {
                'preference': round(sum(percentages) / len(percentages) / 100, 2),
                'tolerance': round(sum(abs(p - 100) for p in percentages) / len(percentages) / 100, 2)
            }
        return result

    def meal_timing(self, logs) -> List[Dict[str, Any]]:
        times: Dict[str, List[int]] = {}
        for log in logs:
            for meal in log.meals or []:
                minutes = _minutes(meal.get('time'))
                if meal.get('meal_type') and minutes is not None:
                    times.setdefault(meal['meal_type'], []).append(minutes)

        timing = []
        for meal_type, values in times.items():
            average = sum(values) / len(values)
            on_time = [v for v in values if abs(v - average) <= MEAL_TIME_WINDOW_MINUTES]
            timing.append({
                'meal_type': meal_type,
                'average_time': _clock(average),
                'consistency': round(len(on_time) / len(values), 2)
            })
        return timing

    # ===== MANUAL UPDATES =====

    def apply_update(self, user_id: int, payload: Dict[str, Any]) -> AdaptiveLearning:
        record = self.repos.learning.get_or_create(user_id)
        for section in JSON_SECTIONS:
            if payload.get(section) is not None:
                setattr(record, section, merge_values(getattr(record, section) or {}, payload[section]))
                flag_modified(record, section)
        if payload.get('learning_rate') is not None:
            record.learning_rate = payload['learning_rate']
        record.last_analysis = datetime.now(timezone.utc)
        record = self.repos.learning.save(record)
        logger.info(f"✏️ Adaptive profile of user {user_id} updated: {sorted(k for k, v in payload.items() if v is not None)}")
        return record
