# ===== fitplanner/fitness_analyzer.py =====
"""
Derive a user's current levels and patterns from workout history.

Every field always has a value: empty history or missing preferences fall
back to fixed defaults instead of raising.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
import logging

from fitplanner.constants import (
    AVOID_ENJOYMENT_THRESHOLD, CARDIO_MUSCLES, CONSISTENCY_DEFAULT,
    CONSISTENCY_MIN_ENTRIES, CONSISTENCY_WINDOW_DAYS, DEFAULT_MOTIVATION,
    ENDURANCE_MINUTES_BUCKETS, HIGH_RPE_THRESHOLD, INJURY_RECENT_DAYS,
    INJURY_RISK_WEIGHTS, PREFERRED_EXERCISES_LIMIT, PROGRESSION_DEFAULT,
    PROGRESSION_MIN_ENTRIES, PROGRESSION_SAMPLE_SIZE, RECOVERY_HOURS_BY_RPE,
    RECOVERY_HOURS_DEFAULT, RECOVERY_HOURS_MAX, RECOVERY_MIN_ENTRIES,
    STRENGTH_MUSCLES, STRENGTH_WEIGHT_BUCKETS, bucket_level
)
from fitplanner.repositories import as_utc

logger = logging.getLogger(__name__)


def pref_value(preferences: Any, key: str, default: Any = None) -> Any:
    """Read a preference from an ORM record or a plain dict"""
    if preferences is None:
        return default
    if isinstance(preferences, dict):
        value = preferences.get(key)
    else:
        value = getattr(preferences, key, None)
    return default if value is None else value


@dataclass
class FitnessAnalysis:
    experience_level: str = "beginner"
    strength_level: str = "beginner"
    endurance_level: str = "beginner"
    consistency: float = CONSISTENCY_DEFAULT
    progression_rate: float = PROGRESSION_DEFAULT
    preferred_exercises: List[Dict[str, Any]] = field(default_factory=list)
    avoided_exercises: List[Dict[str, Any]] = field(default_factory=list)
    injury_risk: float = 0.0
    recovery_time: int = RECOVERY_HOURS_DEFAULT
    motivation_level: int = DEFAULT_MOTIVATION

    @property
    def avoided_ids(self) -> set:
        return {item['exercise_id'] for item in self.avoided_exercises if item.get('exercise_id') is not None}

    @property
    def preferred_ids(self) -> set:
        return {item['exercise_id'] for item in self.preferred_exercises if item.get('exercise_id') is not None}

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for item in data['avoided_exercises']:
            if isinstance(item.get('last_attempted'), datetime):
                item['last_attempted'] = item['last_attempted'].isoformat()
        return data


# ===== ENTRY HELPERS =====

def _performance(entry) -> Dict[str, Any]:
    return getattr(entry, 'performance', None) or {}


def _feedback(entry) -> Dict[str, Any]:
    return getattr(entry, 'feedback', None) or {}


def _sets(entry) -> List[Dict[str, Any]]:
    return _performance(entry).get('sets') or []


def entry_max_weight(entry) -> float:
    """Heaviest set of an entry, 0 when there are no weighted sets"""
    weights = [s.get('weight') or 0 for s in _sets(entry)]
    return max(weights) if weights else 0


def entry_total_duration(entry) -> float:
    """Sum of set durations in minutes"""
    return sum(s.get('duration') or 0 for s in _sets(entry))


def is_strength_entry(entry) -> bool:
    exercise = getattr(entry, 'exercise', None)
    if exercise is None:
        return False
    if exercise.category == 'strength':
        return True
    return bool(STRENGTH_MUSCLES.intersection(exercise.primary_muscles or []))


def is_cardio_entry(entry) -> bool:
    exercise = getattr(entry, 'exercise', None)
    if exercise is None:
        return False
    if exercise.category == 'cardio':
        return True
    return bool(CARDIO_MUSCLES.intersection(exercise.primary_muscles or []))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize_sets(sets: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Aggregates stored alongside a new history entry"""
    rpes = [s['rpe'] for s in sets if s.get('rpe') is not None]
    return {
        'total_volume': sum((s.get('weight') or 0) * (s.get('reps') or 0) for s in sets),
        'max_weight': max((s.get('weight') or 0 for s in sets), default=0),
        'max_reps': max((s.get('reps') or 0 for s in sets), default=0),
        'average_rpe': round(_mean(rpes), 1) if rpes else None
    }


# ===== BUCKETING =====

def bucket_strength(mean_max_weight: float) -> str:
    return bucket_level(mean_max_weight, STRENGTH_WEIGHT_BUCKETS)


def bucket_endurance(mean_minutes: float) -> str:
    return bucket_level(mean_minutes, ENDURANCE_MINUTES_BUCKETS)


class FitnessAnalyzer:
    """Turns history + preferences into a FitnessAnalysis"""

    def analyze(self, workout_history: Optional[Sequence] = None, preferences: Any = None,
                now: Optional[datetime] = None) -> FitnessAnalysis:
        history = list(workout_history or [])
        now = now or datetime.now(timezone.utc)

        analysis = FitnessAnalysis(
            experience_level=pref_value(preferences, 'experience_level', 'beginner'),
            strength_level=self.calculate_strength_level(history),
            endurance_level=self.calculate_endurance_level(history),
            consistency=self.calculate_consistency(history, now),
            progression_rate=self.calculate_progression_rate(history),
            preferred_exercises=self.get_preferred_exercises(history),
            avoided_exercises=self.get_avoided_exercises(history),
            injury_risk=self.assess_injury_risk(history, preferences, now),
            recovery_time=self.calculate_recovery_time(history),
            motivation_level=pref_value(preferences, 'motivation_level', DEFAULT_MOTIVATION)
        )
        logger.info(
            f"📊 Analysis: level={analysis.experience_level} strength={analysis.strength_level} "
            f"consistency={analysis.consistency:.2f} risk={analysis.injury_risk:.2f}"
        )
        return analysis

    def calculate_strength_level(self, history: Sequence) -> str:
        strength_entries = [h for h in history if is_strength_entry(h)]
        if not strength_entries:
            return 'beginner'
        return bucket_strength(_mean([entry_max_weight(h) for h in strength_entries]))

    def calculate_endurance_level(self, history: Sequence) -> str:
        cardio_entries = [h for h in history if is_cardio_entry(h)]
        if not cardio_entries:
            return 'beginner'
        return bucket_endurance(_mean([entry_total_duration(h) for h in cardio_entries]))

    def calculate_consistency(self, history: Sequence, now: Optional[datetime] = None) -> float:
        """Distinct training days over the last 30 days, 0-1"""
        if len(history) < CONSISTENCY_MIN_ENTRIES:
            return CONSISTENCY_DEFAULT

        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=CONSISTENCY_WINDOW_DAYS)
        training_days = {
            as_utc(h.created_at).date()
            for h in history
            if h.created_at is not None and as_utc(h.created_at) > cutoff
        }
        return min(len(training_days) / CONSISTENCY_WINDOW_DAYS, 1.0)

    def calculate_progression_rate(self, history: Sequence) -> float:
        """Relative gain of the 10 newest entries over the 10 before them"""
        if len(history) < PROGRESSION_MIN_ENTRIES:
            return PROGRESSION_DEFAULT

        recent = history[:PROGRESSION_SAMPLE_SIZE]
        older = history[PROGRESSION_SAMPLE_SIZE:PROGRESSION_SAMPLE_SIZE * 2]
        if not older:
            return PROGRESSION_DEFAULT

        recent_avg = _mean([entry_max_weight(h) for h in recent])
        older_avg = _mean([entry_max_weight(h) for h in older])
        if older_avg == 0:
            return PROGRESSION_DEFAULT

        return max(0.0, (recent_avg - older_avg) / older_avg)

    def get_preferred_exercises(self, history: Sequence) -> List[Dict[str, Any]]:
        counts: Dict[int, int] = {}
        ratings: Dict[int, float] = {}

        for h in history:
            exercise_id = getattr(h, 'exercise_id', None)
            if exercise_id is None:
                continue
            counts[exercise_id] = counts.get(exercise_id, 0) + 1
            enjoyment = _feedback(h).get('enjoyment')
            if enjoyment:
                ratings[exercise_id] = ratings.get(exercise_id, 0) + enjoyment

        preferred = [
            {
                'exercise_id': exercise_id,
                'frequency': count,
                'avg_rating': ratings.get(exercise_id, 0) / count
            }
            for exercise_id, count in counts.items()
        ]
        # Stable sort: ties keep history order, newest first
        preferred = sorted(preferred, key=lambda item: item['frequency'], reverse=True)
        return preferred[:PREFERRED_EXERCISES_LIMIT]

    def get_avoided_exercises(self, history: Sequence) -> List[Dict[str, Any]]:
        avoided = []
        for h in history:
            enjoyment = _feedback(h).get('enjoyment')
            low_enjoyment = enjoyment is not None and enjoyment < AVOID_ENJOYMENT_THRESHOLD
            severe_pain = _performance(h).get('pain') == 'severe'
            if low_enjoyment or severe_pain:
                avoided.append({
                    'exercise_id': getattr(h, 'exercise_id', None),
                    'reason': _feedback(h).get('comments') or 'Low enjoyment or pain',
                    'last_attempted': h.created_at
                })
        return avoided

    def assess_injury_risk(self, history: Sequence, preferences: Any = None,
                           now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        recent_cutoff = now - timedelta(days=INJURY_RECENT_DAYS)
        risk = 0.0

        recent_severe = [
            h for h in history
            if _performance(h).get('pain') == 'severe'
            and h.created_at is not None and as_utc(h.created_at) > recent_cutoff
        ]
        risk += len(recent_severe) * INJURY_RISK_WEIGHTS['recent_severe_pain']

        poor_form = [h for h in history if _performance(h).get('form') == 'poor']
        risk += len(poor_form) * INJURY_RISK_WEIGHTS['poor_form']

        high_rpe = [h for h in history if (_performance(h).get('average_rpe') or 0) > HIGH_RPE_THRESHOLD]
        risk += len(high_rpe) * INJURY_RISK_WEIGHTS['high_rpe']

        injuries = pref_value(preferences, 'injury_history', []) or []
        risk += len(injuries) * INJURY_RISK_WEIGHTS['injury_history']

        return min(risk, 1.0)

    def calculate_recovery_time(self, history: Sequence) -> int:
        """Hours of recovery suggested by the mean RPE of the 5 newest entries"""
        if len(history) < RECOVERY_MIN_ENTRIES:
            return RECOVERY_HOURS_DEFAULT

        recent = history[:RECOVERY_MIN_ENTRIES]
        avg_rpe = _mean([_performance(h).get('average_rpe') or 5 for h in recent])
        for upper, hours in RECOVERY_HOURS_BY_RPE:
            if avg_rpe < upper:
                return hours
        return RECOVERY_HOURS_MAX
