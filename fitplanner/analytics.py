# ===== fitplanner/analytics.py =====
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fitplanner.constants import INSIGHT_PERIOD_DAYS
from fitplanner.repositories import Repositories

logger = logging.getLogger(__name__)


def _average(values: List[float]) -> Optional[float]:
    values = [v for v in values if v is not None]
    return round(sum(values) / len(values), 2) if values else None


def workout_stats(entries) -> Dict[str, Any]:
    if not entries:
        return {}
    sets = [s for h in entries for s in (h.performance or {}).get('sets') or []]
    completed = [s for s in sets if s.get('completed', True)]
    return {
        'total_workouts': len(entries),
        'avg_rpe': _average([(h.performance or {}).get('average_rpe') for h in entries]),
        'avg_volume': _average([(h.performance or {}).get('total_volume') for h in entries]),
        'completion_rate': round(len(completed) / len(sets), 2) if sets else None
    }


def plan_stats(plans) -> Dict[str, Any]:
    if not plans:
        return {}
    feedback = [p.feedback or {} for p in plans]
    return {
        'total_plans': len(plans),
        'avg_rating': _average([f.get('rating') for f in feedback]),
        'avg_completion': _average([f.get('completion_rate') for f in feedback])
    }


def build_analytics(repos: Repositories, user_id: int, period: str = 'month',
                    now: Optional[datetime] = None) -> Dict[str, Any]:
    """Workout, nutrition and AI plan summary for one user ('all' disables the window)"""
    now = now or datetime.now(timezone.utc)
    start = None
    if period in INSIGHT_PERIOD_DAYS:
        # Stored datetimes are naive UTC
        start = (now - timedelta(days=INSIGHT_PERIOD_DAYS[period])).replace(tzinfo=None)

    calculator = repos.nutrition.get_active(user_id)
    analytics = {
        'workout': workout_stats(repos.history.since(user_id, start)),
        'nutrition': calculator.calculated_macros if calculator else {},
        'ai_plan': plan_stats(repos.plans.all_for_user(user_id)),
        'period': period,
        'generated_at': now.isoformat()
    }
    logger.info(f"📊 Analytics built for user {user_id} ({period})")
    return analytics
