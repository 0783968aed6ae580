# ===== fitplanner/catalog.py =====

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from fitplanner.models import Exercise
from fitplanner.repositories import ExerciseRepository

logger = logging.getLogger(__name__)


def exercise_to_dict(exercise: Exercise) -> Dict[str, Any]:
    """Detached snapshot of a catalog exercise"""
    return {
        'id': exercise.id,
        'name': exercise.name,
        'category': exercise.category,
        'primary_muscles': list(exercise.primary_muscles or []),
        'equipment': list(exercise.equipment or []),
        'difficulty': exercise.difficulty or 'beginner'
    }


class CatalogCache:
    """
    Process-wide, read-through copy of the active exercise catalog.
    Loaded once by the host process and passed by reference to the planner.
    Staleness is acceptable, refresh() reloads on demand.
    """

    def __init__(self, exercises: Optional[List[Dict[str, Any]]] = None):
        self._exercises: List[Dict[str, Any]] = list(exercises or [])
        self._lock = threading.Lock()
        self.loaded_at: Optional[datetime] = None

    @classmethod
    def load(cls, db: Session) -> "CatalogCache":
        cache = cls()
        cache.refresh(db)
        return cache

    def refresh(self, db: Session) -> int:
        exercises = [exercise_to_dict(ex) for ex in ExerciseRepository(db).list_active()]
        with self._lock:
            self._exercises = exercises
            self.loaded_at = datetime.now(timezone.utc)
        logger.info(f"✅ Loaded {len(exercises)} exercises for AI planning")
        return len(exercises)

    @property
    def exercises(self) -> List[Dict[str, Any]]:
        # Shallow copy so callers never reorder the cached list
        with self._lock:
            return list(self._exercises)

    def __len__(self) -> int:
        with self._lock:
            return len(self._exercises)
