"""
Daily training progress and the training completion log.

Progress records are only meaningful on the day they were written: a
record whose date is not today is treated as absent.  Completions are
kept newest first, capped per training type.
"""

import json
import threading
from datetime import date as Date
from typing import Any, Sequence

from loguru import logger

from ..core.config import COMPLETIONS_RETENTION, TRAINING_COMPLETIONS_KEY, TRAINING_PROGRESS_KEY
from ..core.models import DailyTrainingProgress, TrainingCompletion
from ..core.recommendation import recommend_next_training
from .kv_store import KeyValueStore, StorageError
from .serializers import (
    ValidationError,
    completion_to_dict,
    dict_to_completion,
    dict_to_progress,
    progress_to_dict,
)

_SOFT_ERRORS = (StorageError, ValidationError, ValueError, TypeError)


def _day_string(today: Date | None) -> str:
    return (today or Date.today()).isoformat()


class ProgressStore:
    """Tracks in-progress trainings and finished trainings."""

    def __init__(self, store: KeyValueStore, completions_retention: int = COMPLETIONS_RETENTION):
        self.store = store
        self.completions_retention = completions_retention
        self._lock = threading.RLock()

    def _load_json(self, key: str) -> dict[str, Any]:
        raw = self.store.get_item(key)
        if not raw:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValidationError(f"{key} must be a JSON object")
        return data

    # ------------------------------------------------------------------
    # Daily progress
    # ------------------------------------------------------------------

    def get_all_progress(self) -> dict[str, DailyTrainingProgress]:
        """All stored progress records, regardless of day."""
        try:
            data = self._load_json(TRAINING_PROGRESS_KEY)
            return {t: dict_to_progress(p, t) for t, p in data.items()}
        except _SOFT_ERRORS as e:
            logger.error(f"Error loading training progress: {e}")
            return {}

    def get_daily_progress(
        self, training_type: str, today: Date | None = None
    ) -> DailyTrainingProgress | None:
        """
        Progress for a training, only if recorded today.

        Args:
            training_type: Training identifier
            today: Calendar day to match (default: today)

        Returns:
            DailyTrainingProgress or None if absent or from another day
        """
        progress = self.get_all_progress().get(training_type)
        if progress is not None and progress.date == _day_string(today):
            return progress
        return None

    def save_progress(
        self,
        training_type: str,
        exercise_name: str,
        completed_sets: int,
        today: Date | None = None,
    ) -> None:
        """
        Record how many sets of an exercise are done today.

        A record from a previous day is discarded and started afresh.
        """
        day = _day_string(today)
        with self._lock:
            try:
                data = self._load_json(TRAINING_PROGRESS_KEY)
                current = data.get(training_type)
                if not isinstance(current, dict) or current.get("date") != day:
                    progress = DailyTrainingProgress(date=day, training_type=training_type)
                else:
                    progress = dict_to_progress(current, training_type)

                progress.exercise_progress[exercise_name] = completed_sets
                data[training_type] = progress_to_dict(progress)
                self.store.set_item(TRAINING_PROGRESS_KEY, json.dumps(data))
            except _SOFT_ERRORS as e:
                logger.error(f"Error saving training progress for {training_type!r}: {e}")

    def get_exercise_progress(
        self, training_type: str, exercise_name: str, today: Date | None = None
    ) -> int:
        """Sets completed today for an exercise (0 if none)."""
        progress = self.get_daily_progress(training_type, today)
        if progress is None:
            return 0
        return progress.exercise_progress.get(exercise_name, 0)

    def clear_progress(self) -> None:
        """Delete all progress records."""
        try:
            self.store.remove_item(TRAINING_PROGRESS_KEY)
        except StorageError as e:
            logger.error(f"Error clearing training progress: {e}")

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    def get_completions(self) -> dict[str, list[TrainingCompletion]]:
        """Completion log per training type, newest first."""
        try:
            data = self._load_json(TRAINING_COMPLETIONS_KEY)
            return {
                t: [dict_to_completion(c) for c in items]
                for t, items in data.items()
                if isinstance(items, list)
            }
        except _SOFT_ERRORS as e:
            logger.error(f"Error loading training completions: {e}")
            return {}

    def save_completion(
        self,
        training_type: str,
        completed_exercises: Sequence[str],
        today: Date | None = None,
    ) -> None:
        """
        Log a finished training as the most recent completion.

        The log for the training type is capped at the retention limit.
        """
        with self._lock:
            try:
                data = self._load_json(TRAINING_COMPLETIONS_KEY)
                items = data.get(training_type)
                if not isinstance(items, list):
                    items = []

                completion = TrainingCompletion(
                    training_type=training_type,
                    date=_day_string(today),
                    completed_exercises=list(completed_exercises),
                )
                items.insert(0, completion_to_dict(completion))
                data[training_type] = items[: self.completions_retention]

                self.store.set_item(TRAINING_COMPLETIONS_KEY, json.dumps(data))
            except _SOFT_ERRORS as e:
                logger.error(f"Error saving training completion for {training_type!r}: {e}")

    def get_completion_count(self, training_type: str) -> int:
        return len(self.get_completions().get(training_type, []))

    def get_last_completion(self, training_type: str) -> TrainingCompletion | None:
        items = self.get_completions().get(training_type)
        return items[0] if items else None

    def next_recommended_training(self, available: Sequence[str]) -> str | None:
        """Recommend the next training among ``available`` from the log."""
        return recommend_next_training(self.get_completions(), available)

    def clear_completions(self) -> None:
        """Delete the completion log."""
        try:
            self.store.remove_item(TRAINING_COMPLETIONS_KEY)
        except StorageError as e:
            logger.error(f"Error clearing training completions: {e}")
