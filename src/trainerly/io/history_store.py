"""
Per-exercise workout history and saved exercise defaults.

History lives under one key of the injected KeyValueStore as a JSON map
of exercise name → entries, newest first.

Workout history is best-effort data: every storage or parse failure is
logged and degrades to "no history" / "nothing saved" rather than
interrupting the workout flow.
"""

import json
import threading
from datetime import date as Date
from typing import Any

from loguru import logger

from ..core.config import (
    DEDUP_WINDOW_MS,
    EXERCISE_DEFAULTS_KEY,
    EXERCISE_HISTORY_KEY,
    HISTORY_RETENTION,
)
from ..core.models import ExerciseDefaults, ExerciseHistory, SetData, WorkoutEntry, epoch_ms
from .kv_store import KeyValueStore, StorageError
from .serializers import (
    ValidationError,
    defaults_to_dict,
    dict_to_defaults,
    dict_to_workout_entry,
    history_to_dict,
)

# Failures that degrade to empty reads / skipped writes.
_SOFT_ERRORS = (StorageError, ValidationError, ValueError, TypeError)


class HistoryStore:
    """
    Manages exercise history and defaults in a key-value store.

    Writes load the whole map, modify it in memory and write it back.
    A per-store lock serializes these cycles so concurrent callers in
    the same process cannot lose each other's entries.
    """

    def __init__(
        self,
        store: KeyValueStore,
        retention: int = HISTORY_RETENTION,
        dedup_window_ms: int = DEDUP_WINDOW_MS,
    ):
        """
        Initialize the history store.

        Args:
            store: Backing key-value store
            retention: Max entries kept per exercise
            dedup_window_ms: Entries closer than this are one logical save
        """
        self.store = store
        self.retention = retention
        self.dedup_window_ms = dedup_window_ms
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Loading / persisting
    # ------------------------------------------------------------------

    def _load(self) -> ExerciseHistory:
        """Read and parse the history map; raises on storage or JSON errors."""
        raw = self.store.get_item(EXERCISE_HISTORY_KEY)
        if not raw:
            return {}

        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValidationError("Exercise history must be a JSON object")

        history: ExerciseHistory = {}
        for name, entries in data.items():
            if not isinstance(entries, list):
                logger.warning(f"Dropping malformed history for {name!r}")
                continue
            parsed: list[WorkoutEntry] = []
            for item in entries:
                try:
                    parsed.append(dict_to_workout_entry(item))
                except ValidationError as e:
                    logger.warning(f"Skipping invalid history entry for {name!r}: {e}")
            history[name] = parsed
        return history

    def _persist(self, history: ExerciseHistory) -> None:
        self.store.set_item(EXERCISE_HISTORY_KEY, json.dumps(history_to_dict(history)))

    def _same_save(self, a: WorkoutEntry, b: WorkoutEntry) -> bool:
        return abs(epoch_ms(a.date) - epoch_ms(b.date)) < self.dedup_window_ms

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_history(self) -> ExerciseHistory:
        """
        Load the full exercise history.

        Returns:
            Map of exercise name → entries (newest first); empty if
            nothing is stored or the stored data cannot be read
        """
        try:
            return self._load()
        except _SOFT_ERRORS as e:
            logger.error(f"Error loading exercise history: {e}")
            return {}

    def get_entries(self, exercise_name: str) -> list[WorkoutEntry]:
        """Entries for one exercise, newest first (empty if none)."""
        return self.get_history().get(exercise_name, [])

    def save_entry(self, exercise_name: str, entry: WorkoutEntry) -> None:
        """
        Record a completed exercise.

        An existing entry within the dedup window of ``entry.date`` is
        replaced in place; otherwise the entry is inserted as the most
        recent.  The list is then truncated to the retention limit.

        Args:
            exercise_name: Exact exercise name (case-sensitive)
            entry: Entry to save
        """
        with self._lock:
            try:
                history = self.get_history()
                entries = history.setdefault(exercise_name, [])

                existing_index = next(
                    (i for i, e in enumerate(entries) if self._same_save(e, entry)),
                    None,
                )
                if existing_index is not None:
                    entries[existing_index] = entry
                else:
                    entries.insert(0, entry)

                del entries[self.retention:]

                self._persist(history)
            except _SOFT_ERRORS as e:
                logger.error(f"Error saving exercise history for {exercise_name!r}: {e}")

    def update_todays_entry(
        self,
        exercise_name: str,
        sets_data: list[SetData],
        today: Date | None = None,
    ) -> None:
        """
        Replace the per-set data of the entry recorded on ``today``.

        The entry's display weight/repeats follow the new first set.
        Does nothing if the exercise has no entry for that day.

        Args:
            exercise_name: Exercise to update
            sets_data: New per-set data
            today: Local calendar day (default: today)
        """
        day = today or Date.today()
        with self._lock:
            try:
                history = self.get_history()
                entries = history.get(exercise_name)
                if not entries:
                    return

                index = next(
                    (i for i, e in enumerate(entries) if e.timestamp.astimezone().date() == day),
                    None,
                )
                if index is None:
                    return

                first = sets_data[0] if sets_data else SetData()
                old = entries[index]
                entries[index] = WorkoutEntry(
                    date=old.date,
                    rest_time_seconds=old.rest_time_seconds,
                    completed_sets=old.completed_sets,
                    total_sets=old.total_sets,
                    weight=first.weight,
                    repeats=first.repeats,
                    sets_data=list(sets_data),
                )
                self._persist(history)
            except _SOFT_ERRORS as e:
                logger.error(f"Error updating exercise history for {exercise_name!r}: {e}")

    def get_last_entry(self, exercise_name: str) -> WorkoutEntry | None:
        """
        Get the most recent entry for an exercise.

        Returns:
            Latest WorkoutEntry or None if no history
        """
        entries = self.get_entries(exercise_name)
        return entries[0] if entries else None

    def get_last_used_weight(self, exercise_name: str) -> float | None:
        """Weight recorded on the most recent entry."""
        last = self.get_last_entry(exercise_name)
        return last.weight if last else None

    def get_last_used_repeats(self, exercise_name: str) -> int | None:
        """Repeats recorded on the most recent entry."""
        last = self.get_last_entry(exercise_name)
        return last.repeats if last else None

    def remove_duplicates(self) -> int:
        """
        Drop entries that fall within the dedup window of an entry kept
        earlier in the same list (the most recent of each cluster stays).

        Persists only when something was dropped.

        Returns:
            Number of entries removed
        """
        with self._lock:
            try:
                history = self.get_history()
                removed = 0

                for name, entries in history.items():
                    unique: list[WorkoutEntry] = []
                    for entry in entries:
                        if any(self._same_save(kept, entry) for kept in unique):
                            removed += 1
                        else:
                            unique.append(entry)
                    history[name] = unique

                if removed:
                    self._persist(history)
                    logger.info(f"Removed {removed} duplicate history entries")
                return removed
            except _SOFT_ERRORS as e:
                logger.error(f"Error removing duplicate history entries: {e}")
                return 0

    def clear(self) -> None:
        """Delete all exercise history (dangerous - use with caution)."""
        try:
            self.store.remove_item(EXERCISE_HISTORY_KEY)
        except StorageError as e:
            logger.error(f"Error clearing exercise history: {e}")

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def _load_defaults(self) -> dict[str, Any]:
        raw = self.store.get_item(EXERCISE_DEFAULTS_KEY)
        if not raw:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValidationError("Exercise defaults must be a JSON object")
        return data

    def get_all_defaults(self) -> dict[str, ExerciseDefaults]:
        """Saved defaults for every exercise."""
        try:
            return {name: dict_to_defaults(d) for name, d in self._load_defaults().items()}
        except _SOFT_ERRORS as e:
            logger.error(f"Error loading exercise defaults: {e}")
            return {}

    def get_defaults(self, exercise_name: str) -> ExerciseDefaults:
        """
        Saved defaults for one exercise.

        Returns:
            ExerciseDefaults (all fields None if nothing saved)
        """
        return self.get_all_defaults().get(exercise_name, ExerciseDefaults())

    def save_defaults(
        self,
        exercise_name: str,
        weight: float | None = None,
        rest_time: int | None = None,
        repeats: int | None = None,
    ) -> None:
        """
        Update saved defaults for an exercise.

        A field is overwritten only when the new value is given and
        positive; None, zero and negative values keep the stored one.
        """
        with self._lock:
            try:
                raw = self._load_defaults()
                current = dict_to_defaults(raw.get(exercise_name, {}))

                if weight is not None and weight > 0:
                    current.weight = weight
                if rest_time is not None and rest_time > 0:
                    current.rest_time = rest_time
                if repeats is not None and repeats > 0:
                    current.repeats = repeats

                raw[exercise_name] = defaults_to_dict(current)
                self.store.set_item(EXERCISE_DEFAULTS_KEY, json.dumps(raw))
            except _SOFT_ERRORS as e:
                logger.error(f"Error saving exercise defaults for {exercise_name!r}: {e}")

    def clear_defaults(self) -> None:
        """Delete all saved defaults."""
        try:
            self.store.remove_item(EXERCISE_DEFAULTS_KEY)
        except StorageError as e:
            logger.error(f"Error clearing exercise defaults: {e}")
