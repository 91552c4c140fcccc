"""
JSON serialization for trainerly data models.

Handles conversion between dataclasses and the JSON documents kept in the
key-value store and exchanged with the backend.  Stored documents use the
camelCase keys shared with the mobile and web clients (``restTime``,
``setsData``...).
"""

import re
from dataclasses import fields
from datetime import datetime
from typing import Any, TypeVar

from ..core.models import (
    Coach,
    DailyTrainingProgress,
    Exercise,
    ExerciseDefaults,
    ExerciseHistory,
    PrescribedExercise,
    SetData,
    Trainee,
    TrainingCompletion,
    TrainingItem,
    TrainingPlan,
    TrainingPlanSummary,
    WorkoutEntry,
)

D = TypeVar("D")


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_day(date_str: str) -> str:
    """
    Validate a calendar day string.

    Args:
        date_str: Date string to validate

    Returns:
        The YYYY-MM-DD string

    Raises:
        ValidationError: If date format is invalid
    """
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValidationError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")

    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid date: {date_str}") from e

    return date_str


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is non-negative.

    Raises:
        ValidationError: If value is negative
    """
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def _optional_number(data: dict[str, Any], key: str, cast: type) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number, got {value!r}")
    return cast(value)


# =============================================================================
# WORKOUT HISTORY
# =============================================================================


def set_data_to_dict(s: SetData) -> dict[str, Any]:
    """Convert SetData to a dict, omitting missing fields."""
    out: dict[str, Any] = {}
    if s.weight is not None:
        out["weight"] = s.weight
    if s.repeats is not None:
        out["repeats"] = s.repeats
    return out


def dict_to_set_data(data: dict[str, Any]) -> SetData:
    """Convert a stored set dict to SetData."""
    if not isinstance(data, dict):
        raise ValidationError(f"Set must be an object, got {data!r}")
    return SetData(
        weight=_optional_number(data, "weight", float),
        repeats=_optional_number(data, "repeats", int),
    )


def workout_entry_to_dict(entry: WorkoutEntry) -> dict[str, Any]:
    """
    Convert WorkoutEntry to its stored JSON shape.

    Args:
        entry: Entry to convert

    Returns:
        Dict with camelCase keys; optional fields omitted when None
    """
    out: dict[str, Any] = {
        "date": entry.date,
        "restTime": entry.rest_time_seconds,
        "completedSets": entry.completed_sets,
        "totalSets": entry.total_sets,
    }
    if entry.weight is not None:
        out["weight"] = entry.weight
    if entry.repeats is not None:
        out["repeats"] = entry.repeats
    if entry.sets_data is not None:
        out["setsData"] = [set_data_to_dict(s) for s in entry.sets_data]
    return out


def dict_to_workout_entry(data: dict[str, Any]) -> WorkoutEntry:
    """
    Convert a stored dict to WorkoutEntry.

    Raises:
        ValidationError: If required fields are missing or invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Entry must be an object, got {data!r}")
    try:
        sets_raw = data.get("setsData")
        if sets_raw is not None and not isinstance(sets_raw, list):
            raise ValidationError("setsData must be a list")
        return WorkoutEntry(
            date=str(data["date"]),
            rest_time_seconds=int(data.get("restTime", 0)),
            completed_sets=int(data["completedSets"]),
            total_sets=int(data["totalSets"]),
            weight=_optional_number(data, "weight", float),
            repeats=_optional_number(data, "repeats", int),
            sets_data=[dict_to_set_data(s) for s in sets_raw] if sets_raw is not None else None,
        )
    except KeyError as e:
        raise ValidationError(f"Entry is missing field {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid entry: {e}") from e


def history_to_dict(history: ExerciseHistory) -> dict[str, list[dict[str, Any]]]:
    """Convert the whole exercise history map to JSON-compatible form."""
    return {name: [workout_entry_to_dict(e) for e in entries] for name, entries in history.items()}


def defaults_to_dict(defaults: ExerciseDefaults) -> dict[str, Any]:
    """Convert ExerciseDefaults to its stored form."""
    out: dict[str, Any] = {}
    if defaults.weight is not None:
        out["weight"] = defaults.weight
    if defaults.rest_time is not None:
        out["restTime"] = defaults.rest_time
    if defaults.repeats is not None:
        out["repeats"] = defaults.repeats
    return out


def dict_to_defaults(data: Any) -> ExerciseDefaults:
    """Convert a stored defaults dict to ExerciseDefaults."""
    if not isinstance(data, dict):
        raise ValidationError("Exercise defaults must be an object")
    return ExerciseDefaults(
        weight=_optional_number(data, "weight", float),
        rest_time=_optional_number(data, "restTime", int),
        repeats=_optional_number(data, "repeats", int),
    )


# =============================================================================
# DAILY PROGRESS
# =============================================================================


def progress_to_dict(progress: DailyTrainingProgress) -> dict[str, Any]:
    """Convert DailyTrainingProgress to its stored form."""
    return {
        "date": progress.date,
        "trainingType": progress.training_type,
        "exerciseProgress": dict(progress.exercise_progress),
    }


def dict_to_progress(data: Any, training_type: str) -> DailyTrainingProgress:
    """Convert a stored progress dict to DailyTrainingProgress."""
    if not isinstance(data, dict) or "date" not in data:
        raise ValidationError(f"Invalid progress record for {training_type!r}")
    raw = data.get("exerciseProgress") or {}
    if not isinstance(raw, dict):
        raise ValidationError("exerciseProgress must be an object")
    return DailyTrainingProgress(
        date=validate_day(str(data["date"])),
        training_type=str(data.get("trainingType", training_type)),
        exercise_progress={str(k): int(v) for k, v in raw.items()},
    )


def completion_to_dict(completion: TrainingCompletion) -> dict[str, Any]:
    """Convert TrainingCompletion to its stored form."""
    return {
        "trainingType": completion.training_type,
        "date": completion.date,
        "completedExercises": list(completion.completed_exercises),
    }


def dict_to_completion(data: Any) -> TrainingCompletion:
    """Convert a stored completion dict to TrainingCompletion."""
    if not isinstance(data, dict):
        raise ValidationError("Completion must be an object")
    try:
        return TrainingCompletion(
            training_type=str(data["trainingType"]),
            date=validate_day(str(data["date"])),
            completed_exercises=[str(x) for x in data.get("completedExercises") or []],
        )
    except KeyError as e:
        raise ValidationError(f"Completion is missing field {e.args[0]!r}") from e


# =============================================================================
# BACKEND DOCUMENTS
# =============================================================================

# Keys that do not follow the plain snake_case → camelCase rule.
# "Repeasts" is the spelling the backend has always used.
_KEY_OVERRIDES: dict[str, str] = {
    "minimum_number_of_repeats": "minimumNumberOfRepeasts",
    "maximum_number_of_repeats": "maximumNumberOfRepeasts",
}


def _camel(name: str) -> str:
    if name in _KEY_OVERRIDES:
        return _KEY_OVERRIDES[name]
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _document_from_dict(cls: type[D], data: Any, nested: dict[str, Any] | None = None) -> D:
    """
    Build a document dataclass from a camelCase dict.

    Keys the dataclass does not know are kept in ``extra``.

    Args:
        cls: Target dataclass (must have an ``extra`` field)
        data: Source dict
        nested: field name → converter for list-valued nested documents
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{cls.__name__} must be an object, got {data!r}")
    nested = nested or {}
    kwargs: dict[str, Any] = {}
    known: set[str] = set()
    for f in fields(cls):  # type: ignore[arg-type]
        if f.name == "extra":
            continue
        key = _camel(f.name)
        known.add(key)
        if key not in data:
            continue
        value = data[key]
        if f.name in nested and value is not None:
            value = [nested[f.name](v) for v in value]
        kwargs[f.name] = value
    kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValidationError(f"Invalid {cls.__name__}: {e}") from e


def _document_to_dict(doc: Any, nested: dict[str, Any] | None = None) -> dict[str, Any]:
    """Inverse of _document_from_dict; None-valued optional fields are omitted."""
    nested = nested or {}
    out: dict[str, Any] = dict(doc.extra)
    for f in fields(doc):
        if f.name == "extra":
            continue
        value = getattr(doc, f.name)
        if value is None:
            continue
        if f.name in nested:
            value = [nested[f.name](v) for v in value]
        out[_camel(f.name)] = value
    return out


def dict_to_exercise(data: Any) -> Exercise:
    return _document_from_dict(Exercise, data)


def exercise_to_dict(exercise: Exercise) -> dict[str, Any]:
    return _document_to_dict(exercise)


def dict_to_prescribed_exercise(data: Any) -> PrescribedExercise:
    return _document_from_dict(PrescribedExercise, data)


def dict_to_training_item(data: Any) -> TrainingItem:
    return _document_from_dict(TrainingItem, data, {"exercises": dict_to_prescribed_exercise})


def training_item_to_dict(item: TrainingItem) -> dict[str, Any]:
    return _document_to_dict(item, {"exercises": _document_to_dict})


def dict_to_training_plan(data: Any) -> TrainingPlan:
    """Convert a plan document, including its nested trainings."""
    return _document_from_dict(TrainingPlan, data, {"trainings": dict_to_training_item})


def training_plan_to_dict(plan: TrainingPlan) -> dict[str, Any]:
    return _document_to_dict(plan, {"trainings": training_item_to_dict})


def dict_to_plan_summary(data: Any) -> TrainingPlanSummary:
    return _document_from_dict(TrainingPlanSummary, data)


def summarize_plan(plan: TrainingPlan) -> TrainingPlanSummary:
    """Listing row for a full plan document."""
    return TrainingPlanSummary(
        plan_id=plan.plan_id,
        name=plan.name,
        trainings_count=len(plan.trainings),
        description=plan.description,
        is_admin_plan=plan.is_admin_plan,
        original_plan_id=plan.original_plan_id,
        custom_trainee=plan.custom_trainee,
        created_at=plan.created_at,
    )


def dict_to_coach(data: Any) -> Coach:
    return _document_from_dict(Coach, data)


def dict_to_trainee(data: Any) -> Trainee:
    trainee = _document_from_dict(Trainee, data)
    if trainee.plans is None:
        trainee.plans = []
    return trainee


# =============================================================================
# CLI INPUT
# =============================================================================


def parse_compact_sets(s: str) -> list[SetData] | None:
    """
    Try to parse a compact sets string.

    Format: RxN [@W]
      RxN  (N sets of R reps, any x/X/× accepted)
      @W   shared weight for all sets (omit for bodyweight)

    Examples:
        "10x3"        → 3 sets of 10 reps, bodyweight
        "10x3 @20"    → 3 sets of 10 reps at 20
        "8x4 @22.5kg" → 4 sets of 8 reps at 22.5

    Returns list of SetData, or None if format not recognised.
    """
    m = re.fullmatch(
        r"\s*(\d+)\s*[xX×]\s*(\d+)\s*(?:@\s*\+?([0-9]+(?:\.[0-9]+)?)\s*(?:kg)?)?\s*",
        s,
        re.IGNORECASE,
    )
    if not m:
        return None
    reps = int(m.group(1))
    n_sets = int(m.group(2))
    if n_sets < 1:
        return None
    weight = float(m.group(3)) if m.group(3) is not None else None
    return [SetData(weight=weight, repeats=reps) for _ in range(n_sets)]


def parse_sets_string(sets_str: str) -> list[SetData]:
    """
    Parse a sets string.

    Compact format (tried first):
        RxN [@W]        e.g. "10x3 @20"  → 3 sets of 10 reps at 20

    Per-set format (comma-separated):
        reps@weight     e.g. "10@20"
        reps            e.g. "12"      bodyweight set

    Args:
        sets_str: Sets string to parse

    Returns:
        List of SetData in performed order

    Raises:
        ValidationError: If format is invalid
    """
    if not sets_str or not sets_str.strip():
        raise ValidationError("Sets string cannot be empty")

    compact = parse_compact_sets(sets_str)
    if compact is not None:
        return compact

    sets: list[SetData] = []
    parts = [p.strip() for p in sets_str.split(",") if p.strip()]

    for part in parts:
        match_at = re.match(r"^(\d+)\s*@\s*\+?(-?\d+\.?\d*)\s*(?:kg)?$", part, re.IGNORECASE)
        match_bare = re.match(r"^(\d+)$", part)

        if match_at:
            reps = int(match_at.group(1))
            weight: float | None = float(match_at.group(2))
        elif match_bare:
            reps = int(match_bare.group(1))
            weight = None
        else:
            raise ValidationError(
                f"Invalid set format: '{part}'.\n"
                f"Use: reps@weight (e.g. 10@20), reps (e.g. 12),\n"
                f"     or compact RxN @W (e.g. 10x3 @20)."
            )

        if weight is not None:
            validate_non_negative(weight, "Weight")

        sets.append(SetData(weight=weight, repeats=reps))

    if not sets:
        raise ValidationError("No valid sets found in sets string")

    return sets
