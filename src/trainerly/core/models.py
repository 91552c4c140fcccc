"""
Data models for trainerly.

Core dataclasses for workout history, the Adjusted Volume series,
cache records, daily progress and the coach backend documents.

Backend documents keep every optional field optional: legacy records
routinely omit muscle group, notes or links, so no stricter types are
inferred than the backend guarantees.  Unknown keys are preserved in
``extra`` so a read-modify-write never drops data.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts the trailing ``Z`` produced by JavaScript's ``toISOString()``.
    Naive timestamps are taken to be UTC.

    Raises:
        ValueError: If the string is not a valid ISO-8601 timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def epoch_ms(value: str) -> int:
    """Milliseconds since the epoch for an ISO-8601 timestamp."""
    return int(parse_timestamp(value).timestamp() * 1000)


def format_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a trailing Z ("2026-02-18T10:00:00.000Z")."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# WORKOUT HISTORY
# =============================================================================


@dataclass
class SetData:
    """
    One performed set.

    Either field may be missing: bodyweight sets have no weight, and
    some legacy clients recorded weight without repeats.
    """

    weight: float | None = None
    repeats: int | None = None


@dataclass
class WorkoutEntry:
    """
    One completed exercise instance.

    ``weight`` and ``repeats`` mirror the first set and exist for display
    and for entries written before per-set data was recorded.
    """

    date: str  # ISO-8601 timestamp
    rest_time_seconds: int
    completed_sets: int
    total_sets: int
    weight: float | None = None
    repeats: int | None = None
    sets_data: list[SetData] | None = None

    def __post_init__(self) -> None:
        """Validate entry data."""
        parse_timestamp(self.date)

        if self.rest_time_seconds < 0:
            raise ValueError("rest_time_seconds must be non-negative")
        if self.completed_sets < 0:
            raise ValueError("completed_sets must be non-negative")
        if self.total_sets < 0:
            raise ValueError("total_sets must be non-negative")
        if self.completed_sets > self.total_sets:
            raise ValueError(
                f"completed_sets ({self.completed_sets}) exceeds total_sets ({self.total_sets})"
            )

    @property
    def timestamp(self) -> datetime:
        """The entry date as an aware UTC datetime."""
        return parse_timestamp(self.date)


ExerciseHistory = dict[str, list[WorkoutEntry]]


@dataclass
class ExerciseDefaults:
    """Saved per-exercise preferences."""

    weight: float | None = None
    rest_time: int | None = None
    repeats: int | None = None


@dataclass(frozen=True)
class AdjustedVolumeSample:
    """
    Adjusted Volume for one workout entry.

    Derived on demand and never persisted.
    """

    date: str
    adjusted_volume: int
    volume_load: int
    rest_efficiency: float
    consistency_factor: float
    progressive_overload_bonus: float
    completed_sets: int
    total_sets: int


# =============================================================================
# DAILY PROGRESS
# =============================================================================


@dataclass
class DailyTrainingProgress:
    """Sets completed per exercise for one training on one calendar day."""

    date: str  # YYYY-MM-DD
    training_type: str
    exercise_progress: dict[str, int] = field(default_factory=dict)


@dataclass
class TrainingCompletion:
    """A finished training session."""

    training_type: str
    date: str  # YYYY-MM-DD
    completed_exercises: list[str] = field(default_factory=list)


# =============================================================================
# CACHE
# =============================================================================


@dataclass
class CacheRecord(Generic[T]):
    """A cached value with the time it was written and its schema version."""

    data: T
    timestamp: int  # epoch ms
    version: str


@dataclass
class CachedData(Generic[T]):
    """Result of a read-through load."""

    data: T
    from_cache: bool
    timestamp: int  # epoch ms


@dataclass(frozen=True)
class CacheUpdate:
    """Notification emitted when a background refresh changed a slot."""

    key: str
    owner_id: str
    data: Any


@dataclass(frozen=True)
class CacheStats:
    """Number of cached slots and total stored characters for an owner."""

    total_items: int
    total_size: int


# =============================================================================
# BACKEND DOCUMENTS
# =============================================================================


@dataclass
class Exercise:
    """An exercise in a coach's exercise bank."""

    exercise_id: str
    coach_id: str
    name: str
    muscle_group: str | None = None
    link: str | None = None  # video URL
    note: str | None = None
    is_admin_exercise: bool | None = None
    original_exercise_id: str | None = None  # admin exercise this was copied from
    created_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class PrescribedExercise:
    """An exercise as prescribed inside a training."""

    exercise_name: str
    number_of_sets: int
    minimum_time_to_rest: int
    maximum_time_to_rest: int
    minimum_number_of_repeats: int
    maximum_number_of_repeats: int
    prescription_note: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TrainingItem:
    """One training (workout day) inside a plan."""

    training_id: str
    name: str
    order: int = 0
    exercises: list[PrescribedExercise] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TrainingPlan:
    """A named, optionally versioned, ordered collection of trainings."""

    plan_id: str
    name: str
    coach_id: str | None = None
    description: str | None = None
    version: str | None = None
    trainings: list[TrainingItem] = field(default_factory=list)
    is_admin_plan: bool | None = None
    original_plan_id: str | None = None
    custom_trainee: str | None = None  # trainee name for custom plans
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TrainingPlanSummary:
    """Plan listing row as returned by list-by-owner."""

    plan_id: str
    name: str
    trainings_count: int = 0
    description: str | None = None
    is_admin_plan: bool | None = None
    original_plan_id: str | None = None
    custom_trainee: str | None = None
    created_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Coach:
    """Coach profile."""

    coach_id: str
    name: str
    email: str | None = None
    nickname: str | None = None
    phone: str | None = None
    age: int | None = None
    is_admin: bool | None = None
    valid: bool | None = None
    created_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Trainee:
    """Trainee registered under a coach."""

    trainer_id: str
    coach_id: str
    first_name: str
    last_name: str
    email: str | None = None
    plans: list[str] = field(default_factory=list)  # last one is the active plan
    created_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def active_plan_id(self) -> str | None:
        """The currently assigned plan, if any."""
        return self.plans[-1] if self.plans else None
