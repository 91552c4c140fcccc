"""
Configuration constants for the workout history, scoring and cache layers.

All adjustable parameters are centralized here for easy tuning.
Values can be overridden per installation through trainerly.yaml
(see config_loader.py).
"""

from dataclasses import dataclass
from typing import Final

# =============================================================================
# PERSISTED STORE KEYS
# =============================================================================

EXERCISE_HISTORY_KEY: Final[str] = "exercise-history"
EXERCISE_DEFAULTS_KEY: Final[str] = "exercise-defaults"
TRAINING_PROGRESS_KEY: Final[str] = "daily-training-progress"
TRAINING_COMPLETIONS_KEY: Final[str] = "training-completions"
LAST_PLAN_FETCH_KEY: Final[str] = "last-trainings-fetch"
SERVER_TRAINING_PLAN_KEY: Final[str] = "server-training-plan"

# =============================================================================
# HISTORY RETENTION
# =============================================================================

DEDUP_WINDOW_MS: Final[int] = 1000  # Saves closer than this are the same save
HISTORY_RETENTION: Final[int] = 50  # Max entries kept per exercise
COMPLETIONS_RETENTION: Final[int] = 100  # Max completions kept per training type

# =============================================================================
# ADJUSTED VOLUME
# =============================================================================

REST_REF_SECONDS: Final[int] = 180  # Rest time that yields RE = 1.0
REST_SCALE_SECONDS: Final[int] = 300  # Seconds of rest difference per 1.0 of RE
REST_EFFICIENCY_MIN: Final[float] = 0.5
REST_EFFICIENCY_MAX: Final[float] = 1.5
BODYWEIGHT_REP_LOAD: Final[int] = 2  # Load credited per rep when weight is 0
OVERLOAD_BONUS_CAP: Final[float] = 0.5  # Max +50% progressive overload bonus

# =============================================================================
# CACHE
# =============================================================================

CACHE_NAMESPACE: Final[str] = "coach"
CACHE_VERSION: Final[str] = "1.0.0"
CACHE_MAX_AGE_MS: Final[int] = 5 * 60 * 1000  # 5 minutes
CACHE_STALE_MAX_AGE_MS: Final[int] = 24 * 60 * 60 * 1000  # 24 hours

# =============================================================================
# PLAN REFRESH
# =============================================================================

PLAN_REFRESH_COOLDOWN_SECONDS: Final[int] = 24 * 60 * 60  # Once per day


@dataclass(frozen=True)
class Settings:
    """Runtime settings, defaulting to the module constants above."""

    dedup_window_ms: int = DEDUP_WINDOW_MS
    history_retention: int = HISTORY_RETENTION
    completions_retention: int = COMPLETIONS_RETENTION
    cache_namespace: str = CACHE_NAMESPACE
    cache_version: str = CACHE_VERSION
    cache_max_age_ms: int = CACHE_MAX_AGE_MS
    cache_stale_max_age_ms: int = CACHE_STALE_MAX_AGE_MS
    plan_refresh_cooldown_seconds: int = PLAN_REFRESH_COOLDOWN_SECONDS
    storage_path: str | None = None  # None = ~/.trainerly/storage.json
    log_level: str = "WARNING"
