"""
Coach-facing API with cache-first reads and write-through mutations.

Reads go through CacheLayer.load, so a screen can render from cache and
hear about fresher data through CacheLayer.subscribe.  Mutations call the
backend first and then update or invalidate the affected slot.
"""

from typing import Any, Callable, Protocol

from loguru import logger

from ..core.models import CachedData, CacheStats, Coach, Exercise, Trainee, TrainingPlanSummary
from .cache import CacheLayer
from .serializers import dict_to_coach, dict_to_exercise, dict_to_plan_summary, dict_to_trainee

PROFILE_KEY = "profile"
EXERCISES_KEY = "exercises"
TRAINING_PLANS_KEY = "training_plans"
TRAINEES_KEY = "trainees"
ADMIN_OWNER = "admin"
ADMIN_EXERCISES_KEY = "admin_exercises"


def trainee_progress_key(trainee_id: str) -> str:
    return f"trainee_progress_{trainee_id}"


class BackendError(Exception):
    """Raised by a backend when a request fails; the message is user-facing."""

    pass


class CoachBackend(Protocol):
    """Remote operations used by CachedCoachApi. All return JSON documents."""

    async def get_coach(self, coach_id: str) -> dict[str, Any]: ...

    async def update_coach(self, coach_id: str, updates: dict[str, Any]) -> dict[str, Any]: ...

    async def get_exercises(self, coach_id: str) -> list[dict[str, Any]]: ...

    async def create_exercise(self, coach_id: str, exercise: dict[str, Any]) -> dict[str, Any]: ...

    async def get_training_plans(self, coach_id: str) -> list[dict[str, Any]]: ...

    async def create_training_plan(self, coach_id: str, plan: dict[str, Any]) -> dict[str, Any]: ...

    async def get_trainees(self, coach_id: str) -> list[dict[str, Any]]: ...

    async def create_trainee(self, coach_id: str, trainee: dict[str, Any]) -> dict[str, Any]: ...

    async def assign_plan_to_trainee(self, coach_id: str, trainee_id: str, plan_id: str) -> None: ...

    async def get_trainee_progress(self, coach_id: str, trainee_id: str) -> list[dict[str, Any]]: ...

    async def get_admin_exercises(self) -> list[dict[str, Any]]: ...

    async def copy_admin_exercise(self, coach_id: str, admin_exercise_id: str) -> dict[str, Any]: ...

    async def make_custom_plan_generic(self, coach_id: str, plan_id: str) -> dict[str, Any]: ...


def _typed(result: CachedData, convert: Callable[[Any], Any]) -> CachedData:
    return CachedData(data=convert(result.data), from_cache=result.from_cache, timestamp=result.timestamp)


def _typed_list(result: CachedData, convert: Callable[[Any], Any]) -> CachedData:
    return _typed(result, lambda items: [convert(item) for item in items])


class CachedCoachApi:
    """Cache-first wrapper around a CoachBackend."""

    def __init__(self, backend: CoachBackend, cache: CacheLayer):
        self.backend = backend
        self.cache = cache

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_coach(self, coach_id: str, force_refresh: bool = False) -> CachedData[Coach]:
        result = await self.cache.load(
            coach_id, PROFILE_KEY, lambda: self.backend.get_coach(coach_id), force_refresh=force_refresh
        )
        return _typed(result, dict_to_coach)

    async def update_coach(self, coach_id: str, updates: dict[str, Any]) -> Coach:
        """Update the profile and overwrite the cached copy."""
        updated = await self.backend.update_coach(coach_id, updates)
        self.cache.set(coach_id, PROFILE_KEY, updated)
        return dict_to_coach(updated)

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------

    async def get_exercises(self, coach_id: str, force_refresh: bool = False) -> CachedData[list[Exercise]]:
        result = await self.cache.load(
            coach_id, EXERCISES_KEY, lambda: self.backend.get_exercises(coach_id), force_refresh=force_refresh
        )
        return _typed_list(result, dict_to_exercise)

    async def create_exercise(self, coach_id: str, exercise: dict[str, Any]) -> Exercise:
        created = await self.backend.create_exercise(coach_id, exercise)
        self.cache.append_to_list(coach_id, EXERCISES_KEY, created)
        return dict_to_exercise(created)

    async def get_admin_exercises(self, force_refresh: bool = False) -> CachedData[list[Exercise]]:
        """Shared admin exercise bank, cached under the admin owner."""
        result = await self.cache.load(
            ADMIN_OWNER, ADMIN_EXERCISES_KEY, self.backend.get_admin_exercises, force_refresh=force_refresh
        )
        return _typed_list(result, dict_to_exercise)

    async def copy_admin_exercise(self, coach_id: str, admin_exercise_id: str) -> Exercise:
        """Copy an admin exercise into the coach's bank."""
        copied = await self.backend.copy_admin_exercise(coach_id, admin_exercise_id)
        self.cache.append_to_list(coach_id, EXERCISES_KEY, copied)
        return dict_to_exercise(copied)

    # ------------------------------------------------------------------
    # Training plans
    # ------------------------------------------------------------------

    async def get_training_plans(
        self, coach_id: str, force_refresh: bool = False
    ) -> CachedData[list[TrainingPlanSummary]]:
        result = await self.cache.load(
            coach_id,
            TRAINING_PLANS_KEY,
            lambda: self.backend.get_training_plans(coach_id),
            force_refresh=force_refresh,
        )
        return _typed_list(result, dict_to_plan_summary)

    async def create_training_plan(self, coach_id: str, plan: dict[str, Any]) -> dict[str, Any]:
        """
        Create a plan.

        The listing holds summaries the client cannot derive reliably, so
        the plans slot is invalidated rather than patched.
        """
        created = await self.backend.create_training_plan(coach_id, plan)
        self.cache.invalidate(coach_id, TRAINING_PLANS_KEY)
        return created

    async def make_custom_plan_generic(self, coach_id: str, plan_id: str) -> dict[str, Any]:
        """Turn a trainee-specific plan into a regular one."""
        result = await self.backend.make_custom_plan_generic(coach_id, plan_id)

        def strip_custom_trainee(summary: dict[str, Any]) -> dict[str, Any]:
            return {k: v for k, v in summary.items() if k != "customTrainee"}

        self.cache.patch_list_items(
            coach_id,
            TRAINING_PLANS_KEY,
            lambda summary: isinstance(summary, dict) and summary.get("planId") == plan_id,
            strip_custom_trainee,
        )
        return result

    # ------------------------------------------------------------------
    # Trainees
    # ------------------------------------------------------------------

    async def get_trainees(self, coach_id: str, force_refresh: bool = False) -> CachedData[list[Trainee]]:
        result = await self.cache.load(
            coach_id, TRAINEES_KEY, lambda: self.backend.get_trainees(coach_id), force_refresh=force_refresh
        )
        return _typed_list(result, dict_to_trainee)

    async def create_trainee(self, coach_id: str, trainee: dict[str, Any]) -> Trainee:
        created = await self.backend.create_trainee(coach_id, trainee)
        self.cache.append_to_list(coach_id, TRAINEES_KEY, created)
        return dict_to_trainee(created)

    async def assign_plan_to_trainee(self, coach_id: str, trainee_id: str, plan_id: str) -> None:
        await self.backend.assign_plan_to_trainee(coach_id, trainee_id, plan_id)
        self.cache.invalidate(coach_id, TRAINEES_KEY)

    async def get_trainee_progress(
        self, coach_id: str, trainee_id: str, force_refresh: bool = False
    ) -> CachedData[list[dict[str, Any]]]:
        """Raw progress entries of one trainee."""
        return await self.cache.load(
            coach_id,
            trainee_progress_key(trainee_id),
            lambda: self.backend.get_trainee_progress(coach_id, trainee_id),
            force_refresh=force_refresh,
        )

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def clear_coach_cache(self, coach_id: str) -> None:
        """Drop every cached slot of a coach (e.g. on logout)."""
        logger.info(f"Clearing cached data for coach {coach_id}")
        self.cache.clear_owner(coach_id)

    def clear_all_cache(self) -> None:
        self.cache.clear_all()

    def cache_stats(self, coach_id: str) -> CacheStats:
        return self.cache.stats(coach_id)
