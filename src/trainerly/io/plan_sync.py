"""
Periodic training-plan sync for the trainee app.

The server is asked for plans at most once per cooldown.  Between
fetches (and when a fetch fails) the last plan received is served from
the store, filtered against the version the caller already has.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from loguru import logger

from ..core.config import LAST_PLAN_FETCH_KEY, PLAN_REFRESH_COOLDOWN_SECONDS, SERVER_TRAINING_PLAN_KEY
from ..core.models import TrainingPlan
from ..core.versioning import filter_newer_plans, latest_plan, should_refresh
from .kv_store import KeyValueStore, StorageError
from .serializers import ValidationError, dict_to_training_plan, training_plan_to_dict

PlanFetchFn = Callable[[], Awaitable[list[dict[str, Any]]]]


@dataclass
class PlanSyncResult:
    """Outcome of fetch_new_plans."""

    success: bool
    data: list[TrainingPlan] = field(default_factory=list)
    error: str | None = None
    fetched: bool = False  # True if the server was actually asked


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TrainingPlanSync:
    """Fetches newer plans from the server, rate-limited by a cooldown."""

    def __init__(
        self,
        store: KeyValueStore,
        fetch_fn: PlanFetchFn,
        cooldown: timedelta = timedelta(seconds=PLAN_REFRESH_COOLDOWN_SECONDS),
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Args:
            store: Key-value store for the fetch timestamp and stored plan
            fetch_fn: Async callable returning the server's plan documents
            cooldown: Minimum interval between server fetches
            clock: Returns the current aware datetime
        """
        self.store = store
        self.fetch_fn = fetch_fn
        self.cooldown = cooldown
        self.clock = clock

    def last_fetch(self) -> datetime | None:
        """Time of the last successful fetch, or None."""
        try:
            raw = self.store.get_item(LAST_PLAN_FETCH_KEY)
            if raw is None:
                return None
            return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
        except (StorageError, ValueError) as e:
            logger.warning(f"Ignoring unreadable last fetch time: {e}")
            return None

    def stored_plan(self) -> TrainingPlan | None:
        """The last plan received from the server."""
        try:
            raw = self.store.get_item(SERVER_TRAINING_PLAN_KEY)
            return dict_to_training_plan(json.loads(raw)) if raw else None
        except (StorageError, ValidationError, ValueError) as e:
            logger.warning(f"Ignoring unreadable stored training plan: {e}")
            return None

    def _stored_newer_than(self, current_version: str | None) -> list[TrainingPlan]:
        plan = self.stored_plan()
        return filter_newer_plans([plan], current_version) if plan else []

    def _remember(self, plan: TrainingPlan | None) -> None:
        try:
            if plan is not None:
                self.store.set_item(SERVER_TRAINING_PLAN_KEY, json.dumps(training_plan_to_dict(plan)))
            now_ms = int(self.clock().timestamp() * 1000)
            self.store.set_item(LAST_PLAN_FETCH_KEY, str(now_ms))
        except StorageError as e:
            logger.error(f"Error storing fetched training plan: {e}")

    async def fetch_new_plans(self, current_version: str | None, force: bool = False) -> PlanSyncResult:
        """
        Plans newer than current_version.

        Args:
            current_version: Version the caller already has (None = none)
            force: Ignore the cooldown

        Returns:
            PlanSyncResult; on a fetch error success is False and data holds
            the stored plan if it is newer
        """
        if not force and not should_refresh(self.last_fetch(), self.clock(), self.cooldown):
            logger.debug("Skipping training plan fetch (cooldown)")
            return PlanSyncResult(success=True, data=self._stored_newer_than(current_version))

        try:
            documents = await self.fetch_fn()
            plans = [dict_to_training_plan(d) for d in documents]
        except Exception as e:
            logger.warning(f"Training plan fetch failed, using stored plan: {e}")
            return PlanSyncResult(
                success=False,
                data=self._stored_newer_than(current_version),
                error=str(e),
                fetched=True,
            )

        self._remember(latest_plan(plans))
        logger.info(f"Fetched {len(plans)} training plans")
        return PlanSyncResult(success=True, data=filter_newer_plans(plans, current_version), fetched=True)
