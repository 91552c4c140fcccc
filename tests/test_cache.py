"""
Tests for CacheLayer: freshness, stale fallback, version tagging,
background refresh notifications and write-through helpers.
"""

import json

import pytest

from trainerly.core.config import CACHE_MAX_AGE_MS, CACHE_STALE_MAX_AGE_MS
from trainerly.core.models import CacheUpdate
from trainerly.io.cache import CacheLayer
from trainerly.io.kv_store import MemoryStore

MINUTE = 60_000


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeFetch:
    """Async fetch function returning a settable value and counting calls."""

    def __init__(self, value=None, error: Exception | None = None):
        self.value = value
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def cache(kv, clock):
    return CacheLayer(kv, clock=clock)


# ===========================================================================
# Slot storage
# ===========================================================================


class TestGetSet:
    def test_stored_record_shape(self, kv, cache, clock):
        cache.set("c1", "exercises", [{"name": "Squat"}])
        doc = json.loads(kv.get_item("coach_c1_exercises"))
        assert doc == {"data": [{"name": "Squat"}], "timestamp": clock.now, "version": "1.0.0"}

    def test_fresh_hit(self, cache):
        cache.set("c1", "profile", {"name": "Dana"})
        assert cache.get("c1", "profile") == {"name": "Dana"}

    def test_missing(self, cache):
        assert cache.get("c1", "profile") is None

    def test_expired_slot_removed(self, kv, cache, clock):
        cache.set("c1", "profile", {"name": "Dana"})
        clock.advance(CACHE_MAX_AGE_MS + 1)
        assert cache.get("c1", "profile") is None
        assert kv.get_item("coach_c1_profile") is None

    def test_max_age_boundary_is_fresh(self, cache, clock):
        cache.set("c1", "profile", {"name": "Dana"})
        clock.advance(CACHE_MAX_AGE_MS)
        assert cache.get("c1", "profile") == {"name": "Dana"}

    def test_version_mismatch_removed(self, kv, cache):
        cache.set("c1", "profile", {"name": "Dana"}, version="0.9.0")
        assert cache.get("c1", "profile") is None
        assert kv.get_item("coach_c1_profile") is None

    def test_corrupt_record_is_a_miss(self, kv, cache):
        kv.set_item("coach_c1_profile", "not json")
        assert cache.get("c1", "profile") is None

    def test_quota_exceeded_is_swallowed(self, clock):
        cache = CacheLayer(MemoryStore(quota_chars=20), clock=clock)
        cache.set("c1", "exercises", ["x" * 100])
        assert cache.get("c1", "exercises") is None

    def test_has_changed(self, cache):
        assert cache.has_changed("c1", "exercises", [1, 2]) is True
        cache.set("c1", "exercises", [{"a": 1, "b": 2}])
        assert cache.has_changed("c1", "exercises", [{"b": 2, "a": 1}]) is False
        assert cache.has_changed("c1", "exercises", [{"a": 1, "b": 3}]) is True


class TestClearAndStats:
    def test_clear_owner_only_touches_that_owner(self, kv, cache):
        cache.set("c1", "profile", {"n": 1})
        cache.set("c1", "exercises", [])
        cache.set("c2", "profile", {"n": 2})
        kv.set_item("exercise-history", "{}")

        cache.clear_owner("c1")

        assert sorted(kv.keys()) == ["coach_c2_profile", "exercise-history"]

    def test_clear_all_only_touches_namespace(self, kv, clock):
        coach = CacheLayer(kv, clock=clock)
        trainee = CacheLayer(kv, namespace="trainee", clock=clock)
        coach.set("c1", "profile", {})
        trainee.set("t1", "plan", {})
        kv.set_item("exercise-history", "{}")

        coach.clear_all()

        assert sorted(kv.keys()) == ["exercise-history", "trainee_t1_plan"]

    def test_stats(self, kv, cache):
        cache.set("c1", "profile", {"n": 1})
        cache.set("c1", "exercises", [])
        cache.set("c2", "profile", {"n": 2})

        stats = cache.stats("c1")
        assert stats.total_items == 2
        assert stats.total_size == len(kv.get_item("coach_c1_profile")) + len(
            kv.get_item("coach_c1_exercises")
        )


# ===========================================================================
# Write-through helpers
# ===========================================================================


class TestWriteThrough:
    def test_append_to_cached_list(self, cache):
        cache.set("c1", "exercises", [{"id": 1}])
        cache.append_to_list("c1", "exercises", {"id": 2})
        assert cache.get("c1", "exercises") == [{"id": 1}, {"id": 2}]

    def test_append_without_cached_list_invalidates(self, kv, cache, clock):
        cache.set("c1", "exercises", [{"id": 1}])
        clock.advance(CACHE_MAX_AGE_MS + 1)
        cache.append_to_list("c1", "exercises", {"id": 2})
        assert kv.get_item("coach_c1_exercises") is None

    def test_patch_matching_items(self, cache):
        cache.set("c1", "training_plans", [{"planId": "p1", "customTrainee": "Avi"}, {"planId": "p2"}])
        cache.patch_list_items(
            "c1",
            "training_plans",
            lambda p: p["planId"] == "p1",
            lambda p: {**p, "customTrainee": None},
        )
        assert cache.get("c1", "training_plans") == [{"planId": "p1", "customTrainee": None}, {"planId": "p2"}]

    def test_invalidate(self, cache):
        cache.set("c1", "trainees", [])
        cache.invalidate("c1", "trainees")
        assert cache.get("c1", "trainees") is None


# ===========================================================================
# load
# ===========================================================================


class TestLoad:
    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self, cache):
        fetch = FakeFetch([{"id": 1}])
        result = await cache.load("c1", "exercises", fetch)

        assert result.data == [{"id": 1}]
        assert result.from_cache is False
        assert fetch.calls == 1
        assert cache.get("c1", "exercises") == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_second_load_within_max_age_served_from_cache(self, cache, clock):
        fetch = FakeFetch([{"id": 1}])
        await cache.load("c1", "exercises", fetch)
        clock.advance(MINUTE)

        result = await cache.load("c1", "exercises", fetch, background_update=False)

        assert result.from_cache is True
        assert result.data == [{"id": 1}]
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_cache_hit_returns_before_background_fetch(self, cache):
        fetch = FakeFetch([{"id": 1}])
        await cache.load("c1", "exercises", fetch)

        result = await cache.load("c1", "exercises", fetch)
        assert result.from_cache is True
        assert fetch.calls == 1  # background task not yet run

        await cache.wait_for_background()
        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_expired_slot_refetched(self, cache, clock):
        fetch = FakeFetch([1])
        await cache.load("c1", "exercises", fetch)
        clock.advance(CACHE_MAX_AGE_MS + 1)
        fetch.value = [1, 2]

        result = await cache.load("c1", "exercises", fetch)

        assert result.from_cache is False
        assert result.data == [1, 2]
        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_custom_max_age(self, cache, clock):
        fetch = FakeFetch([1])
        await cache.load("c1", "exercises", fetch)
        clock.advance(2 * MINUTE)

        result = await cache.load("c1", "exercises", fetch, max_age_ms=MINUTE)
        assert result.from_cache is False

    @pytest.mark.asyncio
    async def test_force_refresh_skips_cache(self, cache):
        fetch = FakeFetch([1])
        await cache.load("c1", "exercises", fetch)

        result = await cache.load("c1", "exercises", fetch, force_refresh=True)
        assert result.from_cache is False
        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_version_mismatch_refetches(self, cache):
        cache.set("c1", "exercises", ["old"], version="0.9.0")
        fetch = FakeFetch(["new"])

        result = await cache.load("c1", "exercises", fetch)

        assert result.from_cache is False
        assert result.data == ["new"]

    @pytest.mark.asyncio
    async def test_stale_fallback_on_fetch_error(self, cache, clock):
        await cache.load("c1", "exercises", FakeFetch(["cached"]))
        clock.advance(2 * 60 * MINUTE)  # expired, within 24 h

        result = await cache.load("c1", "exercises", FakeFetch(error=RuntimeError("offline")))

        assert result.from_cache is True
        assert result.data == ["cached"]

    @pytest.mark.asyncio
    async def test_error_beyond_stale_window_raises_and_removes(self, kv, cache, clock):
        await cache.load("c1", "exercises", FakeFetch(["cached"]))
        clock.advance(CACHE_STALE_MAX_AGE_MS + 1)

        with pytest.raises(RuntimeError, match="offline"):
            await cache.load("c1", "exercises", FakeFetch(error=RuntimeError("offline")))
        assert kv.get_item("coach_c1_exercises") is None

    @pytest.mark.asyncio
    async def test_error_without_cache_raises(self, cache):
        with pytest.raises(RuntimeError):
            await cache.load("c1", "exercises", FakeFetch(error=RuntimeError("offline")))

    @pytest.mark.asyncio
    async def test_storage_failure_still_returns_fetched_data(self, clock):
        cache = CacheLayer(MemoryStore(quota_chars=10), clock=clock)
        result = await cache.load("c1", "exercises", FakeFetch(["x" * 50]))
        assert result.data == ["x" * 50]
        assert result.from_cache is False


# ===========================================================================
# Background refresh notifications
# ===========================================================================


class TestBackgroundUpdates:
    @pytest.mark.asyncio
    async def test_unchanged_value_does_not_notify(self, cache):
        updates: list[CacheUpdate] = []
        cache.subscribe(updates.append)
        fetch = FakeFetch([{"id": 1}])

        await cache.load("c1", "exercises", fetch)
        await cache.load("c1", "exercises", fetch)
        await cache.wait_for_background()

        assert updates == []

    @pytest.mark.asyncio
    async def test_unchanged_value_with_long_max_age_does_not_notify(self, cache, clock):
        updates: list[CacheUpdate] = []
        cache.subscribe(updates.append)
        fetch = FakeFetch([{"id": 1}])

        await cache.load("c1", "exercises", fetch, max_age_ms=60 * MINUTE)
        clock.advance(10 * MINUTE)
        result = await cache.load("c1", "exercises", fetch, max_age_ms=60 * MINUTE)
        await cache.wait_for_background()

        assert result.from_cache
        assert updates == []
        assert cache.get("c1", "exercises", max_age_ms=60 * MINUTE) == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_changed_value_updates_slot_and_notifies(self, cache):
        updates: list[CacheUpdate] = []
        cache.subscribe(updates.append)
        fetch = FakeFetch([{"id": 1}])
        await cache.load("c1", "exercises", fetch)

        fetch.value = [{"id": 1}, {"id": 2}]
        result = await cache.load("c1", "exercises", fetch)
        assert result.data == [{"id": 1}]

        await cache.wait_for_background()

        assert updates == [CacheUpdate(key="exercises", owner_id="c1", data=[{"id": 1}, {"id": 2}])]
        assert cache.get("c1", "exercises") == [{"id": 1}, {"id": 2}]

    @pytest.mark.asyncio
    async def test_background_error_is_silent(self, cache):
        updates: list[CacheUpdate] = []
        cache.subscribe(updates.append)
        await cache.load("c1", "exercises", FakeFetch([1]))

        await cache.load("c1", "exercises", FakeFetch(error=RuntimeError("offline")))
        await cache.wait_for_background()

        assert updates == []
        assert cache.get("c1", "exercises") == [1]

    @pytest.mark.asyncio
    async def test_subscription_filters_and_unsubscribe(self, cache):
        profile_updates: list[CacheUpdate] = []
        other_owner: list[CacheUpdate] = []
        cache.subscribe(profile_updates.append, owner_id="c1", key="profile")
        unsubscribe = cache.subscribe(other_owner.append, owner_id="c2")

        fetch = FakeFetch({"v": 1})
        await cache.load("c1", "profile", fetch)
        fetch.value = {"v": 2}
        await cache.load("c1", "profile", fetch)
        await cache.wait_for_background()

        assert [u.data for u in profile_updates] == [{"v": 2}]
        assert other_owner == []

        unsubscribe()
        unsubscribe()  # idempotent

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, cache):
        received: list[CacheUpdate] = []

        def broken(update: CacheUpdate) -> None:
            raise RuntimeError("listener bug")

        cache.subscribe(broken)
        cache.subscribe(received.append)

        fetch = FakeFetch([1])
        await cache.load("c1", "exercises", fetch)
        fetch.value = [2]
        await cache.load("c1", "exercises", fetch)
        await cache.wait_for_background()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_async_listener_awaited(self, cache):
        received: list[CacheUpdate] = []

        async def listener(update: CacheUpdate) -> None:
            received.append(update)

        cache.subscribe(listener)
        fetch = FakeFetch([1])
        await cache.load("c1", "exercises", fetch)
        fetch.value = [2]
        await cache.load("c1", "exercises", fetch)
        await cache.wait_for_background()

        assert [u.data for u in received] == [[2]]
