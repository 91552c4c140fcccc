"""
Namespaced read-through cache over a KeyValueStore.

Each cache slot is addressed by (owner_id, key) and stored as
``{data, timestamp, version}`` under ``<namespace>_<owner_id>_<key>``.

Slot lifecycle:
    Absent  --fetch ok-->  Fresh  --max_age passes-->  Expired
    Fresh/Expired  --version differs-->  Absent (removed)
    any  --remove / clear-->  Absent

``load`` returns a fresh slot immediately and, optionally, refreshes it in
a background task; subscribers hear about the refresh only if the value
actually changed.  When a fetch fails, a slot up to the stale window old
(24 h by default) is served instead of the error.

Storage problems never escape this module: they are logged and behave
like a cache miss.
"""

import asyncio
import inspect
import json
import time
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from ..core.config import CACHE_MAX_AGE_MS, CACHE_NAMESPACE, CACHE_STALE_MAX_AGE_MS, CACHE_VERSION
from ..core.models import CachedData, CacheRecord, CacheStats, CacheUpdate
from .kv_store import KeyValueStore, StorageError

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]
CacheListener = Callable[[CacheUpdate], Any]

_STORAGE_ERRORS = (StorageError, TypeError, ValueError)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _normalize(value: Any) -> Any:
    """The value as it will read back from storage (tuples → lists, etc.)."""
    return json.loads(json.dumps(value))


class CacheLayer:
    """
    Read-through cache with TTL, version tagging, stale fallback and
    background refresh notifications.
    """

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str = CACHE_NAMESPACE,
        version: str = CACHE_VERSION,
        max_age_ms: int = CACHE_MAX_AGE_MS,
        stale_max_age_ms: int = CACHE_STALE_MAX_AGE_MS,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Initialize the cache.

        Args:
            store: Backing key-value store
            namespace: Prefix that scopes every cache key in the store
            version: Default schema version; records tagged otherwise are dropped
            max_age_ms: Freshness window
            stale_max_age_ms: Max age of a record served when a fetch fails
            clock: Epoch-millisecond clock (injectable for tests)
        """
        self.store = store
        self.namespace = namespace
        self.version = version
        self.max_age_ms = max_age_ms
        self.stale_max_age_ms = stale_max_age_ms
        self.clock = clock
        self._listeners: list[tuple[str | None, str | None, CacheListener]] = []
        self._tasks: set[asyncio.Future] = set()

    # ------------------------------------------------------------------
    # Slot storage
    # ------------------------------------------------------------------

    def _owner_prefix(self, owner_id: str) -> str:
        return f"{self.namespace}_{owner_id}_"

    def _slot_key(self, owner_id: str, key: str) -> str:
        return f"{self._owner_prefix(owner_id)}{key}"

    def _read(self, owner_id: str, key: str) -> CacheRecord | None:
        """Raw slot contents regardless of age or version; None if unreadable."""
        try:
            raw = self.store.get_item(self._slot_key(owner_id, key))
            if raw is None:
                return None
            doc = json.loads(raw)
            return CacheRecord(data=doc["data"], timestamp=int(doc["timestamp"]), version=str(doc["version"]))
        except (KeyError, *_STORAGE_ERRORS) as e:
            logger.warning(f"Failed to read cache {key} for {owner_id}: {e}")
            return None

    def _age(self, record: CacheRecord) -> int:
        return self.clock() - record.timestamp

    def set(self, owner_id: str, key: str, data: Any, version: str | None = None) -> None:
        """Store data in a slot, stamped with the current time."""
        try:
            doc = {"data": data, "timestamp": self.clock(), "version": version or self.version}
            self.store.set_item(self._slot_key(owner_id, key), json.dumps(doc))
            logger.debug(f"Cache SET: {key} for {owner_id}")
        except _STORAGE_ERRORS as e:
            logger.warning(f"Failed to set cache {key} for {owner_id}: {e}")

    def get_record(
        self,
        owner_id: str,
        key: str,
        max_age_ms: int | None = None,
        version: str | None = None,
    ) -> CacheRecord | None:
        """
        The slot if it is fresh and version-matching.

        Expired and version-mismatched slots are removed.
        """
        record = self._read(owner_id, key)
        if record is None:
            logger.debug(f"Cache MISS: {key} for {owner_id}")
            return None

        max_age = max_age_ms if max_age_ms is not None else self.max_age_ms
        age = self._age(record)
        if age > max_age:
            logger.debug(f"Cache EXPIRED: {key} for {owner_id} (age: {round(age / 1000)}s)")
            self.remove(owner_id, key)
            return None

        if record.version != (version or self.version):
            logger.debug(f"Cache VERSION MISMATCH: {key} for {owner_id}")
            self.remove(owner_id, key)
            return None

        logger.debug(f"Cache HIT: {key} for {owner_id}")
        return record

    def get(
        self,
        owner_id: str,
        key: str,
        max_age_ms: int | None = None,
        version: str | None = None,
    ) -> Any | None:
        """Cached data if the slot is fresh, else None."""
        record = self.get_record(owner_id, key, max_age_ms, version)
        return record.data if record is not None else None

    def has_changed(
        self,
        owner_id: str,
        key: str,
        new_data: Any,
        version: str | None = None,
        max_age_ms: int | None = None,
    ) -> bool:
        """True if new_data differs from the fresh cached value (or nothing is cached)."""
        record = self.get_record(owner_id, key, max_age_ms, version)
        if record is None:
            return True
        try:
            return _normalize(new_data) != record.data
        except (TypeError, ValueError):
            return True

    def remove(self, owner_id: str, key: str) -> None:
        """Remove one slot."""
        try:
            self.store.remove_item(self._slot_key(owner_id, key))
            logger.debug(f"Cache REMOVE: {key} for {owner_id}")
        except StorageError as e:
            logger.warning(f"Failed to remove cache {key} for {owner_id}: {e}")

    invalidate = remove

    def _remove_prefixed(self, prefix: str) -> int:
        try:
            doomed = [k for k in self.store.keys() if k.startswith(prefix)]
            for k in doomed:
                self.store.remove_item(k)
            return len(doomed)
        except StorageError as e:
            logger.warning(f"Failed to clear cache with prefix {prefix!r}: {e}")
            return 0

    def clear_owner(self, owner_id: str) -> None:
        """Remove every slot of one owner."""
        removed = self._remove_prefixed(self._owner_prefix(owner_id))
        logger.info(f"Cleared cache for {owner_id} ({removed} items)")

    def clear_all(self) -> None:
        """Remove every slot in this cache's namespace."""
        removed = self._remove_prefixed(f"{self.namespace}_")
        logger.info(f"Cleared all cache ({removed} items)")

    def stats(self, owner_id: str) -> CacheStats:
        """Slot count and stored size for one owner."""
        total_items = 0
        total_size = 0
        prefix = self._owner_prefix(owner_id)
        try:
            for k in self.store.keys():
                if k.startswith(prefix):
                    total_items += 1
                    total_size += len(self.store.get_item(k) or "")
        except StorageError as e:
            logger.warning(f"Failed to get cache stats for {owner_id}: {e}")
        return CacheStats(total_items=total_items, total_size=total_size)

    # ------------------------------------------------------------------
    # Write-through helpers
    # ------------------------------------------------------------------

    def append_to_list(self, owner_id: str, key: str, item: Any) -> None:
        """
        Append an item to a cached list after a successful create.

        If no fresh list is cached the slot is removed instead, so the
        next load refetches the complete list.
        """
        cached = self.get(owner_id, key)
        if not isinstance(cached, list):
            self.remove(owner_id, key)
            return
        self.set(owner_id, key, [*cached, item])

    def patch_list_items(
        self,
        owner_id: str,
        key: str,
        match: Callable[[Any], bool],
        patch: Callable[[Any], Any],
    ) -> None:
        """
        Replace matching items of a cached list after a successful update.

        Falls back to removing the slot when no fresh list is cached.
        """
        cached = self.get(owner_id, key)
        if not isinstance(cached, list):
            self.remove(owner_id, key)
            return
        self.set(owner_id, key, [patch(item) if match(item) else item for item in cached])

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(
        self,
        callback: CacheListener,
        owner_id: str | None = None,
        key: str | None = None,
    ) -> Callable[[], None]:
        """
        Listen for background updates.

        Args:
            callback: Called with a CacheUpdate; may be sync or async
            owner_id: Only updates for this owner (None = any)
            key: Only updates for this key (None = any)

        Returns:
            Function that removes the subscription
        """
        entry = (owner_id, key, callback)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _track(self, task: asyncio.Future) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self, update: CacheUpdate) -> None:
        for owner_id, key, callback in list(self._listeners):
            if owner_id is not None and owner_id != update.owner_id:
                continue
            if key is not None and key != update.key:
                continue
            try:
                result = callback(update)
                if inspect.isawaitable(result):
                    self._track(asyncio.ensure_future(result))
            except Exception:
                logger.exception(f"Cache listener failed for {update.key} ({update.owner_id})")

    # ------------------------------------------------------------------
    # Read-through
    # ------------------------------------------------------------------

    async def _refresh_in_background(
        self, owner_id: str, key: str, fetch_fn: FetchFn, version: str, max_age_ms: int
    ) -> None:
        try:
            fresh = await fetch_fn()
        except Exception as e:
            logger.warning(f"Background cache update failed for {key} ({owner_id}): {e}")
            return

        if self.has_changed(owner_id, key, fresh, version, max_age_ms):
            self.set(owner_id, key, fresh, version)
            logger.info(f"Background update: {key} for {owner_id}")
            self._notify(CacheUpdate(key=key, owner_id=owner_id, data=fresh))

    async def load(
        self,
        owner_id: str,
        key: str,
        fetch_fn: FetchFn,
        *,
        force_refresh: bool = False,
        background_update: bool = True,
        max_age_ms: int | None = None,
        version: str | None = None,
    ) -> CachedData:
        """
        Load a value cache-first.

        Args:
            owner_id: Slot owner (coach id)
            key: Slot key
            fetch_fn: Async callable producing the authoritative value
            force_refresh: Skip the cache and fetch
            background_update: After a cache hit, refetch in the background
            max_age_ms: Freshness window (default: the cache's)
            version: Expected schema version (default: the cache's)

        Returns:
            CachedData with from_cache=True for cache hits and stale fallbacks

        Raises:
            Exception: Whatever fetch_fn raised, when no stale slot exists
        """
        version = version or self.version
        max_age = max_age_ms if max_age_ms is not None else self.max_age_ms

        record = self._read(owner_id, key)
        if record is not None and record.version != version:
            logger.debug(f"Cache VERSION MISMATCH: {key} for {owner_id}")
            self.remove(owner_id, key)
            record = None

        if not force_refresh and record is not None and self._age(record) <= max_age:
            logger.debug(f"Cache HIT: {key} for {owner_id}")
            if background_update:
                self._track(asyncio.ensure_future(
                    self._refresh_in_background(owner_id, key, fetch_fn, version, max_age)
                ))
            return CachedData(data=record.data, from_cache=True, timestamp=self.clock())

        try:
            fresh = await fetch_fn()
        except Exception as e:
            if record is not None and self._age(record) <= self.stale_max_age_ms:
                logger.warning(f"Fetch failed for {key} ({owner_id}), returning stale cache: {e}")
                return CachedData(data=record.data, from_cache=True, timestamp=self.clock())
            if record is not None:
                self.remove(owner_id, key)
            raise

        self.set(owner_id, key, fresh, version)
        return CachedData(data=fresh, from_cache=False, timestamp=self.clock())

    async def wait_for_background(self) -> None:
        """Wait until every pending background refresh has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
