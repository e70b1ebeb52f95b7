"""
Process-local Cache for the Pledge Ledger

Namespaced key -> value store with per-entry expiration, used to avoid
recomputing campaign listings and donation aggregates. Stale-tolerant:
read-through on the way in, explicit invalidation on every write path.

Entries can carry tags naming the rows they were derived from
(``campaign:<id>``, ``wallet:<address>``). Write paths invalidate by tag
instead of scanning keys for substrings.

The cache is never a source of truth. Any failure reading it is treated as
a miss by ``get_or_fetch``.
"""

import asyncio
import itertools
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


# ====================
# Tags and keys
# ====================


class CacheTags:
    """Structured invalidation tags"""

    CAMPAIGN_LIST = "campaigns:list"

    @staticmethod
    def campaign(campaign_id: str) -> str:
        return f"campaign:{campaign_id}"

    @staticmethod
    def wallet(wallet_address: str) -> str:
        return f"wallet:{wallet_address}"


class CacheKeys:
    """Key builders shared by readers and writers"""

    @staticmethod
    def campaign(campaign_id: str) -> str:
        return f"campaign:{campaign_id}"

    @staticmethod
    def campaign_by_slug(slug: str) -> str:
        return f"campaign:slug:{slug}"

    @staticmethod
    def campaign_list(filters: Dict[str, Any]) -> str:
        return f"campaigns:{json.dumps(filters, sort_keys=True, default=str)}"

    @staticmethod
    def donation_summary(campaign_id: str) -> str:
        return f"donations:summary:{campaign_id}"

    @staticmethod
    def wallet_donations(wallet_address: str) -> str:
        return f"donations:wallet:{wallet_address}"

    @staticmethod
    def campaign_donations(campaign_id: str, page: int, limit: int) -> str:
        return f"donations:campaign:{campaign_id}:{page}:{limit}"

    @staticmethod
    def user(wallet_address: str) -> str:
        return f"user:{wallet_address}"


# ====================
# Cache
# ====================


@dataclass
class _Entry:
    value: Any
    stored_at: float
    ttl: float
    version: int
    tags: Tuple[str, ...] = field(default_factory=tuple)


class Cache:
    """One cache namespace

    Safe for concurrent use from threads and tasks; the lock only guards
    dictionary operations and is never held across an await.
    """

    def __init__(
        self,
        namespace: str,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._tag_index: Dict[str, Set[str]] = {}
        self._versions = itertools.count(1)
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Internal helpers (caller holds the lock)

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]
        return True

    def _is_expired(self, entry: _Entry) -> bool:
        return self._clock() - entry.stored_at > entry.ttl

    # Public API

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry):
                self._remove(key)
                logger.debug(f"[cache:{self.namespace}] expired {key}")
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None, tags: Iterable[str] = ()) -> None:
        """
        Store ``value`` under ``key``.

        With an explicit ``ttl`` the entry is also evicted by a deferred
        callback on the running event loop, so it does not linger unread.
        """
        effective_ttl = ttl if ttl is not None else self.default_ttl
        tag_tuple = tuple(dict.fromkeys(tags))

        with self._lock:
            self._remove(key)
            version = next(self._versions)
            self._entries[key] = _Entry(
                value=value,
                stored_at=self._clock(),
                ttl=effective_ttl,
                version=version,
                tags=tag_tuple,
            )
            for tag in tag_tuple:
                self._tag_index.setdefault(tag, set()).add(key)

        if ttl is not None:
            self._schedule_eviction(key, version, ttl)

    def _schedule_eviction(self, key: str, version: int, ttl: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: lazy expiry in get() still applies
            return
        loop.call_later(ttl, self._evict_if_unchanged, key, version)

    def _evict_if_unchanged(self, key: str, version: int) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.version == version:
                self._remove(key)
                logger.debug(f"[cache:{self.namespace}] evicted {key}")

    def delete(self, key: str) -> bool:
        """Remove one entry; returns whether it existed"""
        with self._lock:
            return self._remove(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tag_index.clear()

    def list_keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def keys_for_tag(self, tag: str) -> List[str]:
        with self._lock:
            return sorted(self._tag_index.get(tag, ()))

    def invalidate_tag(self, tag: str) -> int:
        """Remove every entry carrying ``tag``; returns the number removed"""
        with self._lock:
            keys = list(self._tag_index.get(tag, ()))
            for key in keys:
                self._remove(key)
        if keys:
            logger.debug(f"[cache:{self.namespace}] invalidated {len(keys)} key(s) for {tag}")
        return len(keys)

    def update_collection_item(
        self,
        collection_key: str,
        item_id: Any,
        updater: Any,
        id_field: str = "id",
    ) -> None:
        """
        Patch one element of a cached list in place.

        ``updater`` is either a replacement value or a callable receiving the
        existing element. When the collection is not cached, a callable is a
        no-op and a value seeds a single-element collection.
        """
        with self._lock:
            collection = self.get(collection_key)

            if collection is None:
                if not callable(updater):
                    self.set(collection_key, [updater])
                return

            entry = self._entries[collection_key]
            patched = [
                (updater(item) if callable(updater) else updater)
                if _item_id(item, id_field) == item_id
                else item
                for item in collection
            ]
            self.set(collection_key, patched, tags=entry.tags)


def _item_id(item: Any, id_field: str) -> Any:
    if isinstance(item, dict):
        return item.get(id_field)
    return getattr(item, id_field, None)


# ====================
# Registry
# ====================


class CacheRegistry:
    """The ledger's cache namespaces, injected into services"""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.campaigns = Cache("campaigns", default_ttl, clock)
        self.users = Cache("users", default_ttl, clock)
        self.donations = Cache("donations", default_ttl, clock)

    def namespaces(self) -> List[Cache]:
        return [self.campaigns, self.users, self.donations]

    def invalidate(self, *tags: str) -> int:
        """Invalidate tags across all namespaces"""
        removed = 0
        for cache in self.namespaces():
            for tag in tags:
                removed += cache.invalidate_tag(tag)
        return removed

    def clear(self) -> None:
        for cache in self.namespaces():
            cache.clear()


async def get_or_fetch(
    cache: Cache,
    key: str,
    fetcher: Callable[[], Awaitable[Any]],
    ttl: Optional[float] = None,
    tags: Iterable[str] = (),
) -> Any:
    """Read-through helper: cached value, or fetch and cache it"""
    try:
        cached = cache.get(key)
    except Exception as e:
        logger.warning(f"[cache:{cache.namespace}] read failed for {key}, fetching: {e}")
        cache.delete(key)
        cached = None

    if cached is not None:
        return cached

    value = await fetcher()
    cache.set(key, value, ttl=ttl, tags=tags)
    return value


__all__ = [
    "Cache",
    "CacheRegistry",
    "CacheKeys",
    "CacheTags",
    "get_or_fetch",
    "DEFAULT_TTL_SECONDS",
]
