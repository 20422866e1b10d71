"""
Two-level cache with commit-deferred invalidation.

Entries live in named groups, one group per entity type. Deletions never evict
immediately: eviction is registered with the unit of work and only happens
when it commits, so a rolled back deletion leaves cached entries untouched.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from .config import get_config

if TYPE_CHECKING:
    from .entity.descriptor import EntityDescriptor
    from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CacheLevel(Protocol):
    """One level of a cache that supports group eviction."""

    def invalidate_group(self, group: str) -> None:
        ...


class MemoryCache:
    """Thread-safe in-process cache with TTL entries grouped by name."""

    def __init__(self, ttl_seconds: Optional[int] = None):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Default entry lifetime, defaults to the configured
                cache_ttl_seconds
        """
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else get_config().cache_ttl_seconds
        )
        self._groups: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, group: str, key: str, default: Any = None) -> Any:
        """Get value from cache if present and not expired."""
        with self._lock:
            entries = self._groups.get(group)
            if not entries or key not in entries:
                return default
            entry = entries[key]
            if datetime.now(timezone.utc) < entry["expires_at"]:
                return entry["value"]
            del entries[key]
        return default

    def set(
        self, group: str, key: str, value: Any, ttl_seconds: Optional[int] = None
    ) -> None:
        """Set value in cache with TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        with self._lock:
            self._groups.setdefault(group, {})[key] = {
                "value": value,
                "expires_at": datetime.now(timezone.utc) + timedelta(seconds=ttl),
            }

    def remove(self, group: str, key: str) -> None:
        with self._lock:
            self._groups.get(group, {}).pop(key, None)

    def invalidate_group(self, group: str) -> None:
        """Evict every entry of a group."""
        with self._lock:
            self._groups.pop(group, None)


class TwoLevelCache:
    """
    Local cache backed by an optional distributed level.

    Reads go to the local level first. Group invalidation evicts both levels.
    """

    def __init__(
        self,
        local: Optional[MemoryCache] = None,
        distributed: Optional[CacheLevel] = None,
        ttl_seconds: Optional[int] = None,
    ):
        """
        Initialize the cache.

        Args:
            local: Local level, created with ttl_seconds when omitted
            distributed: Optional shared level evicted together with the local one
            ttl_seconds: Entry lifetime of a created local level, defaults to
                the configured cache_ttl_seconds
        """
        self.local = local if local is not None else MemoryCache(ttl_seconds)
        self.distributed = distributed

    def get(self, group: str, key: str, default: Any = None) -> Any:
        return self.local.get(group, key, default)

    def set(self, group: str, key: str, value: Any) -> None:
        self.local.set(group, key, value)

    def invalidate_group(self, group: str) -> None:
        logger.debug(f"Invalidating cache group {group}")
        self.local.invalidate_group(group)
        if self.distributed is not None:
            self.distributed.invalidate_group(group)

    def invalidate_on_commit(
        self, unit_of_work: "UnitOfWork", descriptor: "EntityDescriptor"
    ) -> None:
        """Register eviction of the entity's cache group for when the unit of work commits."""
        group = descriptor.cache_group or descriptor.table.name
        unit_of_work.on_commit(lambda: self.invalidate_group(group))
