"""
Freshness-aware cache in front of the catalog APIs.

Values are JSON documents stored under a composite (entity, id) key. A fresh
entry is returned as stored even if the catalog has changed since; a missing
or stale entry is re-fetched and overwritten. Concurrent fetches of the same
key are not coordinated: both fetch and the last write wins.
"""

import json
import logging
import time
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

from utils.exceptions import CacheError

logger = logging.getLogger(__name__)

MaxAge = Union[timedelta, float]


def _max_age_seconds(max_age: MaxAge) -> float:
    if isinstance(max_age, timedelta):
        return max_age.total_seconds()
    return float(max_age)


class FreshnessCache:
    """
    Cache keyed by (entity kind, id) with a per-call maximum age.

    The backing store must provide ``get_cache_entry``, ``insert_cache_entry``
    and ``get_all_cache_entries`` (see storage.database.LibraryDatabase).
    """

    def __init__(
        self,
        store,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)

        self.stats = {
            'hits': 0,
            'misses': 0,
            'fetch_failures': 0,
        }

    def get_cached(self, entity: str, entity_id: str, max_age: MaxAge, fetch: Callable[[], Any]) -> Any:
        """
        Return the cached value for (entity, id) or fetch and store a new one.

        Args:
            entity: Entity kind, e.g. 'musicbrainz_release'
            entity_id: Id within the entity kind
            max_age: Maximum age of a reusable entry (timedelta or seconds)
            fetch: Callable producing a JSON-serializable value

        Returns:
            The decoded value

        Raises:
            Whatever ``fetch`` raises; the cache is left untouched in that case
            CacheError: If the value cannot be serialized or decoded
        """
        now = self._clock()
        stored = self.store.get_cache_entry(entity, entity_id, now - _max_age_seconds(max_age))
        if stored is not None:
            self.stats['hits'] += 1
            self.logger.debug(f"Cache hit {entity}/{entity_id}")
            return self._decode(entity, entity_id, stored)

        self.stats['misses'] += 1
        self.logger.debug(f"Cache miss {entity}/{entity_id}, fetching")
        try:
            value = fetch()
        except Exception:
            self.stats['fetch_failures'] += 1
            raise

        try:
            encoded = json.dumps(value, ensure_ascii=False).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise CacheError(entity, entity_id, f"value is not serializable: {e}")

        self.store.insert_cache_entry(entity, entity_id, encoded, self._clock())
        # same shape a later hit would decode
        return json.loads(encoded)

    def get_all_cache_entities(self, entity: str, max_age: MaxAge) -> Mapping[str, Any]:
        """
        Every still-fresh entry of one entity kind as a read-only id -> value mapping.

        Used to pre-warm lookups before a sync run issues any network calls.
        """
        now = self._clock()
        rows = self.store.get_all_cache_entries(entity, now - _max_age_seconds(max_age))
        result: Dict[str, Any] = {}
        for entity_id, stored in rows.items():
            result[entity_id] = self._decode(entity, entity_id, stored)
        self.logger.debug(f"Loaded {len(result)} fresh {entity} entries")
        return MappingProxyType(result)

    @staticmethod
    def _decode(entity: str, entity_id: str, stored: bytes) -> Any:
        try:
            return json.loads(stored.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise CacheError(entity, entity_id, f"stored value is not valid JSON: {e}")

    def get_cache_statistics(self) -> Dict[str, Any]:
        lookups = self.stats['hits'] + self.stats['misses']
        hit_rate = self.stats['hits'] / lookups * 100 if lookups > 0 else 0
        return {
            **self.stats,
            'hit_rate_percent': round(hit_rate, 2),
        }
