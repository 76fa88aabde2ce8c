"""Tagged response cache for the JSON API routes.

Responses are serialized once and stored in SQLite, so repeated reads
inside the TTL window return the exact same bytes. Tags allow manual
invalidation of a family of responses (e.g. everything tagged "quizzes").
"""

import json
import logging
import time
from typing import Any, Awaitable, Callable, Sequence

from sigma.database import (
    delete_by_tag,
    get_cached_response,
    init_database,
    purge_expired,
    save_cached_response,
)
from sigma.tracker import ApiCallTracker

logger = logging.getLogger("sigma.cache")


class ResponseCache:
    """SQLite-backed TTL cache with tag invalidation."""

    def __init__(
        self,
        db_path: str,
        tracker: ApiCallTracker,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = db_path
        self.tracker = tracker
        self.clock = clock
        self._ready = False

    def init(self) -> None:
        """Create the cache tables if needed; safe to call repeatedly."""
        if not self._ready:
            init_database(self.db_path)
            self._ready = True

    async def get_or_load(
        self,
        cache_key: str,
        loader: Callable[[], Awaitable[Any]],
        *,
        ttl: float,
        tags: Sequence[str] = (),
    ) -> str:
        """Return the cached JSON body for a key, loading it on a miss.

        Args:
            cache_key: Cache key
            loader: Coroutine factory producing JSON-serializable data
            ttl: Lifetime in seconds
            tags: Invalidation tags

        Returns:
            Serialized JSON body

        Raises:
            Whatever the loader raises; failures are never cached
        """
        self.init()
        now = self.clock()
        cached = get_cached_response(cache_key, now, self.db_path)
        if cached:
            self.tracker.record_hit()
            logger.debug(f"Cache hit: {cache_key} (generated {cached['generated_at']})")
            return cached["payload"]

        self.tracker.record_miss()
        logger.debug(f"Cache miss: {cache_key}")

        data = await loader()
        payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        save_cached_response(cache_key, payload, tags, now + ttl, self.db_path)
        return payload

    def revalidate_tag(self, tag: str) -> int:
        """Drop every cached response carrying a tag."""
        self.init()
        removed = delete_by_tag(tag, self.db_path)
        logger.info(f"Revalidated tag '{tag}': {removed} cached response(s) removed")
        return removed

    def purge_expired(self) -> int:
        self.init()
        return purge_expired(self.clock(), self.db_path)
