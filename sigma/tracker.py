"""Outbound API call tracking for Sigma LMS.

One tracker is created per application instance and handed to every
component that talks to the CMS or to the response cache. Counts live for
the lifetime of the app and are never persisted.
"""

from typing import TypedDict


class ApiCallStatsDict(TypedDict):
    """Type definition for the stats exposed to the UI."""
    totalCalls: int
    cacheHits: int
    cacheMisses: int


class ApiCallTracker:
    """Counter of outbound CMS calls plus cache hit/miss statistics.

    All mutation happens on the event loop thread, so no locking is used.
    """

    def __init__(self) -> None:
        self._total_calls = 0
        self._cache_hits = 0
        self._cache_misses = 0

    def increment(self) -> None:
        """Record one outbound API call."""
        self._total_calls += 1

    @property
    def count(self) -> int:
        """Number of outbound API calls recorded so far."""
        return self._total_calls

    def record_hit(self) -> None:
        self._cache_hits += 1

    def record_miss(self) -> None:
        self._cache_misses += 1

    def snapshot(self) -> ApiCallStatsDict:
        """Get current statistics.

        Returns:
            Dict with totalCalls, cacheHits and cacheMisses
        """
        return {
            "totalCalls": self._total_calls,
            "cacheHits": self._cache_hits,
            "cacheMisses": self._cache_misses,
        }
