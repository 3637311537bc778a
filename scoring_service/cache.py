"""
⚡ Warm leaderboard cache

Per-contest buckets held in a cachetools TTLCache, bounded both in number of
contests and in age. A bucket is only ever created from a full storage load,
so a warm bucket is a complete copy of the contest's leaderboard; writes are
mirrored into buckets that already exist and never create one.

The cache is a hint. Callers treat a missing bucket as "go to storage".
"""

from functools import lru_cache
from typing import Optional

from cachetools import TTLCache

from scoring_service.core.config import get_settings
from scoring_service.models.leaderboard import LeaderboardEntry, display_key


class ContestBucket:
    """All entries of one contest, with lookup by user and a lazily sorted view"""

    def __init__(self, entries: list[LeaderboardEntry]):
        self.by_user: dict[int, LeaderboardEntry] = {e.user_id: e for e in entries}
        self._ordered: Optional[list[LeaderboardEntry]] = None

    def put(self, entry: LeaderboardEntry) -> None:
        self.by_user[entry.user_id] = entry
        self._ordered = None

    def ordered(self) -> list[LeaderboardEntry]:
        if self._ordered is None:
            self._ordered = sorted(self.by_user.values(), key=display_key)
        return self._ordered

    def __len__(self) -> int:
        return len(self.by_user)


class LeaderboardCache:
    def __init__(self, max_contests: int, ttl_seconds: float):
        self._buckets: TTLCache = TTLCache(maxsize=max_contests, ttl=ttl_seconds)

    def load(self, contest_id: int, entries: list[LeaderboardEntry]) -> None:
        """Replace the bucket with a full snapshot from storage"""
        self._buckets[contest_id] = ContestBucket(entries)

    def mirror(self, entry: LeaderboardEntry) -> bool:
        """Apply a stored write to a warm bucket. Cold contests stay cold."""
        bucket = self._buckets.get(entry.contest_id)
        if bucket is None:
            return False
        bucket.put(entry)
        return True

    def top(self, contest_id: int, limit: int) -> Optional[list[LeaderboardEntry]]:
        bucket = self._buckets.get(contest_id)
        if bucket is None:
            return None
        return bucket.ordered()[:limit]

    def entry(self, contest_id: int, user_id: int) -> Optional[LeaderboardEntry]:
        bucket = self._buckets.get(contest_id)
        if bucket is None:
            return None
        return bucket.by_user.get(user_id)

    def size(self, contest_id: int) -> Optional[int]:
        bucket = self._buckets.get(contest_id)
        return len(bucket) if bucket is not None else None

    def is_warm(self, contest_id: int) -> bool:
        return self._buckets.get(contest_id) is not None

    def invalidate(self, contest_id: int) -> None:
        self._buckets.pop(contest_id, None)

    def clear(self) -> None:
        self._buckets.clear()


@lru_cache()
def get_leaderboard_cache() -> LeaderboardCache:
    """Process-wide cache instance"""
    settings = get_settings()
    return LeaderboardCache(
        max_contests=settings.leaderboard_cache_max_contests,
        ttl_seconds=settings.leaderboard_cache_ttl_seconds,
    )
