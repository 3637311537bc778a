"""
Unit tests for the warm leaderboard cache
"""

from datetime import datetime, timedelta, timezone

from scoring_service.cache import LeaderboardCache
from scoring_service.models.leaderboard import LeaderboardEntry, leaderboard_key

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def entry(user_id: int, total: float, rank: int = 0, contest_id: int = 10, minute: int = 0) -> LeaderboardEntry:
    return LeaderboardEntry(
        id=leaderboard_key(contest_id, user_id),
        contest_id=contest_id,
        user_id=user_id,
        total_points=total,
        rank=rank,
        updated_at=T0 + timedelta(minutes=minute),
    )


class TestLeaderboardCache:
    """Test suite for the per-contest buckets."""

    def test_cold_contest_returns_none(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)

        assert cache.top(10, 5) is None
        assert cache.entry(10, 1) is None
        assert cache.size(10) is None
        assert not cache.is_warm(10)

    def test_load_then_top_in_rank_order(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)
        cache.load(10, [entry(1, 5, rank=3), entry(2, 10, rank=1), entry(3, 8, rank=2)])

        # Act
        top = cache.top(10, 2)

        # Assert
        assert [e.user_id for e in top] == [2, 3]
        assert cache.size(10) == 3

    def test_unranked_entries_sort_last(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)
        cache.load(10, [entry(1, 5, rank=1), entry(2, 50, rank=0)])

        assert [e.user_id for e in cache.top(10, 10)] == [1, 2]

    def test_mirror_only_into_warm_bucket(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)

        assert cache.mirror(entry(1, 5)) is False
        assert not cache.is_warm(10)

        cache.load(10, [])
        assert cache.mirror(entry(1, 5, rank=1)) is True
        assert cache.entry(10, 1).total_points == 5

    def test_mirror_replaces_user_entry(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)
        cache.load(10, [entry(1, 5, rank=1), entry(2, 3, rank=2)])
        cache.top(10, 10)

        cache.mirror(entry(2, 9, rank=1, minute=5))
        cache.mirror(entry(1, 5, rank=2))

        assert [e.user_id for e in cache.top(10, 10)] == [2, 1]
        assert cache.size(10) == 2

    def test_invalidate(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)
        cache.load(10, [entry(1, 5)])

        cache.invalidate(10)
        cache.invalidate(99)

        assert not cache.is_warm(10)

    def test_bounded_number_of_contests(self):
        cache = LeaderboardCache(max_contests=2, ttl_seconds=60)

        for contest_id in (1, 2, 3):
            cache.load(contest_id, [entry(1, 1, contest_id=contest_id)])

        warm = [c for c in (1, 2, 3) if cache.is_warm(c)]
        assert len(warm) == 2
        assert cache.is_warm(3)

    def test_clear(self):
        cache = LeaderboardCache(max_contests=4, ttl_seconds=60)
        cache.load(10, [entry(1, 5)])
        cache.load(11, [entry(1, 5, contest_id=11)])

        cache.clear()

        assert not cache.is_warm(10)
        assert not cache.is_warm(11)
