"""
LeaderboardService - contest totals, rank assignment and the warm cache.

Storage is authoritative. The cache is refreshed from storage after every
rank pass and mirrors individual upserts in between; any cache problem is
logged and ignored.

Ranking uses competition ranking: entries are ordered by total (desc), then
by who reached the total first, and tied totals share the rank of the first
entry of the tie. Totals [10, 10, 8, 8, 5] get ranks [1, 1, 3, 3, 5].
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from scoring_service.cache import LeaderboardCache, get_leaderboard_cache
from scoring_service.core.exceptions import NotFoundError
from scoring_service.core.locks import leaderboard_write_locks, rank_pass_locks
from scoring_service.models.leaderboard import LeaderboardEntry, display_key, standing_key
from scoring_service.repositories.leaderboard_repository import LeaderboardRepository
from scoring_service.repositories.score_repository import ScoreRepository
from scoring_service.repositories.streak_repository import StreakRepository
from scoring_service.scoring import streaks

logger = logging.getLogger(__name__)


def competition_ranks(ordered: list[LeaderboardEntry]) -> list[int]:
    """Ranks for entries already sorted by standing_key"""
    ranks = []
    current = 0
    previous_total = None
    for position, entry in enumerate(ordered, start=1):
        if previous_total is None or entry.total_points < previous_total:
            current = position
        ranks.append(current)
        previous_total = entry.total_points
    return ranks


class LeaderboardService:
    def __init__(self, db: AsyncIOMotorDatabase, cache: Optional[LeaderboardCache] = None):
        self.leaderboard_repo = LeaderboardRepository(db)
        self.score_repo = ScoreRepository(db)
        self.streak_repo = StreakRepository(db)
        self.cache = cache if cache is not None else get_leaderboard_cache()

    # ============================================
    # 📌 WRITE
    # ============================================

    async def upsert(self, contest_id: int, user_id: int, total_points: float) -> LeaderboardEntry:
        """
        Store a user's total. Equal totals are a no-op.

        The entry stays unranked (rank 0) until the next rank pass.
        """
        async with leaderboard_write_locks.hold(contest_id):
            entry, changed = await self.leaderboard_repo.upsert_total(contest_id, user_id, total_points)
            if changed:
                self._mirror(entry)
        return entry

    async def batch_update(self, contest_id: int, totals: dict[int, float]) -> list[LeaderboardEntry]:
        """Upsert several totals of one contest"""
        entries = []
        for user_id, total in totals.items():
            entries.append(await self.upsert(contest_id, user_id, total))
        return entries

    async def recompute_from_ledger(self, contest_id: int) -> list[LeaderboardEntry]:
        """
        Rebuild the contest's totals from the score ledger.

        Entries of users without any ledger row are removed.
        """
        totals = await self.score_repo.totals_by_user(contest_id)
        entries = await self.batch_update(contest_id, totals)

        async with leaderboard_write_locks.hold(contest_id):
            removed = await self.leaderboard_repo.delete_except(contest_id, list(totals.keys()))
            if removed:
                self._invalidate(contest_id)

        logger.info(f"🔁 Recomputed {len(entries)} leaderboard totals for contest {contest_id}")
        return entries

    async def assign_ranks(self, contest_id: int, wait: bool = True) -> list[LeaderboardEntry]:
        """
        Rank every entry of the contest.

        Only one pass per contest runs at a time; with ``wait=False`` a pass
        already in progress raises ConflictError. Totals are read under the
        contest write lock, and each rank is written only if the stored total
        still matches the one it was computed from.

        Changed ranks go out in one ordered bulk write; if storage fails
        partway the pass raises and the next pass rewrites what is off.
        """
        async with rank_pass_locks.hold(contest_id, wait=wait):
            async with leaderboard_write_locks.hold(contest_id):
                snapshot = await self.leaderboard_repo.list_by_contest(contest_id)
                snapshot.sort(key=standing_key)

                changes = [
                    (entry.user_id, rank, entry.total_points)
                    for entry, rank in zip(snapshot, competition_ranks(snapshot))
                    if entry.rank != rank
                ]
                written = await self.leaderboard_repo.set_ranks(contest_id, changes)
                if written < len(changes):
                    logger.warning(
                        f"⚠️ {len(changes) - written} totals moved during rank pass of contest {contest_id}"
                    )

                entries = await self.leaderboard_repo.list_by_contest(contest_id)
                self._load(contest_id, entries)

        logger.info(f"🏆 Rank pass for contest {contest_id}: {written} of {len(entries)} ranks changed")
        return sorted(entries, key=display_key)

    # ============================================
    # 📌 READ
    # ============================================

    async def top(self, contest_id: int, limit: int) -> list[LeaderboardEntry]:
        """Best ``limit`` entries, from the cache when the contest is warm"""
        cached = self._cached(lambda: self.cache.top(contest_id, limit))
        if cached is not None:
            return cached

        entries = await self.leaderboard_repo.list_by_contest(contest_id)
        self._load(contest_id, entries)
        return sorted(entries, key=display_key)[:limit]

    async def user_entry(self, contest_id: int, user_id: int) -> LeaderboardEntry:
        entry = self._cached(lambda: self.cache.entry(contest_id, user_id))
        if entry is None:
            entry = await self.leaderboard_repo.get(contest_id, user_id)
        if entry is None:
            raise NotFoundError(f"User {user_id} is not on the leaderboard of contest {contest_id}")
        return entry

    async def size(self, contest_id: int) -> int:
        cached = self._cached(lambda: self.cache.size(contest_id))
        if cached is not None:
            return cached
        return await self.leaderboard_repo.count(contest_id)

    async def with_streaks(self, contest_id: int, entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
        """Copies of ``entries`` carrying the users' current streak info"""
        states = await self.streak_repo.get_many(contest_id, [e.user_id for e in entries])
        enriched = []
        for entry in entries:
            state = states.get(entry.user_id)
            if state is None:
                enriched.append(entry.model_copy(update={"current_streak": 0, "max_streak": 0, "multiplier": 1.0}))
                continue
            enriched.append(
                entry.model_copy(
                    update={
                        "current_streak": state.current_streak,
                        "max_streak": state.max_streak,
                        "multiplier": streaks.multiplier(state),
                    }
                )
            )
        return enriched

    # ============================================
    # 🔧 CACHE HELPERS (failures never reach callers)
    # ============================================

    def _mirror(self, entry: LeaderboardEntry) -> None:
        try:
            self.cache.mirror(entry)
        except Exception as e:
            logger.warning(f"⚠️ Leaderboard cache mirror failed for {entry.id}: {e}")
            self._invalidate(entry.contest_id)

    def _load(self, contest_id: int, entries: list[LeaderboardEntry]) -> None:
        try:
            self.cache.load(contest_id, entries)
        except Exception as e:
            logger.warning(f"⚠️ Leaderboard cache load failed for contest {contest_id}: {e}")

    def _invalidate(self, contest_id: int) -> None:
        try:
            self.cache.invalidate(contest_id)
        except Exception as e:
            logger.warning(f"⚠️ Leaderboard cache invalidation failed for contest {contest_id}: {e}")

    def _cached(self, read):
        try:
            return read()
        except Exception as e:
            logger.warning(f"⚠️ Leaderboard cache read failed: {e}")
            return None
