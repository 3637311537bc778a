"""
🏆 LeaderboardRepository - durable projection of contest totals

IDs compuestos: contest_id:user_id. Ranks are written by the rank pass only,
and only while the total they were computed from is still current.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne
from pymongo.errors import DuplicateKeyError, PyMongoError

from scoring_service.core.exceptions import UnavailableError
from scoring_service.models.leaderboard import LeaderboardEntry, leaderboard_key
from scoring_service.models.types import utcnow

logger = logging.getLogger(__name__)


class LeaderboardRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["leaderboards"]

    # ============================================
    # 📌 UPSERT
    # ============================================

    async def upsert_total(
        self,
        contest_id: int,
        user_id: int,
        total_points: float,
    ) -> tuple[LeaderboardEntry, bool]:
        """
        Store a user's total.

        Returns (entry, changed). An equal total is a no-op so that
        ``updated_at`` keeps meaning "when this total was first reached".
        A changed total resets the rank to 0 until the next rank pass.
        """
        key = leaderboard_key(contest_id, user_id)

        try:
            current = await self.collection.find_one({"id": key})
            if current is not None and float(current["total_points"]) == total_points:
                return LeaderboardEntry(**current), False

            entry = LeaderboardEntry(
                id=key,
                contest_id=contest_id,
                user_id=user_id,
                total_points=total_points,
                rank=0,
                updated_at=utcnow(),
            )
            try:
                await self.collection.update_one(
                    {"id": key},
                    {
                        "$set": {
                            "total_points": entry.total_points,
                            "rank": entry.rank,
                            "updated_at": entry.updated_at,
                        },
                        "$setOnInsert": {"contest_id": contest_id, "user_id": user_id},
                    },
                    upsert=True,
                )
            except DuplicateKeyError:
                # Concurrent first insert for the same key: apply as an update
                await self.collection.update_one(
                    {"id": key},
                    {
                        "$set": {
                            "total_points": entry.total_points,
                            "rank": entry.rank,
                            "updated_at": entry.updated_at,
                        }
                    },
                )
            return entry, True
        except PyMongoError as e:
            logger.error(f"❌ Failed to upsert leaderboard entry {key}: {e}")
            raise UnavailableError("Leaderboard storage unavailable")

    async def set_ranks(self, contest_id: int, ranks: list[tuple[int, int, float]]) -> int:
        """
        Write ranks of one pass as a single ordered bulk write.

        ``ranks`` holds (user_id, rank, total_points the rank was computed
        from); a rank is written only while that total is still stored.
        Returns how many entries matched. On failure the pass stops at the
        failing write; ranks are derived from totals, so the next pass
        rewrites every rank that is off.
        """
        if not ranks:
            return 0

        operations = [
            UpdateOne(
                {"id": leaderboard_key(contest_id, user_id), "total_points": total_points},
                {"$set": {"rank": rank}},
            )
            for user_id, rank, total_points in ranks
        ]
        try:
            result = await self.collection.bulk_write(operations, ordered=True)
        except PyMongoError as e:
            logger.error(f"❌ Failed to write ranks for contest {contest_id}: {e}")
            raise UnavailableError("Leaderboard storage unavailable")
        return result.matched_count

    # ============================================
    # 📌 READ
    # ============================================

    async def get(self, contest_id: int, user_id: int) -> Optional[LeaderboardEntry]:
        try:
            doc = await self.collection.find_one({"id": leaderboard_key(contest_id, user_id)})
        except PyMongoError as e:
            logger.error(f"❌ Leaderboard lookup failed for contest {contest_id} user {user_id}: {e}")
            raise UnavailableError("Leaderboard storage unavailable")
        return LeaderboardEntry(**doc) if doc else None

    async def list_by_contest(self, contest_id: int) -> list[LeaderboardEntry]:
        """All entries of a contest, unordered"""
        try:
            docs = await self.collection.find({"contest_id": contest_id}).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Leaderboard query failed for contest {contest_id}: {e}")
            raise UnavailableError("Leaderboard storage unavailable")
        return [LeaderboardEntry(**doc) for doc in docs]

    async def count(self, contest_id: int) -> int:
        try:
            return await self.collection.count_documents({"contest_id": contest_id})
        except PyMongoError as e:
            logger.error(f"❌ Leaderboard count failed for contest {contest_id}: {e}")
            raise UnavailableError("Leaderboard storage unavailable")

    # ============================================
    # 📌 DELETE
    # ============================================

    async def delete_except(self, contest_id: int, user_ids: list[int]) -> int:
        """Drop entries of users that no longer have any ledger row"""
        try:
            result = await self.collection.delete_many(
                {"contest_id": contest_id, "user_id": {"$nin": user_ids}}
            )
        except PyMongoError as e:
            logger.error(f"❌ Leaderboard cleanup failed for contest {contest_id}: {e}")
            raise UnavailableError("Leaderboard storage unavailable")
        return result.deleted_count
