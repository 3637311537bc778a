"""
🔥 StreakRepository - streak state per (contest, user)

IDs compuestos: contest_id:user_id (unique index), so get-or-create is a
single atomic upsert even with concurrent callers.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from scoring_service.core.exceptions import UnavailableError
from scoring_service.models.streak import Streak, streak_key
from scoring_service.models.types import utcnow

logger = logging.getLogger(__name__)


class StreakRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["streaks"]

    # ============================================
    # 📌 CREATE / UPSERT
    # ============================================

    async def get_or_create(self, contest_id: int, user_id: int) -> Streak:
        """Return the stored streak, inserting a zeroed one on first use"""
        key = streak_key(contest_id, user_id)
        fresh = Streak(id=key, contest_id=contest_id, user_id=user_id, updated_at=utcnow())

        try:
            doc = await self.collection.find_one_and_update(
                {"id": key},
                {"$setOnInsert": fresh.model_dump()},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # Lost the insert race; the winner's document is there now
            doc = await self.collection.find_one({"id": key})
        except PyMongoError as e:
            logger.error(f"❌ Failed to load streak {key}: {e}")
            raise UnavailableError("Streak storage unavailable")

        return Streak(**doc)

    async def save(self, streak: Streak) -> Streak:
        """Persist the whole state of a streak"""
        try:
            await self.collection.update_one(
                {"id": streak.id},
                {"$set": streak.model_dump()},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"❌ Failed to save streak {streak.id}: {e}")
            raise UnavailableError("Streak storage unavailable")
        return streak

    # ============================================
    # 📌 READ
    # ============================================

    async def get(self, contest_id: int, user_id: int) -> Optional[Streak]:
        try:
            doc = await self.collection.find_one({"id": streak_key(contest_id, user_id)})
        except PyMongoError as e:
            logger.error(f"❌ Streak lookup failed for contest {contest_id} user {user_id}: {e}")
            raise UnavailableError("Streak storage unavailable")
        return Streak(**doc) if doc else None

    async def get_many(self, contest_id: int, user_ids: list[int]) -> dict[int, Streak]:
        """Streaks for several users of one contest, keyed by user_id"""
        if not user_ids:
            return {}
        keys = [streak_key(contest_id, user_id) for user_id in user_ids]
        try:
            docs = await self.collection.find({"id": {"$in": keys}}).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Streak batch lookup failed for contest {contest_id}: {e}")
            raise UnavailableError("Streak storage unavailable")
        return {doc["user_id"]: Streak(**doc) for doc in docs}

    async def list_by_contest(self, contest_id: int) -> list[Streak]:
        try:
            docs = await self.collection.find({"contest_id": contest_id}).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Streak query failed for contest {contest_id}: {e}")
            raise UnavailableError("Streak storage unavailable")
        return [Streak(**doc) for doc in docs]

    async def top_streaks(self, contest_id: int, limit: int = 10) -> list[Streak]:
        """🔥 Longest running streaks of a contest"""
        try:
            cursor = self.collection.find(
                {"contest_id": contest_id, "current_streak": {"$gt": 0}}
            ).sort([("current_streak", DESCENDING), ("max_streak", DESCENDING)]).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            logger.error(f"❌ Top streak query failed for contest {contest_id}: {e}")
            raise UnavailableError("Streak storage unavailable")
        return [Streak(**doc) for doc in docs]
