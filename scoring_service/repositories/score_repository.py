"""
🧾 ScoreRepository - append-only score ledger

One document per scored prediction. prediction_id is unique: inserting the
same prediction twice fails with AlreadyExistsError. Integer ids come from
the counters collection.
"""

import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

from scoring_service.core.exceptions import AlreadyExistsError, UnavailableError
from scoring_service.models.score import Score, ScoreCreate
from scoring_service.models.types import utcnow

logger = logging.getLogger(__name__)


class ScoreRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["scores"]
        self.counters = db["counters"]

    async def _next_ids(self, count: int = 1) -> int:
        """Reserve ``count`` consecutive ids, returning the first one"""
        doc = await self.counters.find_one_and_update(
            {"_id": "scores"},
            {"$inc": {"seq": count}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return doc["seq"] - count + 1

    # ============================================
    # 📌 CREATE
    # ============================================

    async def create(self, data: ScoreCreate) -> Score:
        """
        Append one score record.

        Raises AlreadyExistsError when the prediction was already scored.
        """
        try:
            score_id = await self._next_ids()
            score = Score(
                id=score_id,
                scored_at=data.scored_at or utcnow(),
                **data.model_dump(exclude={"scored_at"}),
            )
            await self.collection.insert_one(score.model_dump())
            return score
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Score for prediction {data.prediction_id} already exists")
        except PyMongoError as e:
            logger.error(f"❌ Failed to store score for prediction {data.prediction_id}: {e}")
            raise UnavailableError("Score storage unavailable")

    async def batch_create(self, items: list[ScoreCreate]) -> list[Score]:
        """
        Append several records, all or nothing.

        Duplicates (inside the batch or already stored) are rejected before
        anything is written. If a concurrent writer slips one in between the
        check and the insert, the rows inserted by this call are removed.
        """
        if not items:
            return []

        prediction_ids = [item.prediction_id for item in items]
        if len(set(prediction_ids)) != len(prediction_ids):
            raise AlreadyExistsError("Duplicate prediction_id inside batch")

        try:
            existing = await self.collection.find_one({"prediction_id": {"$in": prediction_ids}})
            if existing:
                raise AlreadyExistsError(
                    f"Score for prediction {existing['prediction_id']} already exists"
                )

            first_id = await self._next_ids(len(items))
            now = utcnow()
            scores = [
                Score(
                    id=first_id + offset,
                    scored_at=item.scored_at or now,
                    **item.model_dump(exclude={"scored_at"}),
                )
                for offset, item in enumerate(items)
            ]
        except PyMongoError as e:
            logger.error(f"❌ Failed to prepare score batch: {e}")
            raise UnavailableError("Score storage unavailable")

        try:
            await self.collection.insert_many([s.model_dump() for s in scores], ordered=True)
            return scores
        except (DuplicateKeyError, BulkWriteError) as e:
            await self._compensate([s.id for s in scores])
            raise AlreadyExistsError(f"Score batch rejected: {e}")
        except PyMongoError as e:
            await self._compensate([s.id for s in scores])
            logger.error(f"❌ Failed to store score batch: {e}")
            raise UnavailableError("Score storage unavailable")

    async def _compensate(self, score_ids: list[int]) -> None:
        try:
            await self.collection.delete_many({"id": {"$in": score_ids}})
        except PyMongoError as e:
            logger.error(f"❌ Could not roll back partial score batch {score_ids}: {e}")

    # ============================================
    # 📌 READ
    # ============================================

    async def get_by_id(self, score_id: int) -> Optional[Score]:
        doc = await self._find_one({"id": score_id})
        return Score(**doc) if doc else None

    async def get_by_prediction(self, prediction_id: int) -> Optional[Score]:
        doc = await self._find_one({"prediction_id": prediction_id})
        return Score(**doc) if doc else None

    async def get_by_contest_and_user(self, contest_id: int, user_id: int) -> list[Score]:
        """Scores of a user in a contest, oldest first"""
        return await self._find_many(
            {"contest_id": contest_id, "user_id": user_id},
            sort=[("scored_at", 1), ("id", 1)],
        )

    async def list_by_contest(self, contest_id: int) -> list[Score]:
        return await self._find_many({"contest_id": contest_id}, sort=[("scored_at", 1), ("id", 1)])

    async def list_for_analytics(
        self,
        user_id: Optional[int] = None,
        since: Optional[datetime] = None,
    ) -> list[Score]:
        """
        Records feeding the analytics rollups, oldest first.

        ``user_id=None`` means the whole platform; ``since`` is the start of
        the time window (None = all time).
        """
        query = _window(since)
        if user_id is not None:
            query["user_id"] = user_id
        return await self._find_many(query, sort=[("scored_at", 1), ("id", 1)])

    async def platform_summary(self, since: Optional[datetime] = None) -> dict:
        """
        Platform totals for a time window, computed in MongoDB.

        Retorna: {
            "total_predictions": 120,
            "correct_predictions": 70,   # points > 0
            "total_points": 310.5,
            "total_users": 12
        }
        """
        pipeline = [
            {"$match": _window(since)},
            {
                "$group": {
                    "_id": "$user_id",
                    "predictions": {"$sum": 1},
                    "correct": {"$sum": {"$cond": [{"$gt": ["$points", 0]}, 1, 0]}},
                    "points": {"$sum": "$points"},
                }
            },
            {
                "$group": {
                    "_id": None,
                    "total_users": {"$sum": 1},
                    "total_predictions": {"$sum": "$predictions"},
                    "correct_predictions": {"$sum": "$correct"},
                    "total_points": {"$sum": "$points"},
                }
            },
        ]
        try:
            rows = await self.collection.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Failed to summarise platform scores: {e}")
            raise UnavailableError("Score storage unavailable")

        if not rows:
            return {"total_predictions": 0, "correct_predictions": 0, "total_points": 0.0, "total_users": 0}
        row = rows[0]
        return {
            "total_predictions": int(row["total_predictions"]),
            "correct_predictions": int(row["correct_predictions"]),
            "total_points": float(row["total_points"]),
            "total_users": int(row["total_users"]),
        }

    async def get_total_points(self, contest_id: int, user_id: int) -> float:
        pipeline = [
            {"$match": {"contest_id": contest_id, "user_id": user_id}},
            {"$group": {"_id": None, "total": {"$sum": "$points"}}},
        ]
        try:
            rows = await self.collection.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Failed to total scores for contest {contest_id} user {user_id}: {e}")
            raise UnavailableError("Score storage unavailable")
        return float(rows[0]["total"]) if rows else 0.0

    async def totals_by_user(self, contest_id: int) -> dict[int, float]:
        """Sum of points per user for a contest"""
        pipeline = [
            {"$match": {"contest_id": contest_id}},
            {"$group": {"_id": "$user_id", "total": {"$sum": "$points"}}},
        ]
        try:
            rows = await self.collection.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Failed to total scores for contest {contest_id}: {e}")
            raise UnavailableError("Score storage unavailable")
        return {row["_id"]: float(row["total"]) for row in rows}

    # ============================================
    # 🔧 HELPERS
    # ============================================

    async def _find_one(self, query: dict) -> Optional[dict]:
        try:
            return await self.collection.find_one(query)
        except PyMongoError as e:
            logger.error(f"❌ Score lookup failed for {query}: {e}")
            raise UnavailableError("Score storage unavailable")

    async def _find_many(self, query: dict, sort: list) -> list[Score]:
        try:
            docs = await self.collection.find(query).sort(sort).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ Score query failed for {query}: {e}")
            raise UnavailableError("Score storage unavailable")
        return [Score(**doc) for doc in docs]


def _window(since: Optional[datetime]) -> dict:
    return {} if since is None else {"scored_at": {"$gte": since}}
