"""
🔌 Database Connection Setup - MongoDB

Centralised connection handling for the scoring collections:
scores (ledger), streaks, leaderboards and the id counters.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from scoring_service.core.config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """Singleton holding the MongoDB connection"""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB"""
        if cls.client is None:
            settings = get_settings()

            cls.client = AsyncIOMotorClient(
                settings.mongodb_uri,
                maxPoolSize=10,
                minPoolSize=2,
                tz_aware=True,
            )
            cls.db = cls.client[settings.mongodb_db_name]

            # Connection check
            await cls.client.admin.command("ping")
            logger.info(f"✅ Connected to MongoDB: {settings.mongodb_db_name}")

    @classmethod
    async def disconnect(cls):
        """Close the connection"""
        if cls.client is not None:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("❌ Disconnected from MongoDB")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Return the database instance"""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call Database.connect() first.")
        return cls.db


# ============================================
# 🎯 DEPENDENCY for FastAPI
# ============================================

async def get_database() -> AsyncIOMotorDatabase:
    """
    FastAPI dependency that injects the DB

    Usage:
        @router.get("/scores/{score_id}")
        async def get_score(score_id: int, db: Database):
            service = ScoringService(db)
            return await service.get_score(score_id)
    """
    return Database.get_db()


# ============================================
# 🏗️ INDEXES (run at startup, idempotent)
# ============================================

async def create_indexes(db: Optional[AsyncIOMotorDatabase] = None):
    """
    Create the indexes the scoring collections rely on.

    The unique ones are load-bearing: prediction_id is the idempotence key of
    the ledger, and the composite ids make get-or-create atomic for streaks
    and leaderboard entries.
    """
    db = db if db is not None else Database.get_db()

    # Scores (ledger)
    await db.scores.create_index("id", unique=True)
    await db.scores.create_index("prediction_id", unique=True)
    await db.scores.create_index([("contest_id", 1), ("user_id", 1)])
    await db.scores.create_index([("user_id", 1), ("scored_at", -1)])
    await db.scores.create_index("scored_at")

    # Streaks: id = "{contest_id}:{user_id}"
    await db.streaks.create_index("id", unique=True)
    await db.streaks.create_index([("contest_id", 1), ("current_streak", -1)])

    # Leaderboards: id = "{contest_id}:{user_id}"
    await db.leaderboards.create_index("id", unique=True)
    await db.leaderboards.create_index([("contest_id", 1), ("rank", 1)])
    await db.leaderboards.create_index([("contest_id", 1), ("total_points", -1)])

    logger.info("✅ Indexes created successfully")
