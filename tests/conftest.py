"""
Pytest fixtures and configuration for all tests.
"""

import os

# Settings are read once; set the required ones before any service import
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "contest_scoring_test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-at-least-32-chars-long")

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorDatabase

from scoring_service.cache import get_leaderboard_cache
from scoring_service.database import create_indexes

TEST_DB_NAME = "contest_scoring_test"

EVENT_AT = datetime(2026, 3, 15, 18, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    """
    Provide a clean in-memory database for each test.

    Indexes are created like at startup so unique constraints behave as in
    production.
    """
    client = AsyncMongoMockClient()
    db = client[TEST_DB_NAME]
    await create_indexes(db)

    yield db

    for collection_name in await db.list_collection_names():
        await db[collection_name].drop()


@pytest.fixture(autouse=True)
def clean_leaderboard_cache():
    """The warm cache is process-wide; start every test cold."""
    cache = get_leaderboard_cache()
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def event_at() -> datetime:
    return EVENT_AT


@pytest.fixture
def sample_submission_data():
    """Exact-score hit submitted two days before kick-off."""
    return {
        "user_id": 7,
        "contest_id": 10,
        "prediction_id": 101,
        "base_points": 5,
        "submitted_at": EVENT_AT - timedelta(hours=48),
        "event_date": EVENT_AT,
        "prediction_type": "exact_score",
        "sport_type": "football",
        "league_id": 39,
        "league_name": "Premier League",
    }


@pytest.fixture
def sample_result_data():
    """Final result of a 2:1 home win with risky flags and stats."""
    return {
        "home_score": 2,
        "away_score": 1,
        "stats": {
            "penalty": True,
            "red_card": False,
            "corners": 11,
            "cards": 4,
            "first_to_score": "home",
        },
    }


@pytest.fixture
def risky_rules_text():
    return (
        '{"type": "risky", "risky": {"max_selections": 3, "events": ['
        '{"slug": "penalty", "name": "Penalty", "points": 3},'
        '{"slug": "red_card", "name": "Red card", "points": 4}]}}'
    )
