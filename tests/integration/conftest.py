"""
Fixtures for integration tests
"""

import pytest
from httpx import ASGITransport, AsyncClient

from scoring_service.core.security import create_access_token
from scoring_service.database import Database
from scoring_service.main import app


@pytest.fixture
async def client(test_db):
    """
    HTTP client for testing API endpoints.

    Points the Database singleton at the in-memory test database.
    """
    original_db = Database.db
    Database.db = test_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    Database.db = original_db


@pytest.fixture
def auth_headers():
    """Bearer token of the prediction service account."""
    token = create_access_token("prediction-service", "predictions@example.com")
    return {"Authorization": f"Bearer {token}"}
