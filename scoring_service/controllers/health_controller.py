"""
Health controller - liveness and database status
"""

from fastapi import APIRouter
from pydantic import BaseModel

from scoring_service.database import Database


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """The API is up; reports whether MongoDB is connected."""
    db_status = "connected" if Database.db is not None else "disconnected"

    return HealthResponse(status="ok", database=db_status)
