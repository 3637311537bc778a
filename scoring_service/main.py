"""
Entry point of the Contest Scoring API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scoring_service.core.config import get_settings
from scoring_service.database import Database, create_indexes

from scoring_service.controllers.health_controller import router as health_router
from scoring_service.controllers.scores_controller import router as scores_router
from scoring_service.controllers.leaderboard_controller import router as leaderboard_router
from scoring_service.controllers.analytics_controller import router as analytics_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await Database.connect()
    await create_indexes()
    yield
    await Database.disconnect()


app = FastAPI(
    title="Contest Scoring API",
    description="Scoring, streaks, leaderboards and analytics for prediction contests",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

app.include_router(health_router)
app.include_router(scores_router)
app.include_router(leaderboard_router)
app.include_router(analytics_router)


@app.get("/")
async def root():
    return {
        "name": "Contest Scoring API",
        "version": "1.0.0",
        "docs": "/docs",
    }
