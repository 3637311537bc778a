"""
Leaderboard controller - contest standings, streaks and repair

Standings are served from the warm cache when the contest is loaded,
otherwise from MongoDB.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from scoring_service.core.dependencies import CurrentUserId, Database
from scoring_service.core.exceptions import ScoringServiceError, to_http_exception
from scoring_service.models.leaderboard import LeaderboardEntry, RepairReport
from scoring_service.scoring import streaks
from scoring_service.services.scoring_service import ScoringService


router = APIRouter(prefix="/contests/{contest_id}", tags=["leaderboard"])


class LeaderboardEntryResponse(BaseModel):
    """One row of a contest leaderboard."""
    user_id: int
    total_points: float
    rank: int
    updated_at: datetime
    current_streak: Optional[int] = None
    max_streak: Optional[int] = None
    multiplier: Optional[float] = None


class LeaderboardResponse(BaseModel):
    contest_id: int
    entries: list[LeaderboardEntryResponse]


class UserRankResponse(BaseModel):
    contest_id: int
    user_id: int
    rank: int
    total_points: float


class StreakResponse(BaseModel):
    contest_id: int
    user_id: int
    current_streak: int
    max_streak: int
    multiplier: float
    last_prediction_id: Optional[int] = None
    last_prediction_correct: Optional[bool] = None


def to_entry_response(entry: LeaderboardEntry) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        user_id=entry.user_id,
        total_points=entry.total_points,
        rank=entry.rank,
        updated_at=entry.updated_at,
        current_streak=entry.current_streak,
        max_streak=entry.max_streak,
        multiplier=entry.multiplier,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    contest_id: int,
    db: Database,
    limit: int = Query(50, description="1..100, anything else falls back to 50"),
):
    """
    Contest standings ordered by rank.

    Tied totals share a rank and the next rank skips: 1, 1, 3, 3, 5.
    """
    service = ScoringService(db)

    try:
        entries = await service.get_leaderboard(contest_id, limit)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return LeaderboardResponse(
        contest_id=contest_id,
        entries=[to_entry_response(e) for e in entries],
    )


@router.get("/leaderboard/users/{user_id}", response_model=UserRankResponse)
async def get_user_rank(contest_id: int, user_id: int, db: Database):
    service = ScoringService(db)

    try:
        entry = await service.get_user_rank(contest_id, user_id)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return UserRankResponse(
        contest_id=contest_id,
        user_id=user_id,
        rank=entry.rank,
        total_points=entry.total_points,
    )


@router.post("/leaderboard/update", response_model=LeaderboardResponse)
async def update_leaderboard(
    contest_id: int,
    caller: CurrentUserId,
    db: Database,
    limit: int = Query(50),
):
    """
    Recompute the contest's totals from the score ledger and re-rank.

    Returns 409 if a rank pass for this contest is already running.
    """
    service = ScoringService(db)

    try:
        entries = await service.update_leaderboard(contest_id, limit)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return LeaderboardResponse(
        contest_id=contest_id,
        entries=[to_entry_response(e) for e in entries],
    )


@router.get("/streaks", response_model=list[StreakResponse])
async def get_top_streaks(contest_id: int, db: Database, limit: int = Query(10)):
    """🔥 Longest running streaks in the contest"""
    service = ScoringService(db)

    try:
        states = await service.get_top_streaks(contest_id, limit)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return [
        StreakResponse(
            contest_id=s.contest_id,
            user_id=s.user_id,
            current_streak=s.current_streak,
            max_streak=s.max_streak,
            multiplier=streaks.multiplier(s),
            last_prediction_id=s.last_prediction_id,
            last_prediction_correct=s.last_prediction_correct,
        )
        for s in states
    ]


@router.get("/streaks/users/{user_id}", response_model=StreakResponse)
async def get_user_streak(contest_id: int, user_id: int, db: Database):
    service = ScoringService(db)

    try:
        state = await service.get_user_streak(contest_id, user_id)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return StreakResponse(
        contest_id=state.contest_id,
        user_id=state.user_id,
        current_streak=state.current_streak,
        max_streak=state.max_streak,
        multiplier=streaks.multiplier(state),
        last_prediction_id=state.last_prediction_id,
        last_prediction_correct=state.last_prediction_correct,
    )


@router.post("/repair", response_model=RepairReport)
async def repair_contest(
    contest_id: int,
    caller: CurrentUserId,
    db: Database,
    rebuild_streaks: bool = Query(False, description="Also replay every streak from the ledger"),
):
    """
    Rebuild the leaderboard from the ledger and report streaks that moved
    without a matching score.
    """
    service = ScoringService(db)

    try:
        return await service.repair_contest(contest_id, rebuild_streaks)
    except ScoringServiceError as e:
        raise to_http_exception(e)
