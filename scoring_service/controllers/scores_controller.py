"""
Scores controller - calculation, submission and ledger lookups
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from scoring_service.core.dependencies import CurrentUserId, Database
from scoring_service.core.exceptions import ScoringServiceError, to_http_exception
from scoring_service.models.score import Score, ScoreSubmission, ScoreSubmissionResult
from scoring_service.services.scoring_service import ScoringService


router = APIRouter(tags=["scores"])


class CalculateScoreRequest(BaseModel):
    """Raw payloads as stored by the prediction and contest services."""
    prediction_data: str
    result_data: str
    rules_text: Optional[str] = None


class CalculateScoreResponse(BaseModel):
    points: float
    details: str  # JSON text


class ValidateRulesRequest(BaseModel):
    rules_text: Optional[str] = None
    risky_selections: Optional[list[str]] = None


class ValidateRulesResponse(BaseModel):
    valid: bool
    rules: str  # normalised rules JSON, defaults filled in


class ScoreResponse(BaseModel):
    id: int
    user_id: int
    contest_id: int
    prediction_id: int
    points: float
    time_coefficient: float
    prediction_type: Optional[str] = None
    scored_at: datetime


class UserScoresResponse(BaseModel):
    scores: list[ScoreResponse]
    total_points: float


class SubmitScoreResponse(BaseModel):
    score: ScoreResponse
    streak_multiplier: float
    time_tier: str
    message: str


def to_score_response(score: Score) -> ScoreResponse:
    return ScoreResponse(
        id=score.id,
        user_id=score.user_id,
        contest_id=score.contest_id,
        prediction_id=score.prediction_id,
        points=score.points,
        time_coefficient=score.time_coefficient,
        prediction_type=score.prediction_type,
        scored_at=score.scored_at,
    )


@router.post("/scores/calculate", response_model=CalculateScoreResponse)
async def calculate_score(body: CalculateScoreRequest, db: Database):
    """
    Score a prediction against a result under a contest's rules.

    Nothing is stored. Problems with the prediction itself come back in
    ``details.error`` with 0 points; unreadable payloads are a 400.
    """
    service = ScoringService(db)

    try:
        result = service.calculate_score(body.prediction_data, body.result_data, body.rules_text)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return CalculateScoreResponse(points=result.points, details=result.details_json())


@router.post("/rules/validate", response_model=ValidateRulesResponse)
async def validate_rules(body: ValidateRulesRequest, db: Database):
    """
    Check a contest's rules (and optionally a risky pick) before saving.

    Invalid rules or selections are a 400 with the reason.
    """
    service = ScoringService(db)

    try:
        rules = service.validate_rules(body.rules_text, body.risky_selections)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return ValidateRulesResponse(valid=True, rules=rules.to_json())


@router.post("/scores", response_model=SubmitScoreResponse, status_code=status.HTTP_201_CREATED)
async def submit_score(body: ScoreSubmission, caller: CurrentUserId, db: Database):
    """
    Record the points of a scored prediction.

    Applies the streak and time multipliers, appends to the ledger and
    updates the contest leaderboard. A prediction can only be submitted once.
    """
    service = ScoringService(db)

    try:
        result: ScoreSubmissionResult = await service.submit_score(body)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return SubmitScoreResponse(
        score=to_score_response(result.score),
        streak_multiplier=result.streak_multiplier,
        time_tier=result.time_tier,
        message=result.message,
    )


@router.get("/scores/{score_id}", response_model=ScoreResponse)
async def get_score(score_id: int, db: Database):
    service = ScoringService(db)

    try:
        score = await service.get_score(score_id)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return to_score_response(score)


@router.get("/contests/{contest_id}/users/{user_id}/scores", response_model=UserScoresResponse)
async def get_user_scores(contest_id: int, user_id: int, db: Database):
    """All scores of a user in a contest, oldest first, with their sum."""
    if contest_id <= 0 or user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="contest_id and user_id must be positive",
        )

    service = ScoringService(db)

    try:
        scores, total = await service.get_user_scores(contest_id, user_id)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return UserScoresResponse(
        scores=[to_score_response(s) for s in scores],
        total_points=total,
    )
