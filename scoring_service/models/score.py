import math
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from scoring_service.models.types import UtcDatetime


class Score(BaseModel):
    """Append-only ledger record: points awarded for one prediction"""

    id: int

    user_id: int
    contest_id: int
    prediction_id: int  # idempotence key, unique across the ledger

    points: float
    time_coefficient: float = 1.0

    # Analytics dimensions, denormalised at submission time
    prediction_type: Optional[str] = None  # exact_score | winner | over_under | ...
    sport_type: Optional[str] = None
    league_id: Optional[int] = None
    league_name: Optional[str] = None

    scored_at: UtcDatetime

    class Config:
        populate_by_name = True

    @property
    def is_correct(self) -> bool:
        return self.points > 0


class ScoreCreate(BaseModel):
    """Fields the caller supplies; id and scored_at are assigned by the ledger"""

    user_id: int
    contest_id: int
    prediction_id: int

    points: float
    time_coefficient: float = 1.0

    prediction_type: Optional[str] = None
    sport_type: Optional[str] = None
    league_id: Optional[int] = None
    league_name: Optional[str] = None

    scored_at: Optional[UtcDatetime] = None


class ScoreSubmission(BaseModel):
    """A scored prediction handed over by the prediction service"""

    user_id: int = Field(gt=0)
    contest_id: int = Field(gt=0)
    prediction_id: int = Field(gt=0)

    base_points: float  # calculator output, before multipliers

    submitted_at: Optional[UtcDatetime] = None
    event_date: Optional[UtcDatetime] = Field(
        default=None,
        validation_alias=AliasChoices("event_date", "event_at"),
    )

    prediction_type: Optional[str] = None
    sport_type: Optional[str] = None
    league_id: Optional[int] = None
    league_name: Optional[str] = None

    @field_validator("base_points")
    @classmethod
    def finite_points(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("base_points must be a finite number")
        return v


class ScoreSubmissionResult(BaseModel):
    score: Score
    streak_multiplier: float
    time_tier: str
    message: str = "Score created successfully"
