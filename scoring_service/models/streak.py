from typing import Optional
from pydantic import BaseModel, Field

from scoring_service.models.types import UtcDatetime


def streak_key(contest_id: int, user_id: int) -> str:
    return f"{contest_id}:{user_id}"


class Streak(BaseModel):
    """Consecutive correct predictions of a user inside a contest"""

    id: str  # contest_id:user_id

    contest_id: int
    user_id: int

    current_streak: int = Field(default=0, ge=0)
    max_streak: int = Field(default=0, ge=0)

    last_prediction_id: Optional[int] = None
    last_prediction_correct: Optional[bool] = None

    updated_at: Optional[UtcDatetime] = None

    class Config:
        populate_by_name = True
