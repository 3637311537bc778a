from typing import Optional
from pydantic import BaseModel

from scoring_service.models.types import UtcDatetime


def leaderboard_key(contest_id: int, user_id: int) -> str:
    return f"{contest_id}:{user_id}"


class LeaderboardEntry(BaseModel):
    """A user's running total and position in one contest"""

    id: str  # contest_id:user_id

    contest_id: int
    user_id: int

    total_points: float = 0.0
    rank: int = 0  # 0 = not ranked yet

    updated_at: UtcDatetime

    # Filled from the streak tracker when serving, never persisted
    current_streak: Optional[int] = None
    max_streak: Optional[int] = None
    multiplier: Optional[float] = None

    class Config:
        populate_by_name = True

    @property
    def is_ranked(self) -> bool:
        return self.rank > 0


def standing_key(entry: LeaderboardEntry):
    """Order used by the rank pass: best total first, earliest to reach it wins"""
    return (-entry.total_points, entry.updated_at, entry.user_id)


def display_key(entry: LeaderboardEntry):
    """Order used when serving: by rank, entries not ranked yet at the end"""
    return (not entry.is_ranked, entry.rank, standing_key(entry))


class RepairReport(BaseModel):
    """Outcome of a repair pass over one contest"""

    contest_id: int
    entries: int
    orphaned_streaks: list[str] = []  # streak ids whose last prediction has no score
    streaks_rebuilt: int = 0
