from .score_repository import ScoreRepository
from .streak_repository import StreakRepository
from .leaderboard_repository import LeaderboardRepository

__all__ = [
    "ScoreRepository",
    "StreakRepository",
    "LeaderboardRepository",
]
