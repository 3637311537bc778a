from .score import Score, ScoreCreate, ScoreSubmission, ScoreSubmissionResult
from .streak import Streak, streak_key
from .leaderboard import LeaderboardEntry, RepairReport, display_key, leaderboard_key, standing_key
from .analytics import (
    AccuracyTrend,
    GroupStats,
    LeagueAccuracy,
    PlatformAnalytics,
    PlatformStats,
    PredictionTypeAccuracy,
    SportAccuracy,
    UserAnalytics,
)

__all__ = [
    "Score",
    "ScoreCreate",
    "ScoreSubmission",
    "ScoreSubmissionResult",
    "Streak",
    "streak_key",
    "LeaderboardEntry",
    "RepairReport",
    "leaderboard_key",
    "display_key",
    "standing_key",
    "AccuracyTrend",
    "GroupStats",
    "LeagueAccuracy",
    "PlatformAnalytics",
    "PlatformStats",
    "PredictionTypeAccuracy",
    "SportAccuracy",
    "UserAnalytics",
]
