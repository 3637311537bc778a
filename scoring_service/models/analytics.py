from typing import Optional
from pydantic import BaseModel


class SportAccuracy(BaseModel):
    sport_type: str
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float
    total_points: float


class LeagueAccuracy(BaseModel):
    league_id: int
    league_name: str
    sport_type: str
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float


class PredictionTypeAccuracy(BaseModel):
    prediction_type: str
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float
    average_points: float


class AccuracyTrend(BaseModel):
    period: str  # YYYY-MM-DD | YYYY-Www | YYYY-MM
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float
    total_points: float


class PlatformStats(BaseModel):
    average_accuracy: float
    average_points_per_prediction: float
    total_users: int
    total_predictions: int


class UserAnalytics(BaseModel):
    """Everything GetUserAnalytics returns for one user and time range"""

    user_id: int
    time_range: str

    total_predictions: int = 0
    correct_predictions: int = 0
    overall_accuracy: float = 0.0
    total_points: float = 0.0

    by_sport: list[SportAccuracy] = []
    by_league: list[LeagueAccuracy] = []
    by_type: list[PredictionTypeAccuracy] = []
    trends: list[AccuracyTrend] = []
    platform_comparison: Optional[PlatformStats] = None


class GroupStats(BaseModel):
    """Generic rollup row used by the platform-wide grouping"""

    key: str
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float
    total_points: float
    average_points: float


class PlatformAnalytics(BaseModel):
    """Platform-wide rollup along one axis"""

    time_range: str
    group_by: str
    stats: PlatformStats
    groups: list[GroupStats] = []
