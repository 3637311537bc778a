"""
AnalyticsService - accuracy and points rollups over the score ledger.

A prediction counts as correct when its score record has points > 0.
The time window is applied in the ledger query. Platform totals are summed
in MongoDB; breakdowns are grouped in Python over the rows of the window
with the pure rollup helpers below.
"""

import csv
import io
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from scoring_service.core.config import get_settings
from scoring_service.core.exceptions import InvalidInputError, ScoringServiceError
from scoring_service.models.analytics import (
    AccuracyTrend,
    GroupStats,
    LeagueAccuracy,
    PlatformAnalytics,
    PlatformStats,
    PredictionTypeAccuracy,
    SportAccuracy,
    UserAnalytics,
)
from scoring_service.models.score import Score
from scoring_service.models.types import utcnow
from scoring_service.repositories.score_repository import ScoreRepository

logger = logging.getLogger(__name__)

TIME_RANGES: dict[str, Optional[timedelta]] = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "all": None,
}

UNKNOWN = "unknown"
AXES = ("sport", "league", "prediction_type", "day", "week", "month")


# ============================================
# 🧮 PURE ROLLUPS
# ============================================

def resolve_time_range(time_range: Optional[str], now: Optional[datetime] = None) -> tuple[str, Optional[datetime]]:
    """Normalise a time range and return it with the start of its window (None = all time)"""
    time_range = time_range or get_settings().analytics_default_time_range
    if time_range not in TIME_RANGES:
        raise InvalidInputError(f"Invalid time_range '{time_range}', expected one of {', '.join(TIME_RANGES)}")
    window = TIME_RANGES[time_range]
    if window is None:
        return time_range, None
    return time_range, (now or utcnow()) - window


def trend_granularity(time_range: str) -> str:
    return "week" if time_range in ("90d", "all") else "day"


def accuracy(correct: int, total: int) -> float:
    return 100.0 * correct / total if total else 0.0


def summarize(records: list[Score]) -> tuple[int, int, float, float]:
    """(total, correct, accuracy %, points)"""
    total = len(records)
    correct = sum(1 for r in records if r.is_correct)
    points = sum(r.points for r in records)
    return total, correct, accuracy(correct, total), points


def period_label(moment: datetime, granularity: str) -> str:
    if granularity == "day":
        return moment.strftime("%Y-%m-%d")
    if granularity == "week":
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == "month":
        return moment.strftime("%Y-%m")
    raise InvalidInputError(f"Invalid period granularity '{granularity}'")


def _key_function(axis: str) -> Callable[[Score], Optional[str]]:
    if axis == "sport":
        return lambda r: r.sport_type or UNKNOWN
    if axis == "league":
        return lambda r: str(r.league_id) if r.league_id is not None else None
    if axis == "prediction_type":
        return lambda r: r.prediction_type or UNKNOWN
    if axis in ("day", "week", "month"):
        return lambda r: period_label(r.scored_at, axis)
    raise InvalidInputError(f"Invalid group_by '{axis}', expected one of {', '.join(AXES)}")


def group_records(records: list[Score], axis: str) -> list[GroupStats]:
    """
    Roll records up along one axis, sorted by key.

    Records without a league are left out of the league axis.
    """
    key_of = _key_function(axis)
    groups: dict[str, list[Score]] = defaultdict(list)
    for record in records:
        key = key_of(record)
        if key is not None:
            groups[key].append(record)

    rows = []
    for key in sorted(groups, key=int if axis == "league" else None):
        total, correct, pct, points = summarize(groups[key])
        rows.append(
            GroupStats(
                key=key,
                total_predictions=total,
                correct_predictions=correct,
                accuracy_percentage=pct,
                total_points=points,
                average_points=points / total if total else 0.0,
            )
        )
    return rows


def platform_stats(summary: dict) -> PlatformStats:
    """PlatformStats from ScoreRepository.platform_summary"""
    total = summary["total_predictions"]
    return PlatformStats(
        average_accuracy=accuracy(summary["correct_predictions"], total),
        average_points_per_prediction=summary["total_points"] / total if total else 0.0,
        total_users=summary["total_users"],
        total_predictions=total,
    )


def by_sport(records: list[Score]) -> list[SportAccuracy]:
    return [
        SportAccuracy(
            sport_type=g.key,
            total_predictions=g.total_predictions,
            correct_predictions=g.correct_predictions,
            accuracy_percentage=g.accuracy_percentage,
            total_points=g.total_points,
        )
        for g in group_records(records, "sport")
    ]


def by_league(records: list[Score]) -> list[LeagueAccuracy]:
    groups: dict[tuple, list[Score]] = defaultdict(list)
    for record in records:
        if record.league_id is None:
            continue
        groups[(record.league_id, record.league_name or "", record.sport_type or UNKNOWN)].append(record)

    rows = []
    for league_id, league_name, sport_type in sorted(groups):
        total, correct, pct, _ = summarize(groups[(league_id, league_name, sport_type)])
        rows.append(
            LeagueAccuracy(
                league_id=league_id,
                league_name=league_name,
                sport_type=sport_type,
                total_predictions=total,
                correct_predictions=correct,
                accuracy_percentage=pct,
            )
        )
    return rows


def by_type(records: list[Score]) -> list[PredictionTypeAccuracy]:
    return [
        PredictionTypeAccuracy(
            prediction_type=g.key,
            total_predictions=g.total_predictions,
            correct_predictions=g.correct_predictions,
            accuracy_percentage=g.accuracy_percentage,
            average_points=g.average_points,
        )
        for g in group_records(records, "prediction_type")
    ]


def trends(records: list[Score], granularity: str) -> list[AccuracyTrend]:
    return [
        AccuracyTrend(
            period=g.key,
            total_predictions=g.total_predictions,
            correct_predictions=g.correct_predictions,
            accuracy_percentage=g.accuracy_percentage,
            total_points=g.total_points,
        )
        for g in group_records(records, granularity)
    ]


# ============================================
# 📄 CSV EXPORT
# ============================================

def export_filename(user_id: int, time_range: str) -> str:
    return f"analytics_{user_id}_{time_range}.csv"


def render_csv(analytics: UserAnalytics) -> str:
    """Report layout: header, overall block, then the non-empty breakdowns"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow(["User Analytics Report"])
    writer.writerow(["User ID", analytics.user_id])
    writer.writerow(["Time Range", analytics.time_range])
    writer.writerow([])

    writer.writerow(["Overall Statistics"])
    writer.writerow(["Metric", "Value"])
    writer.writerow(["Total Predictions", analytics.total_predictions])
    writer.writerow(["Correct Predictions", analytics.correct_predictions])
    writer.writerow(["Overall Accuracy", f"{analytics.overall_accuracy:.2f}%"])
    writer.writerow(["Total Points", f"{analytics.total_points:.2f}"])
    writer.writerow([])

    if analytics.by_sport:
        writer.writerow(["Performance by Sport"])
        writer.writerow(["Sport", "Total", "Correct", "Accuracy", "Points"])
        for row in analytics.by_sport:
            writer.writerow([
                row.sport_type,
                row.total_predictions,
                row.correct_predictions,
                f"{row.accuracy_percentage:.2f}%",
                f"{row.total_points:.2f}",
            ])
        writer.writerow([])

    if analytics.by_type:
        writer.writerow(["Performance by Prediction Type"])
        writer.writerow(["Type", "Total", "Correct", "Accuracy", "Avg Points"])
        for row in analytics.by_type:
            writer.writerow([
                row.prediction_type,
                row.total_predictions,
                row.correct_predictions,
                f"{row.accuracy_percentage:.2f}%",
                f"{row.average_points:.2f}",
            ])
        writer.writerow([])

    if analytics.trends:
        writer.writerow(["Accuracy Trends"])
        writer.writerow(["Period", "Total", "Correct", "Accuracy", "Points"])
        for row in analytics.trends:
            writer.writerow([
                row.period,
                row.total_predictions,
                row.correct_predictions,
                f"{row.accuracy_percentage:.2f}%",
                f"{row.total_points:.2f}",
            ])

    return buffer.getvalue()


# ============================================
# 🎯 SERVICE
# ============================================

class AnalyticsService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.score_repo = ScoreRepository(db)

    async def get_user_analytics(self, user_id: int, time_range: Optional[str] = None) -> UserAnalytics:
        """
        Overall numbers plus breakdowns by sport, league, prediction type and
        period, and the platform numbers for comparison.
        """
        if user_id <= 0:
            raise InvalidInputError("User ID is required")

        time_range, since = resolve_time_range(time_range)
        records = await self.score_repo.list_for_analytics(user_id, since)

        total, correct, pct, points = summarize(records)
        analytics = UserAnalytics(
            user_id=user_id,
            time_range=time_range,
            total_predictions=total,
            correct_predictions=correct,
            overall_accuracy=pct,
            total_points=points,
            by_sport=by_sport(records),
            by_league=by_league(records),
            by_type=by_type(records),
            trends=trends(records, trend_granularity(time_range)),
        )

        try:
            analytics.platform_comparison = platform_stats(await self.score_repo.platform_summary(since))
        except ScoringServiceError as e:
            logger.warning(f"⚠️ Platform comparison unavailable for user {user_id}: {e.message}")

        return analytics

    async def get_platform_analytics(
        self,
        time_range: Optional[str] = None,
        group_by: str = "sport",
    ) -> PlatformAnalytics:
        """Platform-wide numbers, broken down along ``group_by``"""
        time_range, since = resolve_time_range(time_range)
        if group_by not in AXES:
            raise InvalidInputError(f"Invalid group_by '{group_by}', expected one of {', '.join(AXES)}")

        records = await self.score_repo.list_for_analytics(None, since)
        return PlatformAnalytics(
            time_range=time_range,
            group_by=group_by,
            stats=platform_stats(await self.score_repo.platform_summary(since)),
            groups=group_records(records, group_by),
        )

    async def export_csv(self, user_id: int, time_range: Optional[str] = None) -> tuple[str, str]:
        """Returns (csv text, suggested filename)"""
        analytics = await self.get_user_analytics(user_id, time_range)
        return render_csv(analytics), export_filename(user_id, analytics.time_range)
