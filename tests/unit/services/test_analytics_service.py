"""
Unit tests for AnalyticsService and the rollup helpers
"""

import pytest
from datetime import datetime, timedelta, timezone

from scoring_service.core.exceptions import InvalidInputError
from scoring_service.models.analytics import (
    AccuracyTrend,
    PredictionTypeAccuracy,
    SportAccuracy,
    UserAnalytics,
)
from scoring_service.models.score import Score, ScoreCreate
from scoring_service.models.types import utcnow
from scoring_service.repositories.score_repository import ScoreRepository
from scoring_service.services.analytics_service import (
    AnalyticsService,
    group_records,
    period_label,
    render_csv,
    resolve_time_range,
    summarize,
    trend_granularity,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def record(score_id: int, points: float, days_ago: float = 1, **kwargs) -> Score:
    defaults = {"user_id": 7, "contest_id": 10, "prediction_id": score_id}
    return Score(id=score_id, points=points, scored_at=NOW - timedelta(days=days_ago), **{**defaults, **kwargs})


async def seed(repo: ScoreRepository, prediction_id: int, points: float, days_ago: float, **kwargs):
    data = {"user_id": 7, "contest_id": 10, **kwargs}
    await repo.create(
        ScoreCreate(
            prediction_id=prediction_id,
            points=points,
            scored_at=utcnow() - timedelta(days=days_ago),
            **data,
        )
    )


class TestRollupHelpers:

    def test_resolve_time_range(self):
        assert resolve_time_range("7d", NOW) == ("7d", NOW - timedelta(days=7))
        assert resolve_time_range("all", NOW) == ("all", None)
        assert resolve_time_range("", NOW) == ("30d", NOW - timedelta(days=30))
        assert resolve_time_range(None, NOW)[0] == "30d"

    def test_resolve_time_range_invalid(self):
        with pytest.raises(InvalidInputError):
            resolve_time_range("1y", NOW)

    def test_trend_granularity(self):
        assert trend_granularity("7d") == "day"
        assert trend_granularity("30d") == "day"
        assert trend_granularity("90d") == "week"
        assert trend_granularity("all") == "week"

    def test_period_label(self):
        moment = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

        assert period_label(moment, "day") == "2026-01-01"
        assert period_label(moment, "week") == "2026-W01"
        assert period_label(moment, "month") == "2026-01"
        # ISO week belongs to the previous ISO year
        assert period_label(datetime(2027, 1, 1, tzinfo=timezone.utc), "week") == "2026-W53"

    def test_summarize_counts_positive_points_as_correct(self):
        records = [record(1, 5), record(2, 0), record(3, -2), record(4, 1.5)]

        total, correct, pct, points = summarize(records)

        assert (total, correct, pct, points) == (4, 2, 50.0, 4.5)

    def test_summarize_empty(self):
        assert summarize([]) == (0, 0, 0.0, 0)

    def test_group_by_sport_with_unknown(self):
        records = [
            record(1, 5, sport_type="football"),
            record(2, 0, sport_type="football"),
            record(3, 2, sport_type=None),
            record(4, 3, sport_type="basketball"),
        ]

        groups = group_records(records, "sport")

        assert [g.key for g in groups] == ["basketball", "football", "unknown"]
        football = groups[1]
        assert (football.total_predictions, football.correct_predictions) == (2, 1)
        assert football.accuracy_percentage == 50.0
        assert football.average_points == 2.5

    def test_group_by_league_skips_missing_and_sorts_numerically(self):
        records = [
            record(1, 5, league_id=140),
            record(2, 5, league_id=39),
            record(3, 5),
        ]

        groups = group_records(records, "league")

        assert [g.key for g in groups] == ["39", "140"]

    def test_group_by_invalid_axis(self):
        with pytest.raises(InvalidInputError):
            group_records([record(1, 5)], "weekday")


class TestRenderCsv:

    def test_full_report_layout(self):
        analytics = UserAnalytics(
            user_id=7,
            time_range="30d",
            total_predictions=3,
            correct_predictions=2,
            overall_accuracy=200 / 3,
            total_points=10.5,
            by_sport=[
                SportAccuracy(
                    sport_type="football",
                    total_predictions=3,
                    correct_predictions=2,
                    accuracy_percentage=200 / 3,
                    total_points=10.5,
                )
            ],
            by_type=[
                PredictionTypeAccuracy(
                    prediction_type="exact_score",
                    total_predictions=3,
                    correct_predictions=2,
                    accuracy_percentage=200 / 3,
                    average_points=3.5,
                )
            ],
            trends=[
                AccuracyTrend(
                    period="2026-03-14",
                    total_predictions=3,
                    correct_predictions=2,
                    accuracy_percentage=200 / 3,
                    total_points=10.5,
                )
            ],
        )

        text = render_csv(analytics)

        assert text == (
            "User Analytics Report\n"
            "User ID,7\n"
            "Time Range,30d\n"
            "\n"
            "Overall Statistics\n"
            "Metric,Value\n"
            "Total Predictions,3\n"
            "Correct Predictions,2\n"
            "Overall Accuracy,66.67%\n"
            "Total Points,10.50\n"
            "\n"
            "Performance by Sport\n"
            "Sport,Total,Correct,Accuracy,Points\n"
            "football,3,2,66.67%,10.50\n"
            "\n"
            "Performance by Prediction Type\n"
            "Type,Total,Correct,Accuracy,Avg Points\n"
            "exact_score,3,2,66.67%,3.50\n"
            "\n"
            "Accuracy Trends\n"
            "Period,Total,Correct,Accuracy,Points\n"
            "2026-03-14,3,2,66.67%,10.50\n"
        )

    def test_empty_sections_are_omitted(self):
        text = render_csv(UserAnalytics(user_id=7, time_range="7d"))

        assert text.endswith("Total Points,0.00\n\n")
        assert "Performance by Sport" not in text
        assert "Accuracy Trends" not in text


class TestAnalyticsService:
    """Test suite for analytics over the ledger."""

    @pytest.mark.asyncio
    async def test_user_analytics(self, test_db):
        repo = ScoreRepository(test_db)
        await seed(repo, 1, 7.5, 1, sport_type="football", league_id=39, league_name="Premier League", prediction_type="exact_score")
        await seed(repo, 2, 0, 2, sport_type="football", league_id=39, league_name="Premier League", prediction_type="winner")
        await seed(repo, 3, 3, 3, sport_type="hockey", prediction_type="winner")
        await seed(repo, 4, 5, 60, sport_type="football", prediction_type="exact_score")
        await seed(repo, 5, 2, 1, user_id=8, sport_type="football")
        service = AnalyticsService(test_db)

        # Act
        analytics = await service.get_user_analytics(7, "30d")

        # Assert
        assert analytics.total_predictions == 3
        assert analytics.correct_predictions == 2
        assert analytics.overall_accuracy == pytest.approx(66.666, rel=1e-3)
        assert analytics.total_points == 10.5

        assert [s.sport_type for s in analytics.by_sport] == ["football", "hockey"]
        assert analytics.by_sport[0].total_predictions == 2

        assert len(analytics.by_league) == 1
        league = analytics.by_league[0]
        assert (league.league_id, league.league_name, league.total_predictions) == (39, "Premier League", 2)

        by_type = {t.prediction_type: t for t in analytics.by_type}
        assert by_type["winner"].total_predictions == 2
        assert by_type["winner"].average_points == 1.5

        assert sum(t.total_predictions for t in analytics.trends) == 3
        assert all(len(t.period) == 10 for t in analytics.trends)

        platform = analytics.platform_comparison
        assert platform.total_users == 2
        assert platform.total_predictions == 4

    @pytest.mark.asyncio
    async def test_all_time_uses_weekly_trends(self, test_db):
        repo = ScoreRepository(test_db)
        await seed(repo, 1, 5, 1)
        await seed(repo, 2, 5, 60)
        service = AnalyticsService(test_db)

        analytics = await service.get_user_analytics(7, "all")

        assert analytics.total_predictions == 2
        assert all("-W" in t.period for t in analytics.trends)

    @pytest.mark.asyncio
    async def test_user_without_records(self, test_db):
        service = AnalyticsService(test_db)

        analytics = await service.get_user_analytics(7, "7d")

        assert analytics.total_predictions == 0
        assert analytics.overall_accuracy == 0.0
        assert analytics.by_sport == []
        assert analytics.platform_comparison.total_predictions == 0

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, test_db):
        service = AnalyticsService(test_db)

        with pytest.raises(InvalidInputError):
            await service.get_user_analytics(0, "7d")
        with pytest.raises(InvalidInputError):
            await service.get_user_analytics(7, "2w")
        with pytest.raises(InvalidInputError):
            await service.get_platform_analytics("7d", group_by="country")

    @pytest.mark.asyncio
    async def test_platform_analytics_by_prediction_type(self, test_db):
        repo = ScoreRepository(test_db)
        await seed(repo, 1, 5, 1, prediction_type="exact_score")
        await seed(repo, 2, 0, 1, user_id=8, prediction_type="exact_score")
        await seed(repo, 3, 3, 1, user_id=9, prediction_type="winner")
        service = AnalyticsService(test_db)

        platform = await service.get_platform_analytics("7d", group_by="prediction_type")

        assert platform.stats.total_users == 3
        assert platform.stats.average_accuracy == pytest.approx(66.666, rel=1e-3)
        assert [(g.key, g.total_predictions) for g in platform.groups] == [("exact_score", 2), ("winner", 1)]

    @pytest.mark.asyncio
    async def test_export_csv(self, test_db):
        repo = ScoreRepository(test_db)
        await seed(repo, 1, 5, 1, sport_type="football", prediction_type="exact_score")
        service = AnalyticsService(test_db)

        text, filename = await service.export_csv(7, "7d")

        assert filename == "analytics_7_7d.csv"
        assert text.startswith("User Analytics Report\nUser ID,7\nTime Range,7d\n")
        assert "football,1,1,100.00%,5.00" in text

    @pytest.mark.asyncio
    async def test_platform_comparison_uses_the_same_window(self, test_db):
        repo = ScoreRepository(test_db)
        await seed(repo, 1, 5, 1)
        await seed(repo, 2, 3, 2, user_id=8)
        await seed(repo, 3, 4, 45, user_id=9)
        service = AnalyticsService(test_db)

        analytics = await service.get_user_analytics(7, "30d")
        platform = await service.get_platform_analytics("30d", group_by="sport")

        assert analytics.platform_comparison.total_users == 2
        assert analytics.platform_comparison.total_predictions == 2
        assert analytics.platform_comparison.average_points_per_prediction == 4.0
        assert platform.stats.total_users == 2
        assert [(g.key, g.total_predictions) for g in platform.groups] == [("unknown", 2)]
