"""
ScoringService - the facade behind every route.

Submitting a score:
    1. load (or create) the user's streak for the contest
    2. apply the prediction to it (correct = base points > 0)
    3. time coefficient from submission time vs. event start
    4. streak multiplier, read after the update
    5. final points = base x streak multiplier x time coefficient
    6. store the streak; if that fails nothing else is written
    7. append the score to the ledger
    8. new ledger total -> leaderboard upsert -> rank pass
       (a failure here is a partial success: the score stays, the caller
       retries the leaderboard update)

Submissions for the same (contest, user) run one at a time. Every public
coroutine is bounded by ``request_timeout_seconds``; a submission that runs
out of time in step 8 is reported as a partial success.
"""

import asyncio
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from scoring_service.cache import LeaderboardCache
from scoring_service.core.config import get_settings
from scoring_service.core.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    PartialSuccessError,
    ScoringServiceError,
    UnavailableError,
)
from scoring_service.core.locks import submission_locks
from scoring_service.models.analytics import PlatformAnalytics, UserAnalytics
from scoring_service.models.leaderboard import LeaderboardEntry, RepairReport
from scoring_service.models.score import Score, ScoreCreate, ScoreSubmission, ScoreSubmissionResult
from scoring_service.models.streak import Streak
from scoring_service.repositories.score_repository import ScoreRepository
from scoring_service.scoring import streaks
from scoring_service.scoring.calculator import CalculationResult, calculate_from_text, validate_risky_selections
from scoring_service.scoring.coefficient import CoefficientEngine, default_engine
from scoring_service.scoring.rules import ContestRules, parse_rules
from scoring_service.services.analytics_service import AnalyticsService
from scoring_service.services.leaderboard_service import LeaderboardService
from scoring_service.services.streak_service import StreakService

logger = logging.getLogger(__name__)


class ScoringService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        cache: Optional[LeaderboardCache] = None,
        coefficients: Optional[CoefficientEngine] = None,
    ):
        self.score_repo = ScoreRepository(db)
        self.streak_service = StreakService(db)
        self.leaderboard_service = LeaderboardService(db, cache)
        self.analytics_service = AnalyticsService(db)
        self.coefficients = coefficients or default_engine

        settings = get_settings()
        self.timeout = settings.request_timeout_seconds
        self.default_limit = settings.leaderboard_default_limit
        self.max_limit = settings.leaderboard_max_limit

    async def _bounded(self, coro, operation: str, timeout: Optional[float] = None):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout if timeout is None else max(timeout, 0))
        except asyncio.TimeoutError:
            logger.error(f"❌ {operation} exceeded {self.timeout}s")
            raise UnavailableError(f"{operation} timed out")

    # ============================================
    # 🧮 CALCULATE
    # ============================================

    def calculate_score(
        self,
        prediction_data: str,
        result_data: str,
        rules_text: Optional[str] = None,
    ) -> CalculationResult:
        return calculate_from_text(prediction_data, result_data, rules_text)

    def validate_rules(
        self,
        rules_text: Optional[str],
        risky_selections: Optional[list[str]] = None,
    ) -> ContestRules:
        """
        Strict check of a contest's rules before they are saved.

        Scoring itself parses rules leniently; this also enforces the field
        ranges and, when given, that a risky pick fits the catalogue.
        """
        rules = parse_rules(rules_text)
        rules.validate_ranges()
        if risky_selections is not None:
            validate_risky_selections(risky_selections, rules)
        return rules

    # ============================================
    # 📌 SUBMIT
    # ============================================

    async def submit_score(self, submission: ScoreSubmission) -> ScoreSubmissionResult:
        """
        Steps 1-7 run under the request deadline. Step 8 gets whatever is
        left of it; running out there is a partial success because the score
        is already in the ledger.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        key = (submission.contest_id, submission.user_id)

        try:
            async with submission_locks.hold(key, timeout=self.timeout):
                result = await self._bounded(
                    self._record(submission),
                    "score submission",
                    timeout=deadline - loop.time(),
                )
                await self._update_standings(result.score, timeout=deadline - loop.time())
        except asyncio.TimeoutError:
            logger.error(f"❌ Waited {self.timeout}s for a running submission of {key}")
            raise UnavailableError("score submission timed out")

        return result

    async def _record(self, submission: ScoreSubmission) -> ScoreSubmissionResult:
        # Reject replays before the streak moves
        if await self.score_repo.get_by_prediction(submission.prediction_id) is not None:
            raise AlreadyExistsError(
                f"Score for prediction {submission.prediction_id} already exists"
            )

        contest_id, user_id = submission.contest_id, submission.user_id
        previous = await self.streak_service.get_or_create(contest_id, user_id)
        state = streaks.on_scored(previous, submission.prediction_id, submission.base_points > 0)

        coefficient = self.coefficients.compute(submission.submitted_at, submission.event_date)
        streak_multiplier = streaks.multiplier(state)
        final_points = submission.base_points * streak_multiplier * coefficient.multiplier

        await self.streak_service.save(state)

        try:
            score = await self.score_repo.create(
                ScoreCreate(
                    user_id=user_id,
                    contest_id=contest_id,
                    prediction_id=submission.prediction_id,
                    points=final_points,
                    time_coefficient=coefficient.multiplier,
                    prediction_type=submission.prediction_type,
                    sport_type=submission.sport_type,
                    league_id=submission.league_id,
                    league_name=submission.league_name,
                )
            )
        except ScoringServiceError:
            await self._restore_streak(previous)
            raise

        logger.info(
            f"✅ Score {score.id} for prediction {submission.prediction_id}: "
            f"base={submission.base_points} streak={streak_multiplier} "
            f"time={coefficient.multiplier} ({coefficient.tier}) final={final_points}"
        )

        return ScoreSubmissionResult(
            score=score,
            streak_multiplier=streak_multiplier,
            time_tier=coefficient.tier,
        )

    async def _update_standings(self, score: Score, timeout: float) -> None:
        """New ledger total -> leaderboard upsert -> rank pass"""
        async def run():
            total = await self.score_repo.get_total_points(score.contest_id, score.user_id)
            await self.leaderboard_service.upsert(score.contest_id, score.user_id, total)
            await self.leaderboard_service.assign_ranks(score.contest_id)

        try:
            await asyncio.wait_for(run(), timeout=max(timeout, 0))
            return
        except asyncio.TimeoutError:
            reason = "deadline exceeded"
        except ScoringServiceError as e:
            reason = e.message

        logger.error(f"❌ Leaderboard update failed after score {score.id}: {reason}")
        raise PartialSuccessError(
            f"Score {score.id} stored but leaderboard update failed: {reason}",
            score_id=score.id,
        )

    async def _restore_streak(self, previous: Streak) -> None:
        try:
            await self.streak_service.save(previous)
        except ScoringServiceError as e:
            logger.error(
                f"❌ Could not restore streak {previous.id}; repair the contest to replay it: {e.message}"
            )

    # ============================================
    # 📌 SCORES
    # ============================================

    async def get_score(self, score_id: int) -> Score:
        score = await self._bounded(self.score_repo.get_by_id(score_id), "score lookup")
        if score is None:
            raise NotFoundError(f"Score {score_id} not found")
        return score

    async def get_user_scores(self, contest_id: int, user_id: int) -> tuple[list[Score], float]:
        async def load():
            scores = await self.score_repo.get_by_contest_and_user(contest_id, user_id)
            total = await self.score_repo.get_total_points(contest_id, user_id)
            return scores, total

        return await self._bounded(load(), "user scores lookup")

    # ============================================
    # 🏆 LEADERBOARD
    # ============================================

    def _normalise_limit(self, limit: Optional[int]) -> int:
        if limit is None or limit <= 0 or limit > self.max_limit:
            return self.default_limit
        return limit

    async def get_leaderboard(self, contest_id: int, limit: Optional[int] = None) -> list[LeaderboardEntry]:
        async def load():
            entries = await self.leaderboard_service.top(contest_id, self._normalise_limit(limit))
            return await self.leaderboard_service.with_streaks(contest_id, entries)

        return await self._bounded(load(), "leaderboard lookup")

    async def get_user_rank(self, contest_id: int, user_id: int) -> LeaderboardEntry:
        async def load():
            entry = await self.leaderboard_service.user_entry(contest_id, user_id)
            enriched = await self.leaderboard_service.with_streaks(contest_id, [entry])
            return enriched[0]

        return await self._bounded(load(), "rank lookup")

    async def update_leaderboard(self, contest_id: int, limit: Optional[int] = None) -> list[LeaderboardEntry]:
        """
        Recompute totals from the ledger and re-rank.

        Raises ConflictError when a rank pass for the contest is already running.
        """
        async def run():
            await self.leaderboard_service.recompute_from_ledger(contest_id)
            ranked = await self.leaderboard_service.assign_ranks(contest_id, wait=False)
            top = ranked[: self._normalise_limit(limit)]
            return await self.leaderboard_service.with_streaks(contest_id, top)

        return await self._bounded(run(), "leaderboard update")

    # ============================================
    # 🔥 STREAKS
    # ============================================

    async def get_user_streak(self, contest_id: int, user_id: int) -> Streak:
        return await self._bounded(self.streak_service.get(contest_id, user_id), "streak lookup")

    async def get_top_streaks(self, contest_id: int, limit: Optional[int] = None) -> list[Streak]:
        return await self._bounded(
            self.streak_service.top_streaks(contest_id, self._normalise_limit(limit)),
            "streak lookup",
        )

    # ============================================
    # 🔧 REPAIR
    # ============================================

    async def repair_contest(self, contest_id: int, rebuild_streaks: bool = False) -> RepairReport:
        """
        Heal a contest after partial failures.

        Totals are recomputed from the ledger and re-ranked. Streaks whose last
        prediction never reached the ledger are reported; with
        ``rebuild_streaks`` every streak of the contest is replayed from the
        ledger as well.
        """
        async def run():
            orphaned = await self.streak_service.find_orphaned(contest_id)
            for state in orphaned:
                logger.warning(
                    f"⚠️ Streak {state.id} advanced for prediction {state.last_prediction_id} without a score"
                )

            rebuilt = []
            if rebuild_streaks:
                rebuilt = await self.streak_service.rebuild_from_ledger(contest_id)

            await self.leaderboard_service.recompute_from_ledger(contest_id)
            ranked = await self.leaderboard_service.assign_ranks(contest_id)

            return RepairReport(
                contest_id=contest_id,
                entries=len(ranked),
                orphaned_streaks=[state.id for state in orphaned],
                streaks_rebuilt=len(rebuilt),
            )

        return await self._bounded(run(), "contest repair")

    # ============================================
    # 📊 ANALYTICS
    # ============================================

    async def get_user_analytics(self, user_id: int, time_range: Optional[str] = None) -> UserAnalytics:
        return await self._bounded(
            self.analytics_service.get_user_analytics(user_id, time_range),
            "analytics",
        )

    async def get_platform_analytics(
        self,
        time_range: Optional[str] = None,
        group_by: str = "sport",
    ) -> PlatformAnalytics:
        return await self._bounded(
            self.analytics_service.get_platform_analytics(time_range, group_by),
            "analytics",
        )

    async def export_analytics(self, user_id: int, time_range: Optional[str] = None) -> tuple[str, str]:
        return await self._bounded(self.analytics_service.export_csv(user_id, time_range), "analytics export")
