"""
StreakService - persistence side of the streak tracker.

State transitions are pure (scoring/streaks.py); this service loads, checks
and stores them, and can rebuild every streak of a contest from the ledger.
"""

import logging
from collections import defaultdict

from motor.motor_asyncio import AsyncIOMotorDatabase

from scoring_service.core.exceptions import NotFoundError
from scoring_service.models.streak import Streak, streak_key
from scoring_service.models.types import utcnow
from scoring_service.repositories.score_repository import ScoreRepository
from scoring_service.repositories.streak_repository import StreakRepository
from scoring_service.scoring import streaks

logger = logging.getLogger(__name__)


class StreakService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.streak_repo = StreakRepository(db)
        self.score_repo = ScoreRepository(db)

    async def get_or_create(self, contest_id: int, user_id: int) -> Streak:
        state = await self.streak_repo.get_or_create(contest_id, user_id)
        streaks.check_invariants(state)
        return state

    async def get(self, contest_id: int, user_id: int) -> Streak:
        """Query-only lookup; a user without scores has no streak"""
        state = await self.streak_repo.get(contest_id, user_id)
        if state is None:
            raise NotFoundError(f"No streak for user {user_id} in contest {contest_id}")
        return state

    async def save(self, state: Streak) -> Streak:
        streaks.check_invariants(state)
        return await self.streak_repo.save(state)

    async def top_streaks(self, contest_id: int, limit: int = 10) -> list[Streak]:
        return await self.streak_repo.top_streaks(contest_id, limit)

    # ============================================
    # 🔧 REPAIR
    # ============================================

    async def find_orphaned(self, contest_id: int) -> list[Streak]:
        """
        Streaks whose last transition has no ledger row.

        This is what a submission leaves behind when the streak was stored
        and the ledger append then failed.
        """
        orphaned = []
        for state in await self.streak_repo.list_by_contest(contest_id):
            if state.last_prediction_id is None:
                continue
            if await self.score_repo.get_by_prediction(state.last_prediction_id) is None:
                orphaned.append(state)
        return orphaned

    async def rebuild_from_ledger(self, contest_id: int) -> list[Streak]:
        """
        Replay the contest's ledger in (scored_at, id) order and store the
        resulting streaks. Users with a streak but no scores are reset.
        """
        scores = await self.score_repo.list_by_contest(contest_id)
        scores.sort(key=lambda s: (s.scored_at, s.id))

        by_user = defaultdict(list)
        for score in scores:
            by_user[score.user_id].append(score)

        rebuilt: dict[int, Streak] = {}
        for user_id, user_scores in by_user.items():
            state = Streak(id=streak_key(contest_id, user_id), contest_id=contest_id, user_id=user_id)
            for score in user_scores:
                state = streaks.on_scored(state, score.prediction_id, score.is_correct)
            rebuilt[user_id] = state

        for existing in await self.streak_repo.list_by_contest(contest_id):
            if existing.user_id not in rebuilt:
                rebuilt[existing.user_id] = Streak(
                    id=existing.id,
                    contest_id=contest_id,
                    user_id=existing.user_id,
                    updated_at=utcnow(),
                )

        for state in rebuilt.values():
            await self.save(state)

        logger.info(f"🔁 Rebuilt {len(rebuilt)} streaks for contest {contest_id}")
        return sorted(rebuilt.values(), key=lambda s: s.user_id)

