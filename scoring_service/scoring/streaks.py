"""
Streak state transitions and the streak multiplier.

Everything here is pure: the persistence side lives in
``services/streak_service.py``.
"""

from typing import Optional

from scoring_service.core.exceptions import FatalError
from scoring_service.models.streak import Streak
from scoring_service.models.types import utcnow

# (minimum current streak, multiplier), highest first
STREAK_TIERS: tuple[tuple[int, float], ...] = (
    (10, 2.0),
    (7, 1.75),
    (5, 1.5),
    (3, 1.25),
)


def multiplier_for(current_streak: int) -> float:
    for minimum, value in STREAK_TIERS:
        if current_streak >= minimum:
            return value
    return 1.0


def multiplier(state: Streak) -> float:
    """Multiplier for the streak as it stands, i.e. after the latest prediction."""
    return multiplier_for(state.current_streak)


def on_scored(state: Streak, prediction_id: Optional[int], correct: bool) -> Streak:
    """Return the state after one scored prediction. The input is left untouched."""
    if correct:
        current = state.current_streak + 1
        best = max(state.max_streak, current)
    else:
        current = 0
        best = state.max_streak

    return state.model_copy(
        update={
            "current_streak": current,
            "max_streak": best,
            "last_prediction_id": prediction_id,
            "last_prediction_correct": correct,
            "updated_at": utcnow(),
        }
    )


def check_invariants(state: Streak) -> None:
    if state.current_streak < 0 or state.max_streak < 0:
        raise FatalError(
            f"negative streak counter for contest {state.contest_id} user {state.user_id}"
        )
    if state.max_streak < state.current_streak:
        raise FatalError(
            f"streak max {state.max_streak} below current {state.current_streak} "
            f"for contest {state.contest_id} user {state.user_id}"
        )
