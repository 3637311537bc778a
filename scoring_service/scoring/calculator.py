"""
Scoring calculator.

Pure function of (prediction, result, rules). It never raises for bad data:
problems are reported through ``details["error"]`` with zero points.
Only ``calculate_from_text`` raises, and only for payloads that are not even
well-formed (broken JSON, contradictory result, invalid rules).
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from scoring_service.core.exceptions import InvalidInputError
from scoring_service.scoring.predictions import (
    AnyOther,
    EventResult,
    ExactScore,
    OverUnder,
    Prediction,
    PredictionError,
    PropPick,
    Props,
    Risky,
    Winner,
    outcome_of,
    parse_prediction,
    parse_result,
)
from scoring_service.scoring.rules import ContestRules, StandardScoring, parse_rules

logger = logging.getLogger(__name__)

WINNER_POINTS = 3.0
OVER_UNDER_POINTS = 2.0
DEFAULT_PROP_POINTS = 2.0

# Scores above this on either side count as "any other"
ANY_OTHER_GOAL_LIMIT = 4


@dataclass
class CalculationResult:
    points: float
    details: dict[str, Any] = field(default_factory=dict)

    def details_json(self) -> str:
        return json.dumps(self.details, default=str)


# ============================================================
# STANDARD (exact score / any other)
# ============================================================

def _score_standard(prediction, result: EventResult, scoring: StandardScoring, details: dict) -> float:
    details["actual_score"] = f"{result.home_score}:{result.away_score}"

    if isinstance(prediction, AnyOther):
        details["is_any_other"] = True
        is_other = result.home_score > ANY_OTHER_GOAL_LIMIT or result.away_score > ANY_OTHER_GOAL_LIMIT
        details["result_is_other"] = is_other
        if is_other:
            details["match_type"] = "any_other_correct"
            return scoring.any_other
        details["match_type"] = "any_other_incorrect"
        return 0.0

    ph, pa = prediction.home, prediction.away
    rh, ra = result.home_score, result.away_score
    details["is_any_other"] = False
    details["predicted_score"] = f"{ph}:{pa}"

    if ph == rh and pa == ra:
        details["match_type"] = "exact_score"
        return scoring.exact_score

    predicted_outcome = outcome_of(ph, pa)
    actual_outcome = outcome_of(rh, ra)
    details["predicted_outcome"] = predicted_outcome.value
    details["actual_outcome"] = actual_outcome.value

    if ph - pa == rh - ra:
        details["match_type"] = "goal_difference"
        return scoring.goal_difference

    if predicted_outcome == actual_outcome:
        home_match = ph == rh
        away_match = pa == ra
        if home_match or away_match:
            details["match_type"] = "outcome_plus_team_goals"
            details["home_goals_match"] = home_match
            details["away_goals_match"] = away_match
            return scoring.correct_outcome + scoring.outcome_plus_team_goals

        details["match_type"] = "correct_outcome"
        return scoring.correct_outcome

    details["match_type"] = "none"
    return 0.0


# ============================================================
# WINNER / OVER-UNDER
# ============================================================

def _score_winner(prediction: Winner, result: EventResult, details: dict) -> float:
    details["predicted_winner"] = prediction.choice.value
    details["actual_winner"] = result.winner.value
    match = prediction.choice == result.winner
    details["match"] = match
    return WINNER_POINTS if match else 0.0


def _over_under_hit(side: str, value: float, line: float) -> bool:
    # Landing exactly on the line is a miss for both sides
    if side == "over":
        return value > line
    if side == "under":
        return value < line
    return False


def _score_over_under(prediction: OverUnder, result: EventResult, details: dict) -> float:
    details["predicted"] = prediction.side
    details["threshold"] = prediction.threshold
    details["total_goals"] = result.total_goals
    correct = _over_under_hit(prediction.side, float(result.total_goals), prediction.threshold)
    details["correct"] = correct
    return OVER_UNDER_POINTS if correct else 0.0


# ============================================================
# RISKY
# ============================================================

def _score_risky(prediction: Risky, result: EventResult, rules: ContestRules, details: dict) -> float:
    risky = rules.risky_scoring()
    details["selections"] = list(prediction.selections)

    total = 0.0
    event_results = []
    for slug in prediction.selections:
        event = risky.get_event(slug)
        if event is None:
            continue

        occurred = result.stats.get(slug)
        if not isinstance(occurred, bool):
            # Outcome not settled yet
            continue

        earned = event.points if occurred else -event.points
        total += earned
        event_results.append(
            {
                "slug": slug,
                "name": event.name,
                "points": event.points,
                "occurred": occurred,
                "earned": earned,
            }
        )

    details["event_results"] = event_results
    details["raw_points"] = total

    if total < 0 and not risky.allow_negative:
        details["clamped"] = True
        total = 0.0

    details["total_points"] = total
    return total


# ============================================================
# PROPS
# ============================================================

def _goals_over_under(pick: PropPick, result: EventResult) -> bool:
    return _over_under_hit(pick.selection, float(result.total_goals), pick.line)


def _stat_over_under(stat: str) -> Callable[[PropPick, EventResult], bool]:
    def evaluate(pick: PropPick, result: EventResult) -> bool:
        value = result.stat_number(stat)
        if value is None:
            return False
        return _over_under_hit(pick.selection, value, pick.line)

    return evaluate


def _both_teams_score(pick: PropPick, result: EventResult) -> bool:
    btts = result.home_score > 0 and result.away_score > 0
    return btts if pick.selection == "yes" else not btts


def _first_to_score(pick: PropPick, result: EventResult) -> bool:
    first = result.stats.get("first_to_score")
    return isinstance(first, str) and first == pick.selection


PROP_EVALUATORS: dict[str, Callable[[PropPick, EventResult], bool]] = {
    "total-goals-ou": _goals_over_under,
    "total-corners-ou": _stat_over_under("corners"),
    "btts": _both_teams_score,
    "first-to-score": _first_to_score,
    "total-cards-ou": _stat_over_under("cards"),
}


def _score_props(prediction: Props, result: EventResult, details: dict) -> float:
    total = 0.0
    prop_results = []

    for pick in prediction.props:
        evaluate = PROP_EVALUATORS.get(pick.prop_slug)
        if evaluate is None:
            logger.warning(f"Unknown prop slug: {pick.prop_slug}")
            correct = False
        else:
            correct = evaluate(pick, result)

        points = 0.0
        if correct:
            points = pick.points_value if pick.points_value > 0 else DEFAULT_PROP_POINTS
        total += points

        prop_results.append(
            {
                "prop_slug": pick.prop_slug,
                "selection": pick.selection,
                "line": pick.line,
                "correct": correct,
                "points": points,
            }
        )

    details["props_results"] = prop_results
    details["total_props"] = len(prop_results)
    details["correct_props"] = sum(1 for r in prop_results if r["correct"])
    return total


# ============================================================
# ENTRY POINTS
# ============================================================

def calculate(prediction: Prediction, result: EventResult, rules: ContestRules) -> CalculationResult:
    """Base points for one prediction under a contest's rules."""
    details: dict[str, Any] = {
        "prediction_type": prediction.kind,
        "contest_type": rules.type.value,
    }

    if isinstance(prediction, (ExactScore, AnyOther)):
        # Risky contests have no score bundle of their own
        scoring = StandardScoring() if rules.is_risky else rules.standard_scoring()
        points = _score_standard(prediction, result, scoring, details)
    elif isinstance(prediction, Winner):
        points = _score_winner(prediction, result, details)
    elif isinstance(prediction, OverUnder):
        points = _score_over_under(prediction, result, details)
    elif isinstance(prediction, Risky):
        points = _score_risky(prediction, result, rules, details)
    elif isinstance(prediction, Props):
        points = _score_props(prediction, result, details)
    else:
        details["error"] = "Unknown prediction type"
        points = 0.0

    return CalculationResult(points=points, details=details)


def calculate_payload(payload: dict, result: EventResult, rules: ContestRules) -> CalculationResult:
    """Like ``calculate`` but from a decoded payload, reporting bad payloads in-band."""
    try:
        prediction = parse_prediction(payload)
    except PredictionError as e:
        return CalculationResult(
            points=0.0,
            details={
                "prediction_type": payload.get("type"),
                "contest_type": rules.type.value,
                "error": str(e),
            },
        )
    return calculate(prediction, result, rules)


def _decode(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, json.JSONDecodeError):
        raise InvalidInputError(f"Invalid {what} data format")


def calculate_from_text(
    prediction_data: str,
    result_data: str,
    rules_text: Optional[str] = None,
) -> CalculationResult:
    """
    Score the textual payloads the RPC surface receives.

    Raises InvalidInputError for malformed JSON, an invalid result or
    invalid rules; every other problem stays in ``details["error"]``.
    """
    payload = _decode(prediction_data, "prediction")
    if not isinstance(payload, dict):
        raise InvalidInputError("Invalid prediction data format")

    result = parse_result(_decode(result_data, "result"))
    rules = parse_rules(rules_text)

    return calculate_payload(payload, result, rules)


def validate_risky_selections(selections: list[str], rules: ContestRules) -> None:
    """Check a risky pick before it is stored: count and catalogue membership."""
    if not rules.is_risky:
        raise InvalidInputError("contest is not risky type")

    risky = rules.risky_scoring()
    if len(selections) > risky.max_selections:
        raise InvalidInputError(
            f"too many selections: max {risky.max_selections} allowed, got {len(selections)}"
        )

    for slug in selections:
        if risky.get_event(slug) is None:
            raise InvalidInputError(f"unknown event: {slug}")
