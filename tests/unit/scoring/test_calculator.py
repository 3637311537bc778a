"""
Unit tests for the scoring calculator
"""

import json

import pytest

from scoring_service.core.exceptions import InvalidInputError
from scoring_service.scoring.calculator import (
    calculate,
    calculate_from_text,
    calculate_payload,
    validate_risky_selections,
)
from scoring_service.scoring.predictions import AnyOther, EventResult, ExactScore, Winner, Outcome
from scoring_service.scoring.rules import default_rules, parse_rules


def result(home: int, away: int, **kwargs) -> EventResult:
    return EventResult(home_score=home, away_score=away, **kwargs)


def exact(home: int, away: int) -> ExactScore:
    return ExactScore(home=home, away=away)


class TestStandardScoring:
    """Exact-score and any-other predictions under the default bundle."""

    def test_exact_score(self):
        scored = calculate(exact(2, 1), result(2, 1), default_rules())
        assert scored.points == 5
        assert scored.details["match_type"] == "exact_score"

    def test_goal_difference_even_when_winner_differs(self):
        # 1-2 vs 2-3: both -1, so the difference clause fires first
        scored = calculate(exact(1, 2), result(2, 3), default_rules())
        assert scored.points == 3
        assert scored.details["match_type"] == "goal_difference"

    def test_outcome_plus_team_goals(self):
        # Home win both times, away goals match (0 = 0)
        scored = calculate(exact(2, 0), result(3, 0), default_rules())
        assert scored.points == 2 + 1
        assert scored.details["match_type"] == "outcome_plus_team_goals"
        assert scored.details["away_goals_match"] is True

    def test_correct_outcome_only(self):
        scored = calculate(exact(3, 1), result(1, 0), default_rules())
        assert scored.points == 2
        assert scored.details["match_type"] == "correct_outcome"

    def test_wrong_outcome(self):
        scored = calculate(exact(1, 0), result(0, 1), default_rules())
        assert scored.points == 0
        assert scored.details["match_type"] == "none"

    def test_draw_with_different_score_is_goal_difference(self):
        scored = calculate(exact(1, 1), result(2, 2), default_rules())
        assert scored.points == 3

    def test_any_other_hit(self):
        scored = calculate(AnyOther(), result(5, 0), default_rules())
        assert scored.points == 4
        assert scored.details["match_type"] == "any_other_correct"

    def test_any_other_miss(self):
        scored = calculate(AnyOther(), result(2, 2), default_rules())
        assert scored.points == 0

    def test_any_other_boundary_four_four_is_not_other(self):
        scored = calculate(AnyOther(), result(4, 4), default_rules())
        assert scored.points == 0

    def test_any_other_away_side_counts(self):
        scored = calculate(AnyOther(), result(0, 5), default_rules())
        assert scored.points == 4

    def test_custom_bundle(self):
        rules = parse_rules('{"type": "standard", "scoring": {"exact_score": 10}}')
        assert calculate(exact(2, 1), result(2, 1), rules).points == 10
        # untouched fields keep their defaults
        assert calculate(exact(1, 2), result(2, 3), rules).points == 3

    def test_totalizator_uses_its_own_bundle(self):
        rules = parse_rules('{"type": "totalizator", "totalizator": {"scoring": {"exact_score": 7}}}')
        assert calculate(exact(0, 0), result(0, 0), rules).points == 7

    def test_exact_score_under_risky_rules_uses_default_bundle(self, risky_rules_text):
        rules = parse_rules(risky_rules_text)
        assert calculate(exact(2, 1), result(2, 1), rules).points == 5


class TestWinnerAndOverUnder:

    def test_winner_hit(self):
        scored = calculate(Winner(choice=Outcome.HOME), result(2, 1), default_rules())
        assert scored.points == 3
        assert scored.details["match"] is True

    def test_winner_draw(self):
        assert calculate(Winner(choice=Outcome.DRAW), result(1, 1), default_rules()).points == 3

    def test_winner_miss(self):
        assert calculate(Winner(choice=Outcome.AWAY), result(2, 1), default_rules()).points == 0

    @pytest.mark.parametrize(
        "side,threshold,total,points",
        [
            ("over", 2.5, 3, 2),
            ("over", 2.5, 2, 0),
            ("under", 2.5, 2, 2),
            ("under", 2.5, 3, 0),
            ("over", 3.0, 3, 0),
            ("under", 3.0, 3, 0),
        ],
    )
    def test_over_under(self, side, threshold, total, points):
        payload = {"type": "over_under", "over_under": side, "threshold": threshold}
        scored = calculate_payload(payload, result(total, 0), default_rules())
        assert scored.points == points

    def test_over_under_uses_supplied_total_goals(self):
        payload = {"type": "over_under", "over_under": "over", "threshold": 2.5}
        scored = calculate_payload(payload, result(1, 0, total_goals=4), default_rules())
        assert scored.points == 2


class TestRiskyScoring:

    def test_signed_sum(self, risky_rules_text):
        payload = {"type": "risky", "risky_selections": ["penalty", "red_card"]}
        outcome = result(1, 0, stats={"penalty": True, "red_card": False})

        scored = calculate_payload(payload, outcome, parse_rules(risky_rules_text))

        assert scored.points == 3 - 4
        assert [e["earned"] for e in scored.details["event_results"]] == [3, -4]

    def test_unsettled_and_unknown_selections_are_skipped(self, risky_rules_text):
        payload = {"type": "risky", "selections": ["penalty", "red_card", "own_goal"]}
        outcome = result(1, 0, stats={"penalty": True})

        scored = calculate_payload(payload, outcome, parse_rules(risky_rules_text))

        assert scored.points == 3

    def test_duplicate_selections_count_once(self, risky_rules_text):
        payload = {"type": "risky", "selections": ["penalty", "penalty"]}
        outcome = result(1, 0, stats={"penalty": True})

        assert calculate_payload(payload, outcome, parse_rules(risky_rules_text)).points == 3

    def test_non_boolean_outcome_is_skipped(self, risky_rules_text):
        payload = {"type": "risky", "selections": ["penalty"]}
        outcome = result(1, 0, stats={"penalty": 1})

        assert calculate_payload(payload, outcome, parse_rules(risky_rules_text)).points == 0

    def test_clamped_when_negative_not_allowed(self):
        rules = parse_rules('{"type": "risky", "risky": {"allow_negative": false}}')
        payload = {"type": "risky", "selections": ["red_card"]}
        outcome = result(1, 0, stats={"red_card": False})

        scored = calculate_payload(payload, outcome, rules)

        assert scored.points == 0
        assert scored.details["raw_points"] == -4
        assert scored.details["clamped"] is True

    def test_default_catalogue_under_standard_rules(self):
        payload = {"type": "risky", "selections": ["comeback"]}
        outcome = result(3, 2, stats={"comeback": True})

        assert calculate_payload(payload, outcome, default_rules()).points == 7

    def test_nested_value_format(self, risky_rules_text):
        payload = {"type": "risky", "value": {"risky_selections": ["penalty"]}}
        outcome = result(1, 0, stats={"penalty": True})

        assert calculate_payload(payload, outcome, parse_rules(risky_rules_text)).points == 3


class TestPropsScoring:

    def props(self, *picks):
        return {"type": "props", "props": list(picks)}

    def test_each_prop_scored_independently(self, sample_result_data):
        payload = self.props(
            {"prop_slug": "total-goals-ou", "line": 2.5, "selection": "over"},
            {"prop_slug": "btts", "selection": "yes"},
            {"prop_slug": "total-corners-ou", "line": 9.5, "selection": "under"},
            {"prop_slug": "first-to-score", "selection": "home", "points_value": 4},
            {"prop_slug": "total-cards-ou", "line": 3.5, "selection": "over"},
        )
        outcome = EventResult(**sample_result_data)

        scored = calculate_payload(payload, outcome, default_rules())

        # goals 3 > 2.5, both scored, corners 11 not under 9.5, home first (4), cards 4 > 3.5
        assert scored.points == 2 + 2 + 0 + 4 + 2
        assert scored.details["total_props"] == 5
        assert scored.details["correct_props"] == 4

    def test_btts_no(self):
        payload = self.props({"prop_slug": "btts", "selection": "no"})
        assert calculate_payload(payload, result(2, 0), default_rules()).points == 2

    def test_missing_stat_is_incorrect(self):
        payload = self.props({"prop_slug": "total-corners-ou", "line": 9.5, "selection": "over"})
        assert calculate_payload(payload, result(2, 0), default_rules()).points == 0

    def test_unknown_slug_is_incorrect(self):
        payload = self.props({"prop_slug": "man-of-the-match", "selection": "10"})
        scored = calculate_payload(payload, result(2, 0), default_rules())
        assert scored.points == 0
        assert scored.details["props_results"][0]["correct"] is False

    def test_empty_props_is_in_band_error(self):
        scored = calculate_payload({"type": "props", "props": []}, result(2, 0), default_rules())
        assert scored.points == 0
        assert "error" in scored.details


class TestInBandErrors:

    def test_unknown_prediction_type(self):
        scored = calculate_payload({"type": "first_goal_minute"}, result(1, 0), default_rules())
        assert scored.points == 0
        assert scored.details["error"] == "Unknown prediction type"

    def test_missing_scores(self):
        scored = calculate_payload({"type": "exact_score", "home_score": 1}, result(1, 0), default_rules())
        assert scored.points == 0
        assert "error" in scored.details

    def test_invalid_winner_choice(self):
        scored = calculate_payload({"type": "winner", "winner": "red"}, result(1, 0), default_rules())
        assert scored.points == 0
        assert "error" in scored.details

    def test_invalid_over_under_side(self):
        payload = {"type": "over_under", "over_under": "exactly", "threshold": 2.5}
        scored = calculate_payload(payload, result(1, 0), default_rules())
        assert scored.points == 0
        assert scored.details["error"] == "Invalid over/under value"


class TestCalculateFromText:

    def test_round_trip_of_textual_payloads(self):
        scored = calculate_from_text(
            '{"type": "exact_score", "home_score": 2, "away_score": 1}',
            '{"home_score": 2, "away_score": 1}',
            "",
        )
        assert scored.points == 5
        details = json.loads(scored.details_json())
        assert details["contest_type"] == "standard"

    def test_malformed_prediction_json(self):
        with pytest.raises(InvalidInputError):
            calculate_from_text("{not json", '{"home_score": 1, "away_score": 0}')

    def test_malformed_result_json(self):
        with pytest.raises(InvalidInputError):
            calculate_from_text('{"type": "winner", "winner": "home"}', "[1, 0")

    def test_result_winner_must_match_scores(self):
        with pytest.raises(InvalidInputError):
            calculate_from_text(
                '{"type": "winner", "winner": "home"}',
                '{"home_score": 0, "away_score": 1, "winner": "home"}',
            )

    def test_invalid_rules(self):
        with pytest.raises(InvalidInputError):
            calculate_from_text(
                '{"type": "winner", "winner": "home"}',
                '{"home_score": 1, "away_score": 0}',
                '{"type": "knockout"}',
            )

    def test_unknown_type_stays_in_band(self):
        scored = calculate_from_text('{"type": "mystery"}', '{"home_score": 1, "away_score": 0}')
        assert scored.points == 0
        assert "error" in json.loads(scored.details_json())


class TestValidateRiskySelections:

    def test_valid(self, risky_rules_text):
        validate_risky_selections(["penalty", "red_card"], parse_rules(risky_rules_text))

    def test_too_many(self):
        rules = parse_rules('{"type": "risky", "risky": {"max_selections": 1}}')
        with pytest.raises(InvalidInputError, match="too many selections"):
            validate_risky_selections(["penalty", "red_card"], rules)

    def test_unknown_event(self, risky_rules_text):
        with pytest.raises(InvalidInputError, match="unknown event"):
            validate_risky_selections(["own_goal"], parse_rules(risky_rules_text))

    def test_not_a_risky_contest(self):
        with pytest.raises(InvalidInputError):
            validate_risky_selections(["penalty"], default_rules())
