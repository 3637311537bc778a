from .rules import ContestRules, ContestType, RiskyEvent, StandardScoring, parse_rules
from .predictions import EventResult, Prediction, PredictionType, parse_prediction, parse_result
from .calculator import (
    CalculationResult,
    calculate,
    calculate_from_text,
    calculate_payload,
    validate_risky_selections,
)
from .coefficient import Coefficient, CoefficientEngine, compute_coefficient
from . import streaks

__all__ = [
    "ContestRules",
    "ContestType",
    "RiskyEvent",
    "StandardScoring",
    "parse_rules",
    "EventResult",
    "Prediction",
    "PredictionType",
    "parse_prediction",
    "parse_result",
    "CalculationResult",
    "calculate",
    "calculate_from_text",
    "calculate_payload",
    "validate_risky_selections",
    "Coefficient",
    "CoefficientEngine",
    "compute_coefficient",
    "streaks",
]
