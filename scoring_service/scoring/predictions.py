"""
Prediction and event-result payloads.

Predictions travel as JSON text with a top-level ``type`` discriminator.
``parse_prediction`` turns the decoded object into one of the closed set of
variants below; nothing outside the scoring package looks at the raw form.
"""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator

from scoring_service.core.exceptions import InvalidInputError


class PredictionType(str, Enum):
    EXACT_SCORE = "exact_score"
    ANY_OTHER = "any_other"
    WINNER = "winner"
    OVER_UNDER = "over_under"
    RISKY = "risky"
    PROPS = "props"


class Outcome(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


def outcome_of(home: int, away: int) -> Outcome:
    if home > away:
        return Outcome.HOME
    if away > home:
        return Outcome.AWAY
    return Outcome.DRAW


class PredictionError(Exception):
    """Prediction payload that cannot be scored. Reported in-band, never raised to callers."""


# ============================================================
# VARIANTS
# ============================================================

class ExactScore(BaseModel):
    kind: Literal["exact_score"] = "exact_score"
    home: int
    away: int


class AnyOther(BaseModel):
    kind: Literal["any_other"] = "any_other"


class Winner(BaseModel):
    kind: Literal["winner"] = "winner"
    choice: Outcome


class OverUnder(BaseModel):
    kind: Literal["over_under"] = "over_under"
    side: Literal["over", "under"]
    threshold: float


class Risky(BaseModel):
    kind: Literal["risky"] = "risky"
    selections: list[str]


class PropPick(BaseModel):
    prop_slug: str
    line: float = 0.0
    selection: str = ""
    points_value: float = 0.0
    prop_type_id: Optional[int] = None
    player_id: Optional[str] = None


class Props(BaseModel):
    kind: Literal["props"] = "props"
    props: list[PropPick]


Prediction = Union[ExactScore, AnyOther, Winner, OverUnder, Risky, Props]


# ============================================================
# WIRE FORMAT
# ============================================================

class PredictionPayload(BaseModel):
    """Lenient decode of the prediction JSON. Every field is optional here."""

    type: Optional[str] = None

    home_score: Optional[int] = None
    away_score: Optional[int] = None
    winner: Optional[str] = None
    over_under: Optional[str] = None
    threshold: Optional[float] = None

    selections: Optional[list[str]] = Field(
        default=None,
        validation_alias=AliasChoices("selections", "risky_selections"),
    )
    props: Optional[list[PropPick]] = None

    @model_validator(mode="before")
    @classmethod
    def lift_nested_selections(cls, data: Any) -> Any:
        # Older clients nest the risky picks under "value"
        if isinstance(data, dict) and "selections" not in data and "risky_selections" not in data:
            value = data.get("value")
            if isinstance(value, dict) and "risky_selections" in value:
                data = {**data, "selections": value["risky_selections"]}
        return data


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def parse_prediction(raw: dict) -> Prediction:
    """
    Build a prediction variant from a decoded payload.

    Raises PredictionError for unknown types, missing fields or invalid
    choices; the calculator turns that into ``details["error"]``.
    """
    try:
        payload = PredictionPayload.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise PredictionError(f"Invalid prediction data: {location}: {first['msg']}")

    kind = payload.type

    if kind == PredictionType.EXACT_SCORE.value:
        if payload.home_score is None or payload.away_score is None:
            raise PredictionError("Missing home_score/away_score")
        return ExactScore(home=payload.home_score, away=payload.away_score)

    if kind == PredictionType.ANY_OTHER.value:
        return AnyOther()

    if kind == PredictionType.WINNER.value:
        if payload.winner is None:
            raise PredictionError("Missing winner prediction")
        try:
            return Winner(choice=Outcome(payload.winner))
        except ValueError:
            raise PredictionError(f"Invalid winner value: {payload.winner}")

    if kind == PredictionType.OVER_UNDER.value:
        if payload.over_under is None or payload.threshold is None:
            raise PredictionError("Missing over/under prediction or threshold")
        if payload.over_under not in ("over", "under"):
            raise PredictionError("Invalid over/under value")
        return OverUnder(side=payload.over_under, threshold=payload.threshold)

    if kind == PredictionType.RISKY.value:
        if payload.selections is None:
            raise PredictionError("Missing risky_selections")
        return Risky(selections=_dedupe(payload.selections))

    if kind == PredictionType.PROPS.value:
        if not payload.props:
            raise PredictionError("No props predictions found")
        return Props(props=payload.props)

    raise PredictionError("Unknown prediction type")


# ============================================================
# EVENT RESULT
# ============================================================

class EventResult(BaseModel):
    """Final result of a match plus free-form stats (risky flags, corners, cards...)"""

    home_score: int
    away_score: int
    winner: Optional[Outcome] = None
    total_goals: Optional[int] = None
    stats: dict[str, Any] = {}

    @model_validator(mode="after")
    def derive_outcome(self) -> "EventResult":
        actual = outcome_of(self.home_score, self.away_score)
        if self.winner is None:
            self.winner = actual
        elif self.winner != actual:
            raise ValueError(
                f"winner '{self.winner.value}' contradicts score {self.home_score}:{self.away_score}"
            )
        if self.total_goals is None:
            self.total_goals = self.home_score + self.away_score
        return self

    def stat_number(self, key: str) -> Optional[float]:
        value = self.stats.get(key)
        # bool is an int subclass; a flag is not a count
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)


def parse_result(raw: Any) -> EventResult:
    if not isinstance(raw, dict):
        raise InvalidInputError("Invalid result data format")
    try:
        return EventResult.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        raise InvalidInputError(f"Invalid result data: {first['msg']}")
