"""
Contest rule bundles.

Contests store their rules as an opaque JSON blob. This module is the only
place that reads it: everything downstream receives a typed ContestRules.
Unknown fields are ignored so older services keep working when the contest
service adds new ones.
"""

import json
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from scoring_service.core.exceptions import InvalidInputError


class ContestType(str, Enum):
    STANDARD = "standard"
    RISKY = "risky"
    TOTALIZATOR = "totalizator"  # admin-picked matches, standard scoring
    RELAY = "relay"              # team contest, standard scoring


class StandardScoring(BaseModel):
    """Points for score predictions. Missing fields fall back to the defaults."""

    exact_score: float = Field(default=5, ge=0)
    goal_difference: float = Field(default=3, ge=0)
    correct_outcome: float = Field(default=2, ge=0)
    outcome_plus_team_goals: float = Field(default=1, ge=0)
    any_other: float = Field(default=4, ge=0)


class RiskyEvent(BaseModel):
    slug: str
    name: str = ""
    name_en: Optional[str] = None
    points: float
    description: Optional[str] = None


def default_risky_events() -> list[RiskyEvent]:
    """Default catalogue of risky football events"""
    return [
        RiskyEvent(slug="penalty", name="Будет пенальти", name_en="Penalty awarded", points=3),
        RiskyEvent(slug="red_card", name="Будет удаление", name_en="Red card shown", points=4),
        RiskyEvent(slug="own_goal", name="Будет автогол", name_en="Own goal scored", points=5),
        RiskyEvent(slug="hat_trick", name="Будет хет-трик", name_en="Hat-trick scored", points=6),
        RiskyEvent(slug="clean_sheet_home", name="Хозяева на ноль", name_en="Home clean sheet", points=2),
        RiskyEvent(slug="clean_sheet_away", name="Гости на ноль", name_en="Away clean sheet", points=3),
        RiskyEvent(slug="both_teams_score", name="Обе забьют", name_en="Both teams score", points=2),
        RiskyEvent(slug="over_3_goals", name="Больше 3 голов", name_en="Over 3.5 goals", points=2),
        RiskyEvent(slug="first_half_draw", name="Ничья в 1-м тайме", name_en="First half draw", points=2),
        RiskyEvent(slug="comeback", name="Камбэк (отыграться)", name_en="Comeback from 0:2+", points=7),
    ]


class RiskyScoring(BaseModel):
    max_selections: int = Field(default=5, ge=1)
    events: list[RiskyEvent] = Field(default_factory=default_risky_events)
    # Wrong guesses subtract points. When false the sum is floored at zero.
    allow_negative: bool = True

    def get_event(self, slug: str) -> Optional[RiskyEvent]:
        for event in self.events:
            if event.slug == slug:
                return event
        return None


class TotalizatorRules(BaseModel):
    event_count: int = 15
    scoring: StandardScoring = Field(default_factory=StandardScoring)


class RelayRules(BaseModel):
    team_size: int = 5
    event_count: int = 15
    scoring: StandardScoring = Field(default_factory=StandardScoring)
    allow_reassign: bool = True


class ContestRules(BaseModel):
    type: ContestType = ContestType.STANDARD

    standard: Optional[StandardScoring] = Field(
        default=None,
        validation_alias=AliasChoices("scoring", "standard"),
        serialization_alias="scoring",
    )
    risky: Optional[RiskyScoring] = None
    totalizator: Optional[TotalizatorRules] = None
    relay: Optional[RelayRules] = None

    def with_defaults(self) -> "ContestRules":
        """Fill in the bundle that belongs to ``type`` when it is missing"""
        updates = {}
        if self.type == ContestType.STANDARD and self.standard is None:
            updates["standard"] = StandardScoring()
        elif self.type == ContestType.RISKY and self.risky is None:
            updates["risky"] = RiskyScoring()
        elif self.type == ContestType.TOTALIZATOR and self.totalizator is None:
            updates["totalizator"] = TotalizatorRules()
        elif self.type == ContestType.RELAY and self.relay is None:
            updates["relay"] = RelayRules()
        return self.model_copy(update=updates) if updates else self

    def standard_scoring(self) -> StandardScoring:
        """The bundle used for exact-score predictions under these rules"""
        if self.type == ContestType.TOTALIZATOR and self.totalizator is not None:
            return self.totalizator.scoring
        if self.type == ContestType.RELAY and self.relay is not None:
            return self.relay.scoring
        return self.standard or StandardScoring()

    def risky_scoring(self) -> RiskyScoring:
        return self.risky or RiskyScoring()

    @property
    def is_risky(self) -> bool:
        return self.type == ContestType.RISKY

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def validate_ranges(self) -> None:
        """
        Stricter checks applied when a contest is created/edited.

        Parsing stays lenient so stored contests always score; this is what
        the contest editor calls before saving a bundle.
        """
        if self.type == ContestType.RISKY:
            risky = self.risky_scoring()
            if not 1 <= risky.max_selections <= 10:
                raise InvalidInputError("max_selections must be between 1 and 10")
            if not risky.events:
                raise InvalidInputError("risky contest must have at least one event")

        if self.type == ContestType.TOTALIZATOR:
            totalizator = self.totalizator or TotalizatorRules()
            if not 5 <= totalizator.event_count <= 30:
                raise InvalidInputError("event_count must be between 5 and 30")

        if self.type == ContestType.RELAY:
            relay = self.relay or RelayRules()
            if not 2 <= relay.team_size <= 10:
                raise InvalidInputError("team_size must be between 2 and 10")
            if not 5 <= relay.event_count <= 50:
                raise InvalidInputError("event_count must be between 5 and 50")


def default_rules() -> ContestRules:
    return ContestRules(type=ContestType.STANDARD, standard=StandardScoring())


def parse_rules(rules_text: Optional[str]) -> ContestRules:
    """
    Parse a rules blob into ContestRules.

    - empty blob -> standard rules with the default bundle
    - missing "type" -> standard
    - unknown "type", malformed JSON or negative points -> InvalidInputError
    """
    if rules_text is None or not rules_text.strip():
        return default_rules()

    try:
        raw = json.loads(rules_text)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid rules: {e.msg}")

    if not isinstance(raw, dict):
        raise InvalidInputError("Invalid rules: expected a JSON object")

    if not raw.get("type"):
        raw["type"] = ContestType.STANDARD.value

    try:
        rules = ContestRules.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidInputError(f"Invalid rules: {location}: {first['msg']}")

    return rules.with_defaults()
