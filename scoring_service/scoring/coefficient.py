"""
Time-to-event coefficient.

The earlier a prediction is made before kick-off, the bigger the multiplier.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from scoring_service.models.types import as_utc


@dataclass(frozen=True)
class Tier:
    min_hours: float  # inclusive lower bound, hours before the event
    multiplier: float
    label: str


@dataclass(frozen=True)
class Coefficient:
    multiplier: float
    tier: str


STANDARD = Coefficient(multiplier=1.0, tier="Standard")

DEFAULT_TIERS: tuple[Tier, ...] = (
    Tier(min_hours=168, multiplier=2.0, label="Early Bird"),     # a week or more
    Tier(min_hours=48, multiplier=1.5, label="Ahead of Time"),   # two days
    Tier(min_hours=24, multiplier=1.25, label="Timely"),
    Tier(min_hours=12, multiplier=1.1, label="Last Minute"),
)


class CoefficientEngine:
    def __init__(self, tiers: Sequence[Tier] = DEFAULT_TIERS):
        ordered = sorted(tiers, key=lambda t: t.min_hours, reverse=True)
        for tier in ordered:
            if tier.multiplier < 1.0:
                raise ValueError(f"tier '{tier.label}' has multiplier below 1.0")
            if tier.min_hours <= 0:
                raise ValueError(f"tier '{tier.label}' must start before the event")
        # Longer lead time must never pay less
        for earlier, later in zip(ordered, ordered[1:]):
            if earlier.multiplier < later.multiplier:
                raise ValueError("tier multipliers must not increase as the event approaches")
        self.tiers = tuple(ordered)

    def compute(self, submitted_at: Optional[datetime], event_at: Optional[datetime]) -> Coefficient:
        """
        Multiplier for a prediction made at ``submitted_at`` for an event at ``event_at``.

        Submissions at or after the start get the standard 1.0, as do calls
        with a missing timestamp.
        """
        if submitted_at is None or event_at is None:
            return STANDARD

        hours = (as_utc(event_at) - as_utc(submitted_at)).total_seconds() / 3600
        if hours <= 0:
            return STANDARD

        for tier in self.tiers:
            if hours >= tier.min_hours:
                return Coefficient(multiplier=tier.multiplier, tier=tier.label)
        return STANDARD


default_engine = CoefficientEngine()


def compute_coefficient(submitted_at: Optional[datetime], event_at: Optional[datetime]) -> Coefficient:
    return default_engine.compute(submitted_at, event_at)
