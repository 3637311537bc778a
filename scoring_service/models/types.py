from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are UTC (that is how MongoDB hands them back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    # Mongo keeps millisecond precision; truncate so round-trips compare equal
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
