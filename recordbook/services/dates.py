"""Day-bucket normalization for attendance identity and range queries.

Every attendance record is keyed by the UTC calendar day it falls on. The key is
a naive ``datetime`` at UTC midnight, which is how MongoDB hands datetimes back.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from recordbook.errors import ValidationError

DayInput = Union[None, str, date, datetime]

ONE_DAY = timedelta(days=1)


def _parse(value: str) -> Union[date, datetime]:
    text = value.strip()
    if not text:
        raise ValidationError("Date is required")
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date format: {value!r}")


def to_day_key(value: DayInput = None) -> datetime:
    """Map any instant to naive UTC midnight of its calendar day.

    Naive datetimes are taken as UTC; aware ones are converted first, so
    ``2024-03-05T23:59:00+05:00`` and ``2024-03-05T00:00:00Z`` share a key.
    """
    if value is None:
        moment = datetime.now(timezone.utc)
    elif isinstance(value, str):
        moment = _parse(value)
    else:
        moment = value

    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return datetime.combine(moment.date(), time.min)
    return datetime.combine(moment, time.min)


def day_range(value: DayInput = None) -> tuple[datetime, datetime]:
    """Half-open ``[day_start, day_end)`` interval around ``value``."""
    start = to_day_key(value)
    return start, start + ONE_DAY


def parse_iso_day(value: Optional[str], default: str) -> datetime:
    """Day key for an optional ISO date string such as a semester boundary."""
    if not value:
        return to_day_key(default)
    return to_day_key(value)
