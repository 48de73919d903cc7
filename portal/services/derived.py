"""
Derived form fields.

Pure functions, no I/O.  They are re-run on every relevant field change;
callers compare the new value with the stored one before writing it.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from numbers import Real
from typing import Any, Optional

MS_PER_DAY = 86_400_000


def parse_date(value: Any) -> Optional[datetime]:
    """ISO date/datetime string, ``date`` or ``datetime`` -> naive ``datetime``.

    Offsets are converted to UTC before they are dropped.

    Anything unparseable yields ``None``.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return _naive_utc(parsed)
    return None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_hospitalized(admission: Any, discharge: Any) -> Optional[int]:
    start = parse_date(admission)
    end = parse_date(discharge)
    if start is None or end is None or end < start:
        return None
    delta_ms = (end - start).total_seconds() * 1000
    return math.ceil(delta_ms / MS_PER_DAY)


def as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def happiness_score(q1: Any, q2: Any, q3: Any, q4: Any, q5: Any, q6: Any,
                    overall_rating: Any) -> Optional[float]:
    """Mean of q1..q6 and overall_rating/2, rounded to one decimal."""
    answers = [as_number(v) for v in (q1, q2, q3, q4, q5, q6)]
    overall = as_number(overall_rating)
    if overall is None or any(a is None for a in answers):
        return None
    values = answers + [overall / 2]
    mean = sum(values) / len(values)
    # halves round up (4.25 -> 4.3)
    return float(Decimal(str(mean * 10)).quantize(Decimal('1'), rounding=ROUND_HALF_UP) / 10)
