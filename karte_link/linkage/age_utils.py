"""Ages for karte and diagnosis records.

Ages are always taken on an explicit day (cohort baseline or visit date)
and count a year only once the birthday has passed. Anything outside
``0 <= age < MAX_VALID_AGE`` is reported as unknown.
"""

from datetime import date, datetime
from typing import Callable, Optional, Tuple, Union
import logging

from .config import MAX_VALID_AGE

logger = logging.getLogger(__name__)

AgeResolver = Callable[[Optional[str], str], Optional[int]]
DateLike = Union[str, date, datetime]


def _ymd(value: DateLike) -> Tuple[int, int, int]:
    """(year, month, day) from an ISO string or date; month/day default to 1."""
    if not isinstance(value, str):
        return value.year, value.month, value.day
    fields = [int(piece) for piece in value.split("T")[0].split("-")[:3]]
    fields += [1] * (3 - len(fields))
    return fields[0], fields[1], fields[2]


def calculate_age(
    birth_date: Optional[str],
    reference_date: Optional[DateLike] = None,
) -> Optional[int]:
    """Whole years between ``birth_date`` and ``reference_date``.

    Args:
        birth_date: ISO date, optionally with a time part
        reference_date: ISO string, date or datetime; today when omitted

    Returns:
        Age in years, or None for a missing, malformed or implausible birth date

    Examples:
        >>> calculate_age("1960-08-04", "2026-02-02")
        65
        >>> calculate_age("1960-08-04", "2026-09-01")
        66
    """
    if not birth_date:
        return None

    try:
        born = _ymd(birth_date)
        on = _ymd(reference_date if reference_date is not None else date.today())
    except (ValueError, IndexError) as e:
        logger.warning(f"Unparseable date for age: birth={birth_date}, reference={reference_date}: {e}")
        return None

    age = on[0] - born[0] - (1 if on[1:] < born[1:] else 0)
    if not 0 <= age < MAX_VALID_AGE:
        logger.debug(f"Age {age} out of range for birth={birth_date}, reference={reference_date or 'today'}")
        return None
    return age


def age_at(birth_date: Optional[str], reference_iso: str) -> Optional[int]:
    """Default age resolver: age on ``reference_iso`` or None."""
    return calculate_age(birth_date, reference_iso)
