"""Weekday classification with a holiday bucket."""

import logging
from datetime import date
from typing import Optional, Protocol

from .config import HOLIDAY_WEEKDAY_INDEX, WEEKDAY_LABELS
from .normalizers import is_new_year_period

logger = logging.getLogger(__name__)


class HolidayLookup(Protocol):
    def is_holiday(self, date_iso: str) -> bool:
        ...


def classify_weekday(date_iso: str, holidays: Optional[HolidayLookup] = None) -> Optional[int]:
    """Resolve the 8-way weekday bucket for a date.

    Args:
        date_iso: Date as YYYY-MM-DD (a time suffix is ignored)
        holidays: Holiday lookup; the new-year period always counts

    Returns:
        0 (Mon) .. 6 (Sun), 7 for holidays, or None for an unparseable date
    """
    try:
        day = date.fromisoformat(date_iso[:10])
    except (TypeError, ValueError):
        logger.debug(f"Cannot classify weekday for {date_iso!r}")
        return None

    if is_new_year_period(day):
        return HOLIDAY_WEEKDAY_INDEX
    if holidays is not None and holidays.is_holiday(day.isoformat()):
        return HOLIDAY_WEEKDAY_INDEX
    return day.weekday()


def weekday_label(index: int) -> str:
    return WEEKDAY_LABELS[index]
