"""Default boundary adapters for name matching and the holiday calendar.

The linkage core only depends on the call signatures below, so a caller
with a better name normalizer or an official holiday feed can pass its own.
"""

import json
import logging
import re
import unicodedata
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Optional, Set

from holidays import country_holidays

from .config import HOLIDAY_COUNTRY, HOLIDAYS_FILE, NEW_YEAR_PERIOD_END, NEW_YEAR_PERIOD_START

logger = logging.getLogger(__name__)

NameNormalizer = Callable[[Optional[str]], Optional[str]]

_RUBY_PATTERN = re.compile(r"[(（][^)）]*[)）]")
_WHITESPACE_PATTERN = re.compile(r"[\s　]+")

# Katakana block that has a hiragana counterpart exactly 0x60 below
_KATAKANA_START = 0x30A1
_KATAKANA_END = 0x30F6
_KANA_OFFSET = 0x60


def _katakana_to_hiragana(text: str) -> str:
    return "".join(
        chr(ord(char) - _KANA_OFFSET)
        if _KATAKANA_START <= ord(char) <= _KATAKANA_END
        else char
        for char in text
    )


def normalize_name_for_matching(name: Optional[str]) -> Optional[str]:
    """Reduce a patient name to a token comparable across exports.

    Applies NFKC, drops parenthesized readings, folds katakana to
    hiragana and removes all whitespace.

    Args:
        name: Raw or partially normalized patient name

    Returns:
        Matching token, or None if nothing remains
    """
    if not name:
        return None
    text = unicodedata.normalize("NFKC", name)
    text = _RUBY_PATTERN.sub("", text)
    text = _WHITESPACE_PATTERN.sub(" ", text).strip()
    text = _katakana_to_hiragana(text)
    text = text.replace(" ", "")
    return text or None


def is_new_year_period(day: date) -> bool:
    """True for the year-end/new-year closure (Dec 27 through Jan 3)."""
    month_day = (day.month, day.day)
    return month_day >= NEW_YEAR_PERIOD_START or month_day <= NEW_YEAR_PERIOD_END


class HolidayCalendar:
    """Public holiday lookup.

    A date is a holiday when it was registered explicitly or, given a
    ``country`` code, when the ``holidays`` package lists it for that
    country. The new-year period is handled separately by the weekday
    classifier.
    """

    def __init__(self, holidays: Optional[Iterable[str]] = None, country: Optional[str] = None):
        self._holidays: Set[str] = {value[:10] for value in (holidays or [])}
        self.country = country
        self._public = country_holidays(country) if country else None

    def __len__(self) -> int:
        return len(self._holidays)

    def add(self, date_iso: str) -> None:
        self._holidays.add(date_iso[:10])

    def is_holiday(self, date_iso: str) -> bool:
        if date_iso[:10] in self._holidays:
            return True
        if self._public is None:
            return False
        try:
            return date.fromisoformat(date_iso[:10]) in self._public
        except ValueError:
            return False

    @classmethod
    def from_file(cls, path: Path, country: Optional[str] = None) -> "HolidayCalendar":
        """Load holidays from a JSON array or one date per line.

        Args:
            path: File listing ISO dates
            country: Optional country whose public holidays are also included

        Returns:
            HolidayCalendar with the listed dates
        """
        text = Path(path).read_text(encoding="utf-8")
        stripped = text.strip()
        if stripped.startswith("["):
            values = json.loads(stripped)
        else:
            values = [line.strip() for line in stripped.splitlines() if line.strip()]
        calendar = cls(country=country)
        for value in values:
            calendar.add(str(value))
        logger.info(f"Loaded {len(calendar)} holidays from {path}")
        return calendar


def default_holiday_calendar() -> HolidayCalendar:
    """Public holidays of ``KARTE_LINK_HOLIDAY_COUNTRY`` plus ``KARTE_LINK_HOLIDAYS_FILE`` dates."""
    country = HOLIDAY_COUNTRY or None
    if HOLIDAYS_FILE:
        path = Path(HOLIDAYS_FILE)
        if path.exists():
            return HolidayCalendar.from_file(path, country=country)
        logger.warning(f"Holiday file not found: {path}")
    return HolidayCalendar(country=country)
