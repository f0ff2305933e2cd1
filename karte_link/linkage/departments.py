"""Department label normalization and display classification."""

import re
from typing import Optional

from .config import (
    DEPARTMENT_FEVER,
    DEPARTMENT_FOREIGN_PRIVATE,
    DEPARTMENT_GENERAL,
    DEPARTMENT_INTERNAL,
    DEPARTMENT_LABEL_STRIP_PATTERN,
    DEPARTMENT_ONLINE_INSURED,
    DEPARTMENT_ONLINE_PRIVATE,
    DEPARTMENT_SURGERY,
    DEPARTMENT_UNCLASSIFIED,
    FEVER_DEPARTMENT_NAMES,
    FOREIGN_KEYWORDS,
    GENERAL_DEPARTMENT_NAMES,
    ONLINE_PRIVATE_KEYWORDS,
    SEGMENT_FEVER,
    SEGMENT_GENERAL,
)

_STRIP_PATTERN = re.compile(DEPARTMENT_LABEL_STRIP_PATTERN)


def normalize_department_label(value: Optional[str]) -> str:
    """Remove separators and brackets and lowercase a department label."""
    return _STRIP_PATTERN.sub("", value or "").lower()


def classify_department_display_name(raw: Optional[str]) -> str:
    """Map an export's department label onto the dashboard's display name.

    Args:
        raw: Department label as it appears in a karte or reservation row

    Returns:
        Display department name
    """
    name = (raw or "").strip()
    if not name:
        return DEPARTMENT_UNCLASSIFIED

    if name in GENERAL_DEPARTMENT_NAMES:
        return DEPARTMENT_GENERAL
    if name in FEVER_DEPARTMENT_NAMES:
        return DEPARTMENT_FEVER

    lowered = name.lower()
    if "オンライン診療" in name:
        if "保険" in name:
            return DEPARTMENT_ONLINE_INSURED
        if any(keyword in lowered for keyword in ONLINE_PRIVATE_KEYWORDS):
            return DEPARTMENT_ONLINE_PRIVATE

    if any(keyword in lowered for keyword in FOREIGN_KEYWORDS):
        return DEPARTMENT_FOREIGN_PRIVATE

    if "内科" in name:
        return DEPARTMENT_INTERNAL
    if "外科" in name:
        return DEPARTMENT_SURGERY

    return name


def departments_match(left: Optional[str], right: Optional[str]) -> bool:
    """True when two department labels agree after normalization.

    Labels agree when equal or when either contains the other; an empty
    label never matches.
    """
    a = normalize_department_label(left)
    b = normalize_department_label(right)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def department_segment(raw: Optional[str]) -> Optional[str]:
    """Slot segment for a visit department, or None outside the tracked segments."""
    display = classify_department_display_name(raw)
    if display == DEPARTMENT_GENERAL:
        return SEGMENT_GENERAL
    if display == DEPARTMENT_FEVER:
        return SEGMENT_FEVER
    return None
