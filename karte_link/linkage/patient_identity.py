"""Patient identity keys shared by every join in the engine.

The karte, reservation and diagnosis exports have no common primary key.
A patient number is the strongest evidence; a normalized name plus birth
date is the fallback. Records that yield neither are left out of identity
based joins without being reported as errors.
"""

import re
from typing import Optional

from .normalizers import NameNormalizer, normalize_name_for_matching

PATIENT_NUMBER_PREFIX = "pn:"
NAME_BIRTH_PREFIX = "nb:"
NAME_ONLY_PREFIX = "n:"

_NON_DIGIT_PATTERN = re.compile(r"\D")


def normalize_patient_number(value: Optional[str]) -> Optional[str]:
    """Strip non-digits and leading zeros from a patient number.

    Args:
        value: Patient number as exported (may include hyphens, spaces)

    Returns:
        Canonical decimal string, or None when no digits remain
    """
    if value is None:
        return None
    digits = _NON_DIGIT_PATTERN.sub("", str(value))
    if not digits:
        return None
    return str(int(digits))


def resolve_patient_key(
    patient_number: Optional[str],
    patient_name: Optional[str],
    birth_date_iso: Optional[str],
) -> Optional[str]:
    """Resolve the identity key for one patient-bearing record.

    Args:
        patient_number: Raw patient number, if any
        patient_name: Name already normalized by the upstream adapter
        birth_date_iso: Birth date as YYYY-MM-DD, if any

    Returns:
        ``pn:<number>``, ``nb:<name>|<birth>``, or None

    Examples:
        >>> resolve_patient_key("00-0123", None, None)
        'pn:123'
        >>> resolve_patient_key(None, "やまだたろう", "1960-01-02")
        'nb:やまだたろう|1960-01-02'
    """
    number = normalize_patient_number(patient_number)
    if number is not None:
        return f"{PATIENT_NUMBER_PREFIX}{number}"

    name = (patient_name or "").strip()
    birth = (birth_date_iso or "").strip()
    if name and birth:
        return f"{NAME_BIRTH_PREFIX}{name}|{birth}"

    return None


def resolve_match_key(
    patient_name: Optional[str],
    normalizer: NameNormalizer = normalize_name_for_matching,
) -> Optional[str]:
    """Name-only key used to pair karte visits with reservation bookings.

    Reservation exports carry a booking-system patient id unrelated to the
    karte patient number, so the name token is the only shared identity.
    """
    token = normalizer(patient_name)
    if not token:
        return None
    return f"{NAME_ONLY_PREFIX}{token}"
