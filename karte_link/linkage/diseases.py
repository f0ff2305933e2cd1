"""Disease-name keyword classification."""

import re
from typing import Iterable, List, Set

from .config import (
    DERMATOLOGY_DISEASE_KEYWORDS,
    DIAGNOSIS_CATEGORY_DERMATOLOGY,
    DIAGNOSIS_CATEGORY_LIFESTYLE,
    DIAGNOSIS_CATEGORY_OTHER,
    DIAGNOSIS_CATEGORY_SURGERY,
    DISEASE_TYPE_KEYWORDS,
    DISEASE_TYPE_LABELS,
    DISEASE_TYPE_MULTIPLE,
    LIFESTYLE_DISEASE_KEYWORDS,
    SURGERY_DISEASE_KEYWORDS,
    UNMATCHED_DISEASE_LABEL,
)

_WHITESPACE_PATTERN = re.compile(r"\s+")


def _compact(name: str) -> str:
    return _WHITESPACE_PATTERN.sub("", name).lower()


def categorize_disease_name(disease_name: str) -> str:
    """Assign a diagnosis category from keywords in the disease name.

    Lifestyle keywords win over surgery, which wins over dermatology.
    """
    for keywords, category in (
        (LIFESTYLE_DISEASE_KEYWORDS, DIAGNOSIS_CATEGORY_LIFESTYLE),
        (SURGERY_DISEASE_KEYWORDS, DIAGNOSIS_CATEGORY_SURGERY),
        (DERMATOLOGY_DISEASE_KEYWORDS, DIAGNOSIS_CATEGORY_DERMATOLOGY),
    ):
        if any(keyword in disease_name for keyword in keywords):
            return category
    return DIAGNOSIS_CATEGORY_OTHER


def matched_disease_types(disease_names: Iterable[str]) -> Set[str]:
    """Collect the lifestyle disease types mentioned by any of the names."""
    matched = set()
    for name in disease_names:
        compact = _compact(name)
        for disease_type, keywords in DISEASE_TYPE_KEYWORDS.items():
            if any(keyword in compact for keyword in keywords):
                matched.add(disease_type)
    return matched


def classify_disease_type(disease_names: Iterable[str]):
    """Resolve a patient's disease type and display labels.

    Exactly one matched type gives that type; none or several give
    ``multiple``.

    Returns:
        Tuple of (disease_type, labels)
    """
    matched = matched_disease_types(disease_names)
    if len(matched) == 1:
        disease_type = next(iter(matched))
    else:
        disease_type = DISEASE_TYPE_MULTIPLE

    labels: List[str] = [
        DISEASE_TYPE_LABELS[key] for key in DISEASE_TYPE_KEYWORDS if key in matched
    ]
    if not labels:
        labels = [UNMATCHED_DISEASE_LABEL]
    return disease_type, labels
