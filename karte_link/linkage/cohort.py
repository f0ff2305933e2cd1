"""Lifestyle-disease cohort continuity analysis.

Patients with a lifestyle-disease diagnosis are followed through their
karte visits in the analysis window. Each patient's gap since the last
visit, measured against the most recent visit date in the window, places
them in one of three follow-up statuses.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .age_utils import AgeResolver, age_at
from .config import (
    ANONYMIZED_ID_PREFIX,
    DELAYED_MAX_DAYS,
    DIAGNOSIS_CATEGORY_LIFESTYLE,
    FIRST_VISIT_TYPE_LABEL,
    REGULAR_MAX_DAYS,
    STATUS_AT_RISK,
    STATUS_DELAYED,
    STATUS_ORDER,
    STATUS_REGULAR,
)
from .diseases import classify_disease_type
from .logging.linkage_trace_logger import get_linkage_trace_logger
from .patient_identity import resolve_patient_key
from .records import DiagnosisRecord, VisitRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatientProfile:
    """Follow-up summary for one lifestyle-disease patient."""
    key: str
    anonymized_id: str
    disease_names: Tuple[str, ...]
    disease_type: str
    disease_labels: Tuple[str, ...]
    visit_dates: Tuple[str, ...]
    first_visit_date: str
    last_visit_date: str
    visit_count: int
    status: str
    days_since_last: int
    age: Optional[int] = None
    patient_number: Optional[str] = None
    patient_name: Optional[str] = None
    first_visit_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anonymized_id": self.anonymized_id,
            "patient_number": self.patient_number,
            "patient_name": self.patient_name,
            "disease_names": list(self.disease_names),
            "disease_type": self.disease_type,
            "disease_labels": list(self.disease_labels),
            "first_visit_date": self.first_visit_date,
            "last_visit_date": self.last_visit_date,
            "first_visit_type": self.first_visit_type,
            "visit_count": self.visit_count,
            "days_since_last": self.days_since_last,
            "status": self.status,
            "age": self.age,
        }


@dataclass
class CohortResult:
    """Profiles plus the window they were measured against."""
    profiles: List[PatientProfile] = field(default_factory=list)
    baseline_date: Optional[str] = None
    range_start: Optional[str] = None
    excluded_patients: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseline_date": self.baseline_date,
            "range_start": self.range_start,
            "patient_count": len(self.profiles),
            "excluded_patients": self.excluded_patients,
            "patients": [profile.to_dict() for profile in self.profiles],
        }


def continuity_status(days_since_last: int) -> str:
    """Classify a visit gap as regular, delayed or at risk."""
    if days_since_last <= REGULAR_MAX_DAYS:
        return STATUS_REGULAR
    if days_since_last <= DELAYED_MAX_DAYS:
        return STATUS_DELAYED
    return STATUS_AT_RISK


def visit_in_range(visit: VisitRecord, start: Optional[str], end: Optional[str]) -> bool:
    # Month-key bounds (YYYY-MM) compare against the visit month, date bounds against the date
    if start:
        value = visit.month_key if len(start) == 7 else visit.date_iso
        if value < start:
            return False
    if end:
        value = visit.month_key if len(end) == 7 else visit.date_iso
        if value > end:
            return False
    return True


def _days_between(later: str, earlier: str) -> Optional[int]:
    try:
        delta = date.fromisoformat(later[:10]) - date.fromisoformat(earlier[:10])
    except (TypeError, ValueError):
        return None
    return max(0, math.floor(delta.days))


class CohortContinuityAnalyzer:
    """Builds lifestyle-disease patient profiles from diagnoses and visits."""

    def __init__(self, age_resolver: AgeResolver = age_at):
        """Initialize the analyzer.

        Args:
            age_resolver: Computes age from a birth date on a reference date
        """
        self.age_resolver = age_resolver

    def group_diseases(self, diagnoses: Sequence[DiagnosisRecord]) -> Dict[str, Set[str]]:
        """Map each patient key to the lifestyle disease names recorded for it."""
        diseases: Dict[str, Set[str]] = defaultdict(set)
        for record in diagnoses:
            if record.category != DIAGNOSIS_CATEGORY_LIFESTYLE:
                continue
            key = resolve_patient_key(
                record.patient_number, record.patient_name_normalized, record.birth_date_iso
            )
            if key is None:
                continue
            diseases[key].add(record.disease_name)
        return diseases

    def analyze(
        self,
        diagnoses: Sequence[DiagnosisRecord],
        visits: Sequence[VisitRecord],
        range_start: Optional[str] = None,
        range_end: Optional[str] = None,
    ) -> CohortResult:
        """Build the cohort for a visit window.

        Args:
            diagnoses: Diagnosis records of any category
            visits: Karte visits
            range_start: Inclusive lower bound (YYYY-MM-DD or YYYY-MM), optional
            range_end: Inclusive upper bound (YYYY-MM-DD or YYYY-MM), optional

        Returns:
            CohortResult; empty when no visit falls in the window or no
            lifestyle diagnosis resolves to a patient key
        """
        diseases_by_key = self.group_diseases(diagnoses)
        in_range = [visit for visit in visits if visit_in_range(visit, range_start, range_end)]
        if not diseases_by_key or not in_range:
            logger.info(
                f"Empty cohort: {len(diseases_by_key)} diagnosed patients, "
                f"{len(in_range)} visits in range"
            )
            return CohortResult()

        baseline_date = max(visit.date_iso for visit in in_range)
        window_start = min(visit.date_iso for visit in in_range)

        visits_by_key: Dict[str, List[VisitRecord]] = defaultdict(list)
        for visit in in_range:
            key = resolve_patient_key(
                visit.patient_number, visit.patient_name_normalized, visit.birth_date_iso
            )
            if key is not None and key in diseases_by_key:
                visits_by_key[key].append(visit)

        profiles: List[PatientProfile] = []
        excluded = 0
        for key in sorted(visits_by_key):
            profile = self._build_profile(
                key, diseases_by_key[key], visits_by_key[key], baseline_date
            )
            if profile is None:
                excluded += 1
                continue
            profiles.append(profile)

        # Ids follow key order over the patients that survived exclusion
        profiles = [
            replace(profile, anonymized_id=f"{ANONYMIZED_ID_PREFIX}-{index:03d}")
            for index, profile in enumerate(profiles, start=1)
        ]

        result = CohortResult(
            profiles=profiles,
            baseline_date=baseline_date,
            range_start=window_start,
            excluded_patients=excluded,
        )
        status_counts = {status: 0 for status in STATUS_ORDER}
        for profile in profiles:
            status_counts[profile.status] += 1
        get_linkage_trace_logger().log_cohort_built(
            patient_count=len(profiles),
            status_counts=status_counts,
            baseline_date=baseline_date,
            range_start=window_start,
        )
        return result

    def _build_profile(
        self,
        key: str,
        disease_names: Set[str],
        entries: List[VisitRecord],
        baseline_date: str,
    ) -> Optional[PatientProfile]:
        visit_dates = sorted({entry.date_iso for entry in entries})
        first_visit_date = visit_dates[0]
        last_visit_date = visit_dates[-1]

        days_since_last = _days_between(baseline_date, last_visit_date)
        if days_since_last is None:
            logger.debug(f"Excluding {key}: unparseable last visit {last_visit_date}")
            return None

        entries = sorted(entries, key=lambda e: (e.date_iso, e.department))
        birth_date = next((e.birth_date_iso for e in entries if e.birth_date_iso), None)
        patient_number = next((e.patient_number for e in entries if e.patient_number), None)
        patient_name = next(
            (e.patient_name_normalized for e in entries if e.patient_name_normalized), None
        )

        first_day_entries = [e for e in entries if e.date_iso == first_visit_date]
        first_visit_type = next(
            (e.visit_type for e in first_day_entries if e.visit_type == FIRST_VISIT_TYPE_LABEL),
            first_day_entries[0].visit_type if first_day_entries else None,
        )

        sorted_names = tuple(sorted(disease_names))
        disease_type, labels = classify_disease_type(sorted_names)

        return PatientProfile(
            key=key,
            anonymized_id="",
            disease_names=sorted_names,
            disease_type=disease_type,
            disease_labels=tuple(labels),
            visit_dates=tuple(visit_dates),
            first_visit_date=first_visit_date,
            last_visit_date=last_visit_date,
            visit_count=len(visit_dates),
            status=continuity_status(days_since_last),
            days_since_last=days_since_last,
            age=self.age_resolver(birth_date, baseline_date) if birth_date else None,
            patient_number=patient_number,
            patient_name=patient_name,
            first_visit_type=first_visit_type or None,
        )
