"""
Record linkage and cohort continuity engine.

Merges re-imported karte, reservation and diagnosis exports, resolves
patient identity across exports that share no primary key, pairs visits
with the bookings that produced them, and follows lifestyle-disease
patients through their visit history to flag lapsed follow-up.
"""

from .cohort import CohortContinuityAnalyzer, CohortResult, PatientProfile
from .cross_source_matcher import (
    MatchedVisit,
    MatchResult,
    ReservationBuckets,
    match_visits_to_reservations,
)
from .distribution import DistributionAggregator, DistributionReport
from .patient_identity import resolve_match_key, resolve_patient_key
from .pipeline import AnalysisInputs, LinkageReport, compute_all
from .records import (
    DiagnosisRecord,
    ListingEntry,
    ReservationRecord,
    SnapshotFormatError,
    SurveyEntry,
    VisitRecord,
)
from .snapshot_store import (
    PersistOutcome,
    SnapshotStore,
    StorageQuotaExceededError,
    import_records,
    save_visits_with_quota_fallback,
)
from .source_merger import MergeResult, SourceMerger, get_merger, prune_to_recent_months

__all__ = [
    "CohortContinuityAnalyzer",
    "CohortResult",
    "PatientProfile",
    "MatchedVisit",
    "MatchResult",
    "ReservationBuckets",
    "match_visits_to_reservations",
    "DistributionAggregator",
    "DistributionReport",
    "resolve_match_key",
    "resolve_patient_key",
    "AnalysisInputs",
    "LinkageReport",
    "compute_all",
    "DiagnosisRecord",
    "ListingEntry",
    "ReservationRecord",
    "SnapshotFormatError",
    "SurveyEntry",
    "VisitRecord",
    "PersistOutcome",
    "SnapshotStore",
    "StorageQuotaExceededError",
    "import_records",
    "save_visits_with_quota_fallback",
    "MergeResult",
    "SourceMerger",
    "get_merger",
    "prune_to_recent_months",
]
