"""Pydantic models for API requests and responses."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RecordFamily(str, Enum):
    """Importable record families."""
    VISITS = "visits"
    RESERVATIONS = "reservations"
    DIAGNOSES = "diagnoses"
    LISTINGS = "listings"
    SURVEYS = "surveys"


class ImportRequest(BaseModel):
    """Batch of already-parsed rows for one family."""
    records: List[Dict[str, Any]] = Field(..., description="Parsed rows in snapshot format")


class ImportResponse(BaseModel):
    """Result of merging an import batch into the snapshot."""
    family: RecordFamily
    received: int
    skipped: int
    total: int
    added: int
    saved: bool = True
    pruned_months: Optional[int] = None
    last_updated: Optional[str] = None


class FamilyStatus(BaseModel):
    """Stored record count and timestamp for one family."""
    family: RecordFamily
    count: int
    last_updated: Optional[str] = None


class SnapshotStatusResponse(BaseModel):
    """Snapshot overview."""
    families: List[FamilyStatus]
    used_bytes: int
    capacity_bytes: int
    newly_added_reservations: int = 0


class MatchingResponse(BaseModel):
    """Visit/reservation matching counters."""
    matched: int
    unmatched_visits: int
    unmatched_reservations: int
    unkeyed_reservations: int = 0


class BucketShareModel(BaseModel):
    label: str
    count: int
    share: float


class GroupStatsModel(BaseModel):
    key: str
    label: str
    total: int
    share: float
    status_counts: Dict[str, int]
    status_rates: Dict[str, float]
    average_visits: float


class PatientProfileModel(BaseModel):
    """Cohort patient as shown in follow-up lists."""
    anonymized_id: str
    patient_number: Optional[str] = None
    patient_name: Optional[str] = None
    disease_names: List[str]
    disease_type: str
    disease_labels: List[str]
    first_visit_date: str
    last_visit_date: str
    first_visit_type: Optional[str] = None
    visit_count: int
    days_since_last: int
    status: str
    age: Optional[int] = None


class LifestyleReportResponse(BaseModel):
    """Lifestyle-disease continuity report."""
    baseline_date: Optional[str] = None
    range_start: Optional[str] = None
    total_patients: int
    status_counts: Dict[str, int]
    status_rates: Dict[str, float]
    continuation_rate: float
    days_since_last: List[BucketShareModel]
    visit_counts: List[BucketShareModel]
    age_groups: List[GroupStatsModel]
    age_ranking: List[str]
    disease_stats: List[GroupStatsModel]
    delayed_patients: List[PatientProfileModel]
    at_risk_patients: List[PatientProfileModel]
    at_risk_high_engagement: int


class SlotInsightsResponse(BaseModel):
    """Weekday/hour slot insights per department segment."""
    segments: Dict[str, Dict[str, Any]]
    unmatched_visits: int
    unmatched_reservations: int
