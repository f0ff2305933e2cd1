"""Unit tests for the snapshot store and the visit quota fallback."""

import json

import pytest

from karte_link.linkage.config import STORAGE_KEY_VISITS
from karte_link.linkage.records import SnapshotFormatError, VisitRecord, records_from_rows
from karte_link.linkage.snapshot_store import (
    SnapshotStore,
    StorageQuotaExceededError,
    import_records,
    save_visits_with_quota_fallback,
)


def make_visit(date_iso, patient_number="1"):
    return VisitRecord(
        date_iso=date_iso,
        month_key=date_iso[:7],
        visit_type="再診",
        department="内科",
        patient_number=patient_number,
    )


def visits_over_months(months, per_month=2):
    """Visits spread over ``months`` consecutive months ending 2024-12."""
    visits = []
    for offset in range(months):
        year = 2024 - (offset // 12)
        month = 12 - (offset % 12)
        for index in range(per_month):
            visits.append(make_visit(f"{year}-{month:02d}-10", patient_number=str(index)))
    return visits


class LimitedStore:
    """Stand-in store that rejects payloads above a record count."""

    def __init__(self, max_records):
        self.max_records = max_records
        self.saved = None
        self.attempts = []

    def save_records(self, family, records, updated_at=None):
        self.attempts.append(len(records))
        if len(records) > self.max_records:
            raise StorageQuotaExceededError(family, len(records), self.max_records)
        self.saved = list(records)


class TestSnapshotStore:
    """Tests for SnapshotStore persistence."""

    def test_round_trip(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        visits = [make_visit("2024-05-01"), make_visit("2024-05-02", "2")]
        store.save_records("visits", visits, "2024-06-01T10:00:00")

        assert store.load_records("visits") == visits
        assert store.last_updated("visits") == "2024-06-01T10:00:00"

    def test_visits_stored_compressed(self, tmp_path):
        """The visit payload is not stored as plain JSON but reads back as JSON."""
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        store.save_records("visits", [make_visit("2024-05-01")])

        raw_files = [p.read_bytes() for p in tmp_path.glob("*karte-records*")]
        assert raw_files and not raw_files[0].startswith(b"[")
        assert json.loads(store.get_item(STORAGE_KEY_VISITS))[0]["dateIso"] == "2024-05-01"

    def test_quota_exceeded(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=10)
        with pytest.raises(StorageQuotaExceededError):
            store.set_item("clinic-analytics/listing/v1", "x" * 100)
        assert store.get_item("clinic-analytics/listing/v1") is None

    def test_overwrite_does_not_double_count(self, tmp_path):
        """Replacing a key only counts the new payload against the quota."""
        store = SnapshotStore(tmp_path, capacity_bytes=150)
        store.set_item("clinic-analytics/listing/v1", "x" * 100)
        store.set_item("clinic-analytics/listing/v1", "y" * 120)
        assert store.get_item("clinic-analytics/listing/v1") == "y" * 120

    def test_missing_family_loads_empty(self, tmp_path):
        assert SnapshotStore(tmp_path).load_records("diagnoses") == []

    def test_malformed_rows_dropped_on_load(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        store.set_item(
            "clinic-analytics/diagnosis/v1",
            json.dumps([
                {"startDate": "2024-01-01", "diseaseName": "高血圧症", "category": "lifestyle-disease"},
                {"startDate": "??"},
            ]),
        )
        assert len(store.load_records("diagnoses")) == 1

    def test_non_array_payload(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        store.set_item("clinic-analytics/diagnosis/v1", json.dumps({"rows": []}))
        with pytest.raises(SnapshotFormatError):
            store.load_records("diagnoses")

    def test_clear_family(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        store.save_records("visits", [make_visit("2024-05-01")])
        store.clear_family("visits")
        assert store.load_records("visits") == []
        assert store.last_updated("visits") is None


class TestQuotaFallback:
    """Tests for save_visits_with_quota_fallback."""

    def test_full_set_saved_when_it_fits(self):
        store = LimitedStore(max_records=1000)
        visits = visits_over_months(24)
        outcome = save_visits_with_quota_fallback(store, visits)

        assert outcome.saved is True
        assert outcome.pruned_months is None
        assert outcome.records == visits

    def test_falls_back_to_first_window_that_fits(self):
        """With 24 months of 2 visits each, only a 9-month window (18 visits) fits 20."""
        store = LimitedStore(max_records=20)
        outcome = save_visits_with_quota_fallback(store, visits_over_months(24))

        assert outcome.saved is True
        assert outcome.pruned_months == 9
        assert len(outcome.records) == 18
        assert store.attempts == [48, 36, 24, 18]

    def test_pruned_records_are_most_recent(self):
        store = LimitedStore(max_records=6)
        outcome = save_visits_with_quota_fallback(store, visits_over_months(24))

        assert outcome.pruned_months == 3
        assert {v.month_key for v in outcome.records} == {"2024-10", "2024-11", "2024-12"}

    def test_total_failure_returns_full_set(self):
        """When even 3 months do not fit, nothing is saved and nothing is lost in memory."""
        store = LimitedStore(max_records=1)
        visits = visits_over_months(24)
        outcome = save_visits_with_quota_fallback(store, visits)

        assert outcome.saved is False
        assert outcome.pruned_months is None
        assert outcome.records == visits
        assert store.saved is None
        assert len(store.attempts) == 6

    def test_real_store_total_failure(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=10)
        outcome = save_visits_with_quota_fallback(store, visits_over_months(6))
        assert outcome.saved is False
        assert store.load_records("visits") == []


class TestImportRecords:
    """Tests for merge-and-persist imports."""

    def test_reservation_import_writes_diff(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        rows = [{
            "department": "内科",
            "visitType": "初診",
            "reservationDate": "2024-05-01",
            "reservationHour": 9,
            "receivedAtIso": "2024-05-01T09:00:00",
            "patientId": "P1",
        }]
        incoming, _ = records_from_rows("reservations", rows)
        result, outcome = import_records(store, "reservations", incoming)
        assert outcome is None
        assert len(result.added) == 1
        assert len(store.load_reservation_diff()) == 1

        # Re-importing the same batch adds nothing and clears the diff
        result, _ = import_records(store, "reservations", incoming)
        assert result.added == []
        assert store.load_reservation_diff() == []

    def test_visit_import_uses_fallback(self, tmp_path):
        store = SnapshotStore(tmp_path, capacity_bytes=1_000_000)
        result, outcome = import_records(store, "visits", visits_over_months(2))
        assert outcome.saved is True
        assert len(store.load_records("visits")) == len(result.merged) == 4
