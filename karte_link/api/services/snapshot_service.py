"""Snapshot service shared by the import and analysis endpoints."""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from karte_link.linkage.config import (
    FAMILY_DIAGNOSES,
    FAMILY_RESERVATIONS,
    FAMILY_VISITS,
    RECORD_FAMILIES,
    SNAPSHOT_DIR,
    STORAGE_QUOTA_BYTES,
)
from karte_link.linkage.normalizers import HolidayCalendar, default_holiday_calendar
from karte_link.linkage.pipeline import AnalysisInputs, LinkageReport, compute_all
from karte_link.linkage.records import records_from_rows
from karte_link.linkage.snapshot_store import SnapshotStore, import_records

logger = logging.getLogger(__name__)


class SnapshotService:
    """Owns the snapshot store and recomputes reports on demand."""

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        holidays: Optional[HolidayCalendar] = None,
    ):
        self.store = store or SnapshotStore(SNAPSHOT_DIR, STORAGE_QUOTA_BYTES)
        self.holidays = holidays if holidays is not None else default_holiday_calendar()
        self._lock = threading.Lock()

    def import_rows(self, family: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Parse, merge and persist one import batch.

        Raises:
            ValueError: Unknown family
            SnapshotFormatError: Payload is not a list of rows
        """
        incoming, skipped = records_from_rows(family, rows)
        updated_at = datetime.now().isoformat()

        with self._lock:
            result, outcome = import_records(self.store, family, incoming, updated_at)

        summary = {
            "family": family,
            "received": len(rows),
            "skipped": skipped,
            "total": len(result.merged),
            "added": len(result.added),
            "saved": True,
            "pruned_months": None,
            "last_updated": self.store.last_updated(family),
        }
        if outcome is not None:
            summary["saved"] = outcome.saved
            summary["pruned_months"] = outcome.pruned_months
            summary["total"] = len(outcome.records)
        logger.info(
            f"Imported {family}: {summary['received']} rows, {summary['added']} new, "
            f"{summary['total']} stored"
        )
        return summary

    def status(self) -> Dict[str, Any]:
        families = [
            {
                "family": family,
                "count": len(self.store.load_records(family)),
                "last_updated": self.store.last_updated(family),
            }
            for family in RECORD_FAMILIES
        ]
        return {
            "families": families,
            "used_bytes": self.store.used_bytes(),
            "capacity_bytes": self.store.capacity_bytes,
            "newly_added_reservations": len(self.store.load_reservation_diff()),
        }

    def clear(self, family: str) -> None:
        with self._lock:
            self.store.clear_family(family)
        logger.info(f"Cleared stored {family}")

    def build_report(
        self,
        range_start: Optional[str] = None,
        range_end: Optional[str] = None,
    ) -> LinkageReport:
        inputs = AnalysisInputs(
            visits=self.store.load_records(FAMILY_VISITS),
            reservations=self.store.load_records(FAMILY_RESERVATIONS),
            diagnoses=self.store.load_records(FAMILY_DIAGNOSES),
            range_start=range_start,
            range_end=range_end,
            holidays=self.holidays,
        )
        return compute_all(inputs)


_snapshot_service: Optional[SnapshotService] = None


def get_snapshot_service() -> SnapshotService:
    """FastAPI dependency returning the process-wide service."""
    global _snapshot_service
    if _snapshot_service is None:
        _snapshot_service = SnapshotService()
    return _snapshot_service
