"""Last-write-wins merging of re-imported source exports.

Every family is deduplicated on a natural key. Re-importing an export that
overlaps the stored snapshot replaces the overlapping rows and appends the
new ones; merging the same batch twice leaves the snapshot unchanged.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, Iterable, List, Sequence, Tuple, TypeVar

from .config import (
    FAMILY_DIAGNOSES,
    FAMILY_LISTINGS,
    FAMILY_RESERVATIONS,
    FAMILY_SURVEYS,
    FAMILY_VISITS,
)
from .records import (
    DiagnosisRecord,
    ListingEntry,
    ReservationRecord,
    SurveyEntry,
    VisitRecord,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class MergeResult(Generic[R]):
    """Outcome of merging an incoming batch into the stored records."""
    merged: List[R] = field(default_factory=list)
    added: List[R] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": len(self.merged), "added": len(self.added)}


class SourceMerger(Generic[R]):
    """Deduplicating merger for one record family.

    Args:
        name: Family name, used in log messages
        natural_key: Maps a record to its deduplication key
        sort_key: Maps a record to the value ``merged`` is ordered by
    """

    def __init__(
        self,
        name: str,
        natural_key: Callable[[R], Hashable],
        sort_key: Callable[[R], Any],
    ):
        self.name = name
        self.natural_key = natural_key
        self.sort_key = sort_key

    def merge(self, existing: Iterable[R], incoming: Iterable[R]) -> MergeResult[R]:
        """Merge ``incoming`` over ``existing``.

        Later records win on key collisions. ``added`` holds the first
        incoming record for every key that ``existing`` did not have.
        """
        by_key: Dict[Hashable, R] = {}
        for record in existing:
            by_key[self.natural_key(record)] = record
        existing_keys = set(by_key)

        added: List[R] = []
        added_keys = set()
        for record in incoming:
            key = self.natural_key(record)
            if key not in existing_keys and key not in added_keys:
                added.append(record)
                added_keys.add(key)
            by_key[key] = record

        merged = sorted(by_key.values(), key=self.sort_key)
        logger.info(
            f"Merged {self.name}: {len(merged)} total, {len(added)} newly added"
        )
        return MergeResult(merged=merged, added=added)


def visit_key(record: VisitRecord) -> Tuple[str, str, str, str]:
    return (
        record.date_iso,
        record.visit_type,
        record.patient_number or "",
        record.department,
    )


def reservation_key(record: ReservationRecord) -> Tuple[str, str, str, str, str]:
    return (
        record.department,
        record.visit_type,
        record.received_at_iso,
        record.patient_id,
        record.appointment_iso or "",
    )


def diagnosis_key(record: DiagnosisRecord) -> str:
    return record.record_id


def listing_key(record: ListingEntry) -> Tuple[str, str]:
    return (record.category, record.date)


def survey_key(record: SurveyEntry) -> Tuple[str, str]:
    return (record.date, record.file_type)


MERGERS: Dict[str, SourceMerger] = {
    FAMILY_VISITS: SourceMerger(FAMILY_VISITS, visit_key, lambda r: r.date_iso),
    FAMILY_RESERVATIONS: SourceMerger(
        FAMILY_RESERVATIONS, reservation_key, lambda r: r.received_at_iso
    ),
    FAMILY_DIAGNOSES: SourceMerger(FAMILY_DIAGNOSES, diagnosis_key, lambda r: r.start_date),
    FAMILY_LISTINGS: SourceMerger(
        FAMILY_LISTINGS, listing_key, lambda r: (r.category, r.date)
    ),
    FAMILY_SURVEYS: SourceMerger(FAMILY_SURVEYS, survey_key, lambda r: r.date),
}


def get_merger(family: str) -> SourceMerger:
    """Look up the merger for a family.

    Raises:
        ValueError: If the family is unknown
    """
    try:
        return MERGERS[family]
    except KeyError:
        raise ValueError(f"Unknown record family: {family}") from None


def prune_to_recent_months(records: Sequence[VisitRecord], months: int) -> List[VisitRecord]:
    """Keep visits from the most recent ``months`` distinct month keys.

    Args:
        records: Visits in any order
        months: Number of distinct months to retain

    Returns:
        Visits whose month key is at or after the retention threshold
    """
    month_keys = sorted({record.month_key for record in records})
    if len(month_keys) <= months:
        return list(records)
    threshold = month_keys[-months]
    return [record for record in records if record.month_key >= threshold]
