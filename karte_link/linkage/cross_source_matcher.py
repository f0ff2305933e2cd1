"""Greedy one-to-one matching of karte visits to reservation bookings.

Reservations are grouped by (patient identity, visit date). Visits are
walked in input order; each visit takes the first booking in its bucket
whose department agrees with the visit, otherwise the earliest booking.
A taken booking is removed from its bucket, so no booking serves two
visits. The result depends on visit order when a patient has several
visits and bookings on the same date.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .departments import classify_department_display_name, departments_match
from .logging.linkage_trace_logger import get_linkage_trace_logger
from .normalizers import NameNormalizer, normalize_name_for_matching
from .patient_identity import resolve_match_key
from .records import ReservationRecord, VisitRecord
from .weekdays import HolidayLookup, classify_weekday

logger = logging.getLogger(__name__)

BucketKey = Tuple[str, str]


@dataclass(frozen=True)
class MatchedVisit:
    """A visit joined to the booking it consumed."""
    visit: VisitRecord
    reservation: ReservationRecord
    weekday: int
    hour: int


@dataclass
class MatchResult:
    """Matched pairs plus data-quality counters."""
    matches: List[MatchedVisit] = field(default_factory=list)
    unmatched_visits: int = 0
    unmatched_reservations: int = 0
    unkeyed_reservations: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "matched": len(self.matches),
            "unmatched_visits": self.unmatched_visits,
            "unmatched_reservations": self.unmatched_reservations,
            "unkeyed_reservations": self.unkeyed_reservations,
        }


class ReservationBuckets:
    """Reservations indexed by (identity, date) with removal on take."""

    def __init__(self):
        self._buckets: Dict[BucketKey, List[ReservationRecord]] = {}

    @classmethod
    def build(
        cls,
        reservations: Iterable[ReservationRecord],
        identity: Callable[[ReservationRecord], Optional[str]],
    ) -> Tuple["ReservationBuckets", int]:
        """Index reservations; each bucket is ordered by reservation hour.

        Returns:
            Tuple of (buckets, reservations without an identity key)
        """
        buckets = cls()
        unkeyed = 0
        for reservation in reservations:
            key = identity(reservation)
            if not key:
                unkeyed += 1
                continue
            buckets._buckets.setdefault((key, reservation.date_key), []).append(reservation)
        for candidates in buckets._buckets.values():
            candidates.sort(key=lambda r: r.reservation_hour)
        return buckets, unkeyed

    def take(
        self,
        key: BucketKey,
        prefer: Callable[[ReservationRecord], bool],
    ) -> Optional[ReservationRecord]:
        """Remove and return the first preferred candidate, else the head."""
        candidates = self._buckets.get(key)
        if not candidates:
            return None
        index = next((i for i, candidate in enumerate(candidates) if prefer(candidate)), 0)
        return candidates.pop(index)

    def remaining(self) -> int:
        return sum(len(candidates) for candidates in self._buckets.values())


def match_visits_to_reservations(
    visits: Sequence[VisitRecord],
    reservations: Sequence[ReservationRecord],
    holidays: Optional[HolidayLookup] = None,
    normalizer: NameNormalizer = normalize_name_for_matching,
    visit_identity: Optional[Callable[[VisitRecord], Optional[str]]] = None,
    reservation_identity: Optional[Callable[[ReservationRecord], Optional[str]]] = None,
) -> MatchResult:
    """Pair each visit with at most one same-day booking of the same patient.

    Args:
        visits: Visits in the order they should claim bookings
        reservations: Candidate bookings
        holidays: Holiday lookup for the weekday bucket
        normalizer: Name normalizer for the default identity keys
        visit_identity: Override for the visit-side identity key
        reservation_identity: Override for the booking-side identity key

    Returns:
        MatchResult with matches and unmatched counters on both sides
    """
    if visit_identity is None:
        visit_identity = lambda v: resolve_match_key(v.patient_name_normalized, normalizer)
    if reservation_identity is None:
        reservation_identity = lambda r: resolve_match_key(r.patient_name, normalizer)

    buckets, unkeyed = ReservationBuckets.build(reservations, reservation_identity)
    result = MatchResult(unkeyed_reservations=unkeyed)

    for visit in visits:
        key = visit_identity(visit)
        if not key:
            result.unmatched_visits += 1
            continue

        visit_department = classify_department_display_name(visit.department)
        reservation = buckets.take(
            (key, visit.date_iso),
            lambda candidate: departments_match(
                classify_department_display_name(candidate.department), visit_department
            ),
        )
        if reservation is None:
            result.unmatched_visits += 1
            continue

        weekday = classify_weekday(reservation.date_key, holidays)
        if weekday is None:
            weekday = classify_weekday(visit.date_iso, holidays)
        result.matches.append(
            MatchedVisit(
                visit=visit,
                reservation=reservation,
                weekday=weekday,
                hour=reservation.reservation_hour,
            )
        )

    result.unmatched_reservations = buckets.remaining()

    logger.info(
        f"Matched {len(result.matches)}/{len(visits)} visits "
        f"({result.unmatched_visits} unmatched visits, "
        f"{result.unmatched_reservations} unmatched reservations)"
    )
    get_linkage_trace_logger().log_matching_summary(
        matched=len(result.matches),
        unmatched_visits=result.unmatched_visits,
        unmatched_reservations=result.unmatched_reservations,
    )
    return result
