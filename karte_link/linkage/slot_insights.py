"""Weekday/hour demand and revenue slots from matched visits."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .age_utils import AgeResolver, age_at
from .config import (
    SEGMENT_OVERALL,
    SLOT_AGE_BANDS,
    SLOT_AGE_UNKNOWN,
    SLOT_MIN_PATIENTS_FOR_AVERAGE,
    SLOT_SEGMENTS,
    WEEKDAY_LABELS,
    YEN_PER_POINT,
)
from .cross_source_matcher import MatchedVisit, MatchResult
from .departments import department_segment
from .distribution import percentage, round_to_1_decimal
from .records import VisitRecord

logger = logging.getLogger(__name__)

VisitClassifier = Callable[[Sequence[VisitRecord]], Sequence[str]]


def resolve_age_band(age: Optional[int]) -> str:
    if age is None:
        return SLOT_AGE_UNKNOWN
    for label, minimum, maximum in SLOT_AGE_BANDS:
        if age >= minimum and (maximum is None or age <= maximum):
            return label
    return SLOT_AGE_UNKNOWN


class _PointsTally:
    def __init__(self):
        self.total = 0
        self.points_sum = 0.0
        self.points_count = 0

    def add(self, points: Optional[float]) -> None:
        self.total += 1
        if points is not None:
            self.points_sum += points
            self.points_count += 1

    @property
    def avg_points(self) -> Optional[float]:
        if self.points_count == 0:
            return None
        return round_to_1_decimal(self.points_sum / self.points_count)


@dataclass
class AgeBandShare:
    band: str
    total: int
    share: float
    avg_points: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "band": self.band,
            "total": self.total,
            "share": self.share,
            "avg_points": self.avg_points,
        }


@dataclass
class SlotStat:
    """Matched visits for one weekday/hour slot."""
    weekday: int
    hour: int
    total_patients: int
    avg_points: Optional[float]
    age_breakdown: List[AgeBandShare] = field(default_factory=list)
    category_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def weekday_label(self) -> str:
        return WEEKDAY_LABELS[self.weekday]

    @property
    def avg_amount(self) -> Optional[float]:
        if self.avg_points is None:
            return None
        return round_to_1_decimal(self.avg_points * YEN_PER_POINT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weekday": self.weekday,
            "weekday_label": self.weekday_label,
            "hour": self.hour,
            "total_patients": self.total_patients,
            "avg_points": self.avg_points,
            "avg_amount": self.avg_amount,
            "age_breakdown": [entry.to_dict() for entry in self.age_breakdown],
            "category_counts": dict(self.category_counts),
        }


@dataclass
class SegmentInsight:
    """Slot statistics for one department segment."""
    segment: str
    total_matches: int = 0
    slots: List[SlotStat] = field(default_factory=list)
    top_slot: Optional[SlotStat] = None
    highest_avg_slot: Optional[SlotStat] = None
    leading_age_band: Optional[AgeBandShare] = None

    @property
    def has_data(self) -> bool:
        return self.total_matches > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segment": self.segment,
            "has_data": self.has_data,
            "total_matches": self.total_matches,
            "slots": [slot.to_dict() for slot in self.slots],
            "top_slot": self.top_slot.to_dict() if self.top_slot else None,
            "highest_avg_slot": self.highest_avg_slot.to_dict() if self.highest_avg_slot else None,
            "leading_age_band": self.leading_age_band.to_dict() if self.leading_age_band else None,
        }


@dataclass
class SlotInsights:
    segments: Dict[str, SegmentInsight]
    unmatched_visits: int = 0
    unmatched_reservations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segments": {name: insight.to_dict() for name, insight in self.segments.items()},
            "unmatched_visits": self.unmatched_visits,
            "unmatched_reservations": self.unmatched_reservations,
        }


class _SlotAccumulator:
    def __init__(self, weekday: int, hour: int):
        self.weekday = weekday
        self.hour = hour
        self.tally = _PointsTally()
        self.ages: Dict[str, _PointsTally] = {}
        self.categories: Dict[str, int] = {}

    def add(self, points: Optional[float], age_band: str, category: Optional[str]) -> None:
        self.tally.add(points)
        self.ages.setdefault(age_band, _PointsTally()).add(points)
        if category:
            self.categories[category] = self.categories.get(category, 0) + 1

    def build(self) -> SlotStat:
        breakdown = sorted(
            (
                AgeBandShare(
                    band=band,
                    total=tally.total,
                    share=percentage(tally.total, self.tally.total),
                    avg_points=tally.avg_points,
                )
                for band, tally in self.ages.items()
            ),
            key=lambda entry: (-entry.total, entry.band),
        )
        return SlotStat(
            weekday=self.weekday,
            hour=self.hour,
            total_patients=self.tally.total,
            avg_points=self.tally.avg_points,
            age_breakdown=breakdown,
            category_counts=dict(self.categories),
        )


def _segments_for(match: MatchedVisit) -> List[str]:
    """Segments a match counts toward; empty unless both sides are general or fever."""
    visit_segment = department_segment(match.visit.department)
    reservation_segment = department_segment(match.reservation.department)
    if visit_segment is None or reservation_segment is None:
        return []
    if visit_segment == reservation_segment:
        return [SEGMENT_OVERALL, visit_segment]
    return [SEGMENT_OVERALL]


def build_slot_insights(
    match_result: MatchResult,
    age_resolver: AgeResolver = age_at,
    visit_classifier: Optional[VisitClassifier] = None,
) -> SlotInsights:
    """Aggregate matched visits into weekday/hour slots per segment.

    Args:
        match_result: Output of the cross-source matcher
        age_resolver: Age on the visit date from the visit's birth date
        visit_classifier: Optional classifier returning one category per visit

    Returns:
        SlotInsights keyed by segment (overall, general, fever)
    """
    matches = match_result.matches
    categories: Sequence[Optional[str]] = [None] * len(matches)
    if visit_classifier is not None and matches:
        categories = list(visit_classifier([match.visit for match in matches]))
        if len(categories) != len(matches):
            raise ValueError(
                f"Visit classifier returned {len(categories)} categories for {len(matches)} visits"
            )

    slot_maps: Dict[str, Dict[tuple, _SlotAccumulator]] = {name: {} for name in SLOT_SEGMENTS}
    age_totals: Dict[str, Dict[str, _PointsTally]] = {name: {} for name in SLOT_SEGMENTS}
    counts = {name: 0 for name in SLOT_SEGMENTS}

    for match, category in zip(matches, categories):
        visit = match.visit
        age_band = resolve_age_band(age_resolver(visit.birth_date_iso, visit.date_iso))
        for segment in _segments_for(match):
            counts[segment] += 1
            slot = slot_maps[segment].setdefault(
                (match.weekday, match.hour), _SlotAccumulator(match.weekday, match.hour)
            )
            slot.add(visit.points, age_band, category)
            age_totals[segment].setdefault(age_band, _PointsTally()).add(visit.points)

    insights = {}
    for segment in SLOT_SEGMENTS:
        slots = sorted(
            (accumulator.build() for accumulator in slot_maps[segment].values()),
            key=lambda slot: (slot.weekday, slot.hour),
        )
        insight = SegmentInsight(segment=segment, total_matches=counts[segment], slots=slots)
        if slots:
            insight.top_slot = min(
                slots, key=lambda slot: (-slot.total_patients, slot.weekday, slot.hour)
            )
            candidates = [
                slot for slot in slots
                if slot.avg_points is not None
                and slot.total_patients >= SLOT_MIN_PATIENTS_FOR_AVERAGE
            ]
            if candidates:
                insight.highest_avg_slot = max(candidates, key=lambda slot: slot.avg_points)
        if age_totals[segment]:
            band, tally = max(age_totals[segment].items(), key=lambda item: item[1].total)
            insight.leading_age_band = AgeBandShare(
                band=band,
                total=tally.total,
                share=percentage(tally.total, counts[segment]),
                avg_points=tally.avg_points,
            )
        insights[segment] = insight

    logger.debug(
        "Slot insights: "
        + ", ".join(f"{name}={counts[name]}" for name in SLOT_SEGMENTS)
    )
    return SlotInsights(
        segments=insights,
        unmatched_visits=match_result.unmatched_visits,
        unmatched_reservations=match_result.unmatched_reservations,
    )
