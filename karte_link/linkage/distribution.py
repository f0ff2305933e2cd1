"""Bucketed distributions over the lifestyle-disease cohort."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cohort import PatientProfile
from .config import (
    COHORT_AGE_GROUPS,
    DAYS_SINCE_LAST_BUCKETS,
    DISEASE_TYPE_LABELS,
    DISEASE_TYPE_ORDER,
    FOLLOW_UP_LIST_LIMIT,
    HIGH_ENGAGEMENT_MIN_VISITS,
    STATUS_AT_RISK,
    STATUS_DELAYED,
    STATUS_ORDER,
    STATUS_REGULAR,
    VISIT_COUNT_BUCKETS,
)

logger = logging.getLogger(__name__)

Bucket = Tuple[str, int, Optional[int]]


def round_to_1_decimal(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def percentage(part: int, total: int) -> float:
    """Share of ``total`` in percent, 0.0 for an empty population."""
    if total <= 0:
        return 0.0
    return round_to_1_decimal(part / total * 100)


def _in_bucket(value: int, bucket: Bucket) -> bool:
    _, minimum, maximum = bucket
    return value >= minimum and (maximum is None or value <= maximum)


def _empty_status_counts() -> Dict[str, int]:
    return {status: 0 for status in STATUS_ORDER}


@dataclass
class BucketShare:
    """Population and share of one bucket."""
    label: str
    count: int
    share: float

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "count": self.count, "share": self.share}


@dataclass
class GroupStats:
    """Status breakdown for a subset of the cohort (an age band or disease type)."""
    key: str
    label: str
    total: int = 0
    share: float = 0.0
    status_counts: Dict[str, int] = field(default_factory=_empty_status_counts)
    status_rates: Dict[str, float] = field(default_factory=dict)
    average_visits: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "total": self.total,
            "share": self.share,
            "status_counts": dict(self.status_counts),
            "status_rates": dict(self.status_rates),
            "average_visits": self.average_visits,
        }


@dataclass
class DistributionReport:
    """All cohort distributions shown on the continuity dashboard."""
    total_patients: int
    status_counts: Dict[str, int]
    status_rates: Dict[str, float]
    continuation_rate: float
    days_since_last: List[BucketShare]
    visit_counts: List[BucketShare]
    age_groups: List[GroupStats]
    age_ranking: List[GroupStats]
    disease_stats: List[GroupStats]
    delayed_patients: List[PatientProfile]
    at_risk_patients: List[PatientProfile]
    at_risk_high_engagement: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_patients": self.total_patients,
            "status_counts": dict(self.status_counts),
            "status_rates": dict(self.status_rates),
            "continuation_rate": self.continuation_rate,
            "days_since_last": [bucket.to_dict() for bucket in self.days_since_last],
            "visit_counts": [bucket.to_dict() for bucket in self.visit_counts],
            "age_groups": [group.to_dict() for group in self.age_groups],
            "age_ranking": [group.key for group in self.age_ranking],
            "disease_stats": [group.to_dict() for group in self.disease_stats],
            "delayed_patients": [p.to_dict() for p in self.delayed_patients],
            "at_risk_patients": [p.to_dict() for p in self.at_risk_patients],
            "at_risk_high_engagement": self.at_risk_high_engagement,
        }


class DistributionAggregator:
    """Computes bucket counts and shares for a cohort."""

    def __init__(
        self,
        days_buckets: Sequence[Bucket] = DAYS_SINCE_LAST_BUCKETS,
        visit_buckets: Sequence[Bucket] = VISIT_COUNT_BUCKETS,
        age_groups: Sequence[Bucket] = COHORT_AGE_GROUPS,
        follow_up_limit: int = FOLLOW_UP_LIST_LIMIT,
    ):
        self.days_buckets = tuple(days_buckets)
        self.visit_buckets = tuple(visit_buckets)
        self.age_groups = tuple(age_groups)
        self.follow_up_limit = follow_up_limit

    def bucket_shares(self, values: Sequence[int], buckets: Sequence[Bucket]) -> List[BucketShare]:
        """Count values into ordered, non-overlapping buckets."""
        total = len(values)
        shares = []
        for bucket in buckets:
            count = sum(1 for value in values if _in_bucket(value, bucket))
            shares.append(BucketShare(label=bucket[0], count=count, share=percentage(count, total)))
        return shares

    def group_stats(
        self,
        key: str,
        label: str,
        profiles: Sequence[PatientProfile],
        cohort_total: Optional[int] = None,
    ) -> GroupStats:
        """Status counts, rates, average visit count and cohort share for one subgroup."""
        if cohort_total is None:
            cohort_total = len(profiles)
        stats = GroupStats(
            key=key, label=label, total=len(profiles), share=percentage(len(profiles), cohort_total)
        )
        for profile in profiles:
            stats.status_counts[profile.status] += 1
        stats.status_rates = {
            status: percentage(count, stats.total) for status, count in stats.status_counts.items()
        }
        if profiles:
            stats.average_visits = round_to_1_decimal(
                sum(profile.visit_count for profile in profiles) / len(profiles)
            )
        return stats

    def aggregate(self, profiles: Sequence[PatientProfile]) -> DistributionReport:
        """Build every distribution for the cohort.

        Args:
            profiles: Cohort patients

        Returns:
            DistributionReport; an empty cohort yields zero counts and shares
        """
        total = len(profiles)
        overall = self.group_stats("all", "全体", profiles)

        age_groups = []
        for bucket in self.age_groups:
            members = [p for p in profiles if p.age is not None and _in_bucket(p.age, bucket)]
            age_groups.append(self.group_stats(bucket[0], bucket[0], members, total))
        age_ranking = sorted(
            (group for group in age_groups if group.total > 0),
            key=lambda group: (-group.status_rates[STATUS_REGULAR], -group.total),
        )

        disease_stats = [
            self.group_stats(
                disease_type,
                DISEASE_TYPE_LABELS[disease_type],
                [p for p in profiles if p.disease_type == disease_type],
                total,
            )
            for disease_type in DISEASE_TYPE_ORDER
        ]

        by_recent_visit = sorted(profiles, key=lambda p: p.last_visit_date, reverse=True)
        delayed = [p for p in by_recent_visit if p.status == STATUS_DELAYED]
        at_risk = [p for p in by_recent_visit if p.status == STATUS_AT_RISK]

        report = DistributionReport(
            total_patients=total,
            status_counts=overall.status_counts,
            status_rates=overall.status_rates,
            continuation_rate=percentage(overall.status_counts[STATUS_REGULAR], total),
            days_since_last=self.bucket_shares([p.days_since_last for p in profiles], self.days_buckets),
            visit_counts=self.bucket_shares([p.visit_count for p in profiles], self.visit_buckets),
            age_groups=age_groups,
            age_ranking=age_ranking,
            disease_stats=disease_stats,
            delayed_patients=delayed[: self.follow_up_limit],
            at_risk_patients=at_risk[: self.follow_up_limit],
            at_risk_high_engagement=sum(
                1 for p in at_risk if p.visit_count >= HIGH_ENGAGEMENT_MIN_VISITS
            ),
        )
        logger.debug(
            f"Distributions for {total} patients: continuation {report.continuation_rate}%"
        )
        return report
