"""Unit tests for weekday/hour slot insights."""

import pytest

from karte_link.linkage.cross_source_matcher import MatchedVisit, MatchResult
from karte_link.linkage.records import ReservationRecord, VisitRecord
from karte_link.linkage.slot_insights import build_slot_insights, resolve_age_band


def make_match(weekday, hour, points=None, visit_department="内科・外科外来", reservation_department="内科・外科外来",
               birth=None, date_iso="2024-05-13"):
    visit = VisitRecord(
        date_iso=date_iso,
        month_key=date_iso[:7],
        visit_type="再診",
        department=visit_department,
        points=points,
        birth_date_iso=birth,
    )
    reservation = ReservationRecord(
        department=reservation_department,
        visit_type="再診",
        reservation_date_iso=date_iso,
        reservation_hour=hour,
        received_at_iso=f"{date_iso}T{hour:02d}:00:00",
        patient_id="P1",
    )
    return MatchedVisit(visit=visit, reservation=reservation, weekday=weekday, hour=hour)


class TestResolveAgeBand:
    """Tests for slot age bands."""

    @pytest.mark.parametrize("age,band", [
        (0, "0-19"),
        (19, "0-19"),
        (20, "20-39"),
        (79, "60-79"),
        (80, "80+"),
        (104, "80+"),
        (None, "unknown"),
    ])
    def test_bands(self, age, band):
        assert resolve_age_band(age) == band


class TestBuildSlotInsights:
    """Tests for build_slot_insights."""

    def test_general_segment_requires_both_sides(self):
        matches = [
            make_match(0, 9, visit_department="内科・外科外来", reservation_department="内科・外科外来（大岩医師）"),
            make_match(0, 9, visit_department="内科・外科外来", reservation_department="発熱外来"),
            make_match(0, 10, visit_department="発熱外来", reservation_department="風邪症状外来"),
        ]
        insights = build_slot_insights(MatchResult(matches=matches))

        assert insights.segments["overall"].total_matches == 3
        assert insights.segments["general"].total_matches == 1
        assert insights.segments["fever"].total_matches == 1

    def test_other_departments_left_out(self):
        """Matches outside the general and fever outpatient clinics are not slotted."""
        matches = [
            make_match(0, 9),
            make_match(0, 9, visit_department="皮膚科", reservation_department="皮膚科"),
            make_match(0, 10, reservation_department="オンライン診療（保険）"),
        ]
        insights = build_slot_insights(MatchResult(matches=matches))

        assert insights.segments["overall"].total_matches == 1
        assert insights.segments["general"].total_matches == 1
        assert [slot.hour for slot in insights.segments["overall"].slots] == [9]

    def test_top_slot_tie_breaks_on_weekday_then_hour(self):
        matches = [
            make_match(1, 10), make_match(1, 10),
            make_match(0, 15), make_match(0, 15),
            make_match(0, 9),
        ]
        insight = build_slot_insights(MatchResult(matches=matches)).segments["overall"]

        assert (insight.top_slot.weekday, insight.top_slot.hour) == (0, 15)
        assert [(s.weekday, s.hour) for s in insight.slots] == [(0, 9), (0, 15), (1, 10)]

    def test_highest_average_needs_three_patients(self):
        matches = [
            make_match(0, 9, points=100.0),
            make_match(0, 9, points=200.0),
            make_match(0, 9, points=300.0),
            make_match(2, 15, points=900.0),
        ]
        insight = build_slot_insights(MatchResult(matches=matches)).segments["overall"]

        assert (insight.highest_avg_slot.weekday, insight.highest_avg_slot.hour) == (0, 9)
        assert insight.highest_avg_slot.avg_points == 200.0
        assert insight.highest_avg_slot.avg_amount == 2000.0

    def test_points_missing_from_average(self):
        matches = [make_match(0, 9, points=None), make_match(0, 9, points=150.0)]
        slot = build_slot_insights(MatchResult(matches=matches)).segments["overall"].slots[0]

        assert slot.total_patients == 2
        assert slot.avg_points == 150.0

    def test_age_breakdown_uses_visit_date(self):
        matches = [
            make_match(0, 9, birth="1990-05-14"),
            make_match(0, 9, birth="1990-05-13"),
            make_match(0, 9),
        ]
        insight = build_slot_insights(MatchResult(matches=matches)).segments["overall"]
        bands = {entry.band: entry.total for entry in insight.slots[0].age_breakdown}

        # Born 1990-05-14 is still 33 on 2024-05-13
        assert bands == {"20-39": 2, "unknown": 1}
        assert insight.leading_age_band.band == "20-39"
        assert insight.leading_age_band.share == 66.7

    def test_visit_classifier_counts(self):
        matches = [make_match(0, 9), make_match(0, 9)]
        insights = build_slot_insights(
            MatchResult(matches=matches),
            visit_classifier=lambda visits: ["chronic", "acute"][: len(visits)],
        )
        slot = insights.segments["overall"].slots[0]
        assert slot.category_counts == {"chronic": 1, "acute": 1}

    def test_visit_classifier_length_mismatch(self):
        with pytest.raises(ValueError):
            build_slot_insights(
                MatchResult(matches=[make_match(0, 9)]),
                visit_classifier=lambda visits: [],
            )

    def test_empty_matches(self):
        insights = build_slot_insights(MatchResult(unmatched_visits=4, unmatched_reservations=2))

        for insight in insights.segments.values():
            assert insight.has_data is False
            assert insight.top_slot is None
            assert insight.highest_avg_slot is None
        assert insights.unmatched_visits == 4
        assert insights.unmatched_reservations == 2

    def test_to_dict(self):
        data = build_slot_insights(MatchResult(matches=[make_match(7, 11, points=50.0)])).to_dict()
        slot = data["segments"]["overall"]["top_slot"]
        assert slot["weekday_label"] == "祝日"
        assert slot["avg_amount"] == 500.0
        assert data["segments"]["general"]["has_data"] is False
