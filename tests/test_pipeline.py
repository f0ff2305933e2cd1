"""End-to-end tests for compute_all."""

from karte_link.linkage.normalizers import HolidayCalendar
from karte_link.linkage.pipeline import AnalysisInputs, compute_all
from karte_link.linkage.records import DiagnosisRecord, ReservationRecord, VisitRecord


def make_visit(date_iso, patient_number, name, points=None):
    return VisitRecord(
        date_iso=date_iso,
        month_key=date_iso[:7],
        visit_type="再診",
        department="内科・外科外来",
        patient_number=patient_number,
        patient_name_normalized=name,
        birth_date_iso="1970-01-01",
        points=points,
    )


def make_reservation(date_iso, hour, name):
    return ReservationRecord(
        department="内科・外科外来",
        visit_type="再診",
        reservation_date_iso=date_iso,
        reservation_hour=hour,
        received_at_iso=f"{date_iso}T{hour:02d}:00:00",
        patient_id="B-1",
        patient_name=name,
    )


def build_inputs(**overrides):
    inputs = dict(
        visits=[
            make_visit("2024-04-01", "1", "やまだたろう", points=120.0),
            make_visit("2024-06-03", "1", "やまだたろう", points=80.0),
            make_visit("2024-06-04", "2", "さとうはなこ"),
        ],
        reservations=[
            make_reservation("2024-04-01", 9, "ヤマダ タロウ"),
            make_reservation("2024-06-03", 10, "ヤマダ タロウ"),
            make_reservation("2024-06-05", 10, "サトウ ハナコ"),
        ],
        diagnoses=[
            DiagnosisRecord(
                department="内科",
                start_date="2023-01-01",
                disease_name="高血圧症",
                category="lifestyle-disease",
                patient_number="1",
            ),
        ],
    )
    inputs.update(overrides)
    return AnalysisInputs(**inputs)


class TestComputeAll:
    """Tests for the full recompute."""

    def test_report_sections(self):
        report = compute_all(build_inputs())

        assert len(report.matching.matches) == 2
        assert report.matching.unmatched_visits == 1
        assert report.matching.unmatched_reservations == 1
        assert report.slots.segments["overall"].total_matches == 2
        assert [p.key for p in report.cohort.profiles] == ["pn:1"]
        assert report.cohort.baseline_date == "2024-06-04"
        assert report.distributions.total_patients == 1
        assert report.distributions.status_counts["regular"] == 1

    def test_range_applies_to_matching_and_cohort(self):
        report = compute_all(build_inputs(range_start="2024-06", range_end="2024-06"))

        assert len(report.matching.matches) == 1
        assert report.matching.unmatched_reservations == 2
        assert report.cohort.profiles[0].visit_count == 1

    def test_holidays_reach_slots(self):
        report = compute_all(build_inputs(holidays=HolidayCalendar(["2024-06-03"])))
        weekdays = {slot.weekday for slot in report.slots.segments["overall"].slots}
        assert weekdays == {0, 7}

    def test_to_dict_is_serializable(self):
        data = compute_all(build_inputs()).to_dict()
        assert set(data) == {"matching", "slots", "cohort", "distributions"}
        assert data["matching"]["matched"] == 2
        assert data["cohort"]["patients"][0]["anonymized_id"] == "LS-001"

    def test_empty_snapshot(self):
        report = compute_all(AnalysisInputs())
        assert report.matching.matches == []
        assert report.cohort.profiles == []
        assert report.distributions.total_patients == 0
