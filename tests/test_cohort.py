"""Unit tests for the lifestyle-disease cohort analyzer."""

import pytest

from karte_link.linkage.cohort import (
    CohortContinuityAnalyzer,
    continuity_status,
    visit_in_range,
)
from karte_link.linkage.records import DiagnosisRecord, VisitRecord


def make_visit(date_iso, patient_number="1", visit_type="再診", department="内科",
               birth="1960-08-04", name=None):
    return VisitRecord(
        date_iso=date_iso,
        month_key=date_iso[:7],
        visit_type=visit_type,
        department=department,
        patient_number=patient_number,
        birth_date_iso=birth,
        patient_name_normalized=name,
    )


def make_diagnosis(disease_name, patient_number="1", category="lifestyle-disease",
                   name=None, birth=None):
    return DiagnosisRecord(
        department="内科",
        start_date="2023-01-01",
        disease_name=disease_name,
        category=category,
        patient_number=patient_number,
        patient_name_normalized=name,
        birth_date_iso=birth,
    )


@pytest.fixture
def analyzer():
    return CohortContinuityAnalyzer()


class TestContinuityStatus:
    """Tests for the gap-to-status thresholds."""

    @pytest.mark.parametrize("days,expected", [
        (0, "regular"),
        (90, "regular"),
        (91, "delayed"),
        (150, "delayed"),
        (151, "atRisk"),
    ])
    def test_thresholds(self, days, expected):
        assert continuity_status(days) == expected


class TestVisitInRange:
    """Tests for month and date window bounds."""

    def test_month_bounds(self):
        visit = make_visit("2024-03-31")
        assert visit_in_range(visit, "2024-03", "2024-03")
        assert not visit_in_range(visit, "2024-04", None)

    def test_date_bounds(self):
        visit = make_visit("2024-03-31")
        assert visit_in_range(visit, "2024-03-31", "2024-03-31")
        assert not visit_in_range(visit, None, "2024-03-30")

    def test_open_window(self):
        assert visit_in_range(make_visit("1999-01-01"), None, None)


class TestCohortContinuityAnalyzer:
    """Tests for CohortContinuityAnalyzer.analyze."""

    def test_profile_fields(self, analyzer):
        """Baseline is the latest in-range visit of any patient."""
        diagnoses = [make_diagnosis("高血圧症", patient_number="0001")]
        visits = [
            make_visit("2024-01-10", visit_type="初診"),
            make_visit("2024-03-01"),
            make_visit("2024-03-01", department="外科"),
            make_visit("2024-06-30", patient_number="2"),
        ]
        result = analyzer.analyze(diagnoses, visits)

        assert result.baseline_date == "2024-06-30"
        assert result.range_start == "2024-01-10"
        assert len(result.profiles) == 1

        profile = result.profiles[0]
        assert profile.anonymized_id == "LS-001"
        assert profile.key == "pn:1"
        assert profile.visit_count == 2
        assert profile.first_visit_date == "2024-01-10"
        assert profile.last_visit_date == "2024-03-01"
        assert profile.days_since_last == 121
        assert profile.status == "delayed"
        assert profile.first_visit_type == "初診"
        assert profile.disease_type == "hypertension"
        assert profile.age == 63

    def test_only_lifestyle_category_counts(self, analyzer):
        diagnoses = [
            make_diagnosis("右膝捻挫", patient_number="1", category="surgery"),
            make_diagnosis("2型糖尿病", patient_number="2"),
        ]
        visits = [make_visit("2024-05-01", "1"), make_visit("2024-05-02", "2")]
        result = analyzer.analyze(diagnoses, visits)

        assert [p.key for p in result.profiles] == ["pn:2"]

    def test_name_and_birth_fallback(self, analyzer):
        """Patients without numbers link on normalized name and birth date."""
        diagnoses = [make_diagnosis("脂質異常症", patient_number=None, name="さとうはなこ", birth="1970-02-02")]
        visits = [make_visit("2024-05-01", patient_number=None, name="さとうはなこ", birth="1970-02-02")]
        result = analyzer.analyze(diagnoses, visits)

        assert result.profiles[0].key == "nb:さとうはなこ|1970-02-02"
        assert result.profiles[0].disease_type == "lipid"

    def test_range_filters_visits_and_baseline(self, analyzer):
        diagnoses = [make_diagnosis("高血圧症")]
        visits = [
            make_visit("2024-01-10"),
            make_visit("2024-04-15"),
            make_visit("2024-09-01"),
        ]
        result = analyzer.analyze(diagnoses, visits, range_start="2024-02", range_end="2024-06")

        profile = result.profiles[0]
        assert result.baseline_date == "2024-04-15"
        assert profile.visit_count == 1
        assert profile.days_since_last == 0
        assert profile.status == "regular"

    def test_ids_follow_key_order(self, analyzer):
        diagnoses = [make_diagnosis("高血圧症", "3"), make_diagnosis("高血圧症", "10")]
        visits = [make_visit("2024-05-01", "3"), make_visit("2024-05-01", "10")]
        result = analyzer.analyze(diagnoses, visits)

        # "pn:10" sorts before "pn:3"
        assert [(p.key, p.anonymized_id) for p in result.profiles] == [
            ("pn:10", "LS-001"),
            ("pn:3", "LS-002"),
        ]

    def test_multiple_disease_types(self, analyzer):
        diagnoses = [make_diagnosis("高血圧症"), make_diagnosis("2型糖尿病")]
        result = analyzer.analyze(diagnoses, [make_visit("2024-05-01")])

        profile = result.profiles[0]
        assert profile.disease_type == "multiple"
        assert profile.disease_names == ("2型糖尿病", "高血圧症")

    def test_unknown_age(self, analyzer):
        result = analyzer.analyze([make_diagnosis("高血圧症")], [make_visit("2024-05-01", birth=None)])
        assert result.profiles[0].age is None

    def test_custom_age_resolver(self):
        analyzer = CohortContinuityAnalyzer(age_resolver=lambda birth, ref: 42)
        result = analyzer.analyze([make_diagnosis("高血圧症")], [make_visit("2024-05-01")])
        assert result.profiles[0].age == 42

    def test_no_lifestyle_diagnoses(self, analyzer):
        result = analyzer.analyze([], [make_visit("2024-05-01")])
        assert result.profiles == []
        assert result.baseline_date is None

    def test_no_visits_in_range(self, analyzer):
        result = analyzer.analyze(
            [make_diagnosis("高血圧症")], [make_visit("2024-05-01")], range_start="2025-01"
        )
        assert result.profiles == []

    def test_diagnosed_patient_without_visits_is_absent(self, analyzer):
        diagnoses = [make_diagnosis("高血圧症", "1"), make_diagnosis("高血圧症", "2")]
        result = analyzer.analyze(diagnoses, [make_visit("2024-05-01", "1")])
        assert len(result.profiles) == 1

    def test_to_dict(self, analyzer):
        result = analyzer.analyze([make_diagnosis("高血圧症")], [make_visit("2024-05-01")])
        data = result.to_dict()
        assert data["patient_count"] == 1
        assert data["patients"][0]["anonymized_id"] == "LS-001"
        assert data["patients"][0]["disease_labels"] == ["高血圧"]
