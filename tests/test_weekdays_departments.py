"""Unit tests for weekday buckets, holidays and department labels."""

import json

from karte_link.linkage.departments import (
    classify_department_display_name,
    department_segment,
    departments_match,
    normalize_department_label,
)
from karte_link.linkage.diseases import categorize_disease_name, classify_disease_type
from karte_link.linkage import normalizers
from karte_link.linkage.normalizers import HolidayCalendar, default_holiday_calendar
from karte_link.linkage.weekdays import classify_weekday, weekday_label


class TestClassifyWeekday:
    """Tests for the 8-way weekday classifier."""

    def test_monday_is_zero(self):
        assert classify_weekday("2024-05-13") == 0

    def test_sunday_is_six(self):
        assert classify_weekday("2024-05-19") == 6

    def test_registered_holiday(self):
        holidays = HolidayCalendar(["2024-05-03"])
        assert classify_weekday("2024-05-03", holidays) == 7
        assert weekday_label(7) == "祝日"

    def test_new_year_period_without_calendar(self):
        """Dec 27 through Jan 3 is a holiday even with no calendar."""
        assert classify_weekday("2024-12-27") == 7
        assert classify_weekday("2025-01-03") == 7
        assert classify_weekday("2024-12-26") == 3
        assert classify_weekday("2025-01-04") == 5

    def test_time_suffix_ignored(self):
        assert classify_weekday("2024-05-13T09:30:00") == 0

    def test_unparseable_date(self):
        assert classify_weekday("2024-02-30") is None


class TestHolidayCalendar:
    """Tests for HolidayCalendar loading."""

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "holidays.json"
        path.write_text(json.dumps(["2024-05-03", "2024-05-06"]), encoding="utf-8")
        calendar = HolidayCalendar.from_file(path)
        assert len(calendar) == 2
        assert calendar.is_holiday("2024-05-06")

    def test_from_text_file(self, tmp_path):
        path = tmp_path / "holidays.txt"
        path.write_text("2024-05-03\n\n2024-05-04\n", encoding="utf-8")
        calendar = HolidayCalendar.from_file(path)
        assert calendar.is_holiday("2024-05-04T00:00:00")
        assert not calendar.is_holiday("2024-05-05")

    def test_country_public_holidays(self):
        calendar = HolidayCalendar(country="JP")
        assert calendar.is_holiday("2024-05-03")
        assert calendar.is_holiday("2024-09-16T10:00:00")
        assert not calendar.is_holiday("2024-05-07")
        assert classify_weekday("2024-05-03", calendar) == 7

    def test_file_dates_extend_country_holidays(self, tmp_path):
        path = tmp_path / "closures.txt"
        path.write_text("2024-05-07\n", encoding="utf-8")
        calendar = HolidayCalendar.from_file(path, country="JP")
        assert calendar.is_holiday("2024-05-07")
        assert calendar.is_holiday("2024-05-03")

    def test_default_calendar_uses_configured_country(self, monkeypatch):
        monkeypatch.setattr(normalizers, "HOLIDAYS_FILE", None)
        monkeypatch.setattr(normalizers, "HOLIDAY_COUNTRY", "JP")
        assert default_holiday_calendar().is_holiday("2024-01-08")

        monkeypatch.setattr(normalizers, "HOLIDAY_COUNTRY", "")
        assert not default_holiday_calendar().is_holiday("2024-01-08")


class TestDepartments:
    """Tests for department label handling."""

    def test_normalize_strips_brackets_and_case(self):
        assert normalize_department_label("内科・外科外来（大岩医師）") == "内科外科外来大岩医師"
        assert normalize_department_label("Online-AGA") == "onlineaga"

    def test_general_department(self):
        assert classify_department_display_name("内科・外科外来（大岩医師）") == "総合診療"
        assert classify_department_display_name("内科・外科外来") == "総合診療"

    def test_fever_department(self):
        assert classify_department_display_name("発熱・風邪症状外来") == "発熱外来"

    def test_online_consultations(self):
        assert classify_department_display_name("オンライン診療（保険）") == "オンライン診療（保険）"
        assert classify_department_display_name("オンライン診療 AGA") == "オンライン診療（自費）"

    def test_foreign_patients(self):
        assert classify_department_display_name("Inbound 外来") == "外国人自費"

    def test_internal_and_surgery(self):
        assert classify_department_display_name("内科（午後）") == "内科"
        assert classify_department_display_name("整形外科") == "外科"

    def test_empty_and_other(self):
        assert classify_department_display_name("  ") == "診療科未分類"
        assert classify_department_display_name(" 皮膚科 ") == "皮膚科"

    def test_departments_match_by_containment(self):
        assert departments_match("内科", "内科")
        assert departments_match("発熱外来", "発熱")
        assert not departments_match("内科", "外科")
        assert not departments_match("", "内科")

    def test_segments(self):
        assert department_segment("内科・外科外来") == "general"
        assert department_segment("風邪症状外来") == "fever"
        assert department_segment("皮膚科") is None


class TestDiseases:
    """Tests for disease-name classification."""

    def test_single_type(self):
        assert classify_disease_type(["本態性高血圧症"]) == ("hypertension", ["高血圧"])

    def test_lipid_keywords(self):
        disease_type, labels = classify_disease_type(["高ｺﾚｽﾃﾛｰﾙ血症"])
        assert disease_type == "lipid"
        assert labels == ["脂質異常症"]

    def test_whitespace_ignored(self):
        assert classify_disease_type(["2型 糖尿 病"])[0] == "diabetes"

    def test_two_types_are_multiple(self):
        disease_type, labels = classify_disease_type(["高血圧症", "2型糖尿病"])
        assert disease_type == "multiple"
        assert labels == ["高血圧", "糖尿病"]

    def test_no_type_is_multiple_other(self):
        assert classify_disease_type(["高尿酸血症"]) == ("multiple", ["その他"])

    def test_same_type_twice_is_single(self):
        assert classify_disease_type(["高血圧症", "腎性高血圧"])[0] == "hypertension"

    def test_categorize_disease_name(self):
        assert categorize_disease_name("脂質異常症") == "lifestyle-disease"
        assert categorize_disease_name("右足関節捻挫") == "surgery"
        assert categorize_disease_name("接触皮膚炎") == "dermatology"
        assert categorize_disease_name("急性上気道炎") == "other"
