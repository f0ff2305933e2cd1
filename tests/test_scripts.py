"""Tests for the import and analysis command line tools."""

import json
import sys

import pandas as pd

from karte_link.linkage.snapshot_store import SnapshotStore
from karte_link.scripts import import_snapshot, run_analysis


def write_json(path, rows):
    path.write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
    return path


class TestImportSnapshot:
    """Tests for the import CLI."""

    def test_read_rows_from_csv(self, tmp_path):
        path = tmp_path / "visits.csv"
        path.write_text(
            "dateIso,visitType,patientNumber,points\n2024-05-13,再診,12,\n",
            encoding="utf-8",
        )
        rows = import_snapshot.read_rows(path)
        assert rows == [{"dateIso": "2024-05-13", "visitType": "再診", "patientNumber": "12", "points": None}]

    def test_import_json(self, tmp_path, monkeypatch, capsys):
        source = write_json(tmp_path / "karte.json", [
            {"dateIso": "2024-05-13", "visitType": "再診", "patientNumber": "1"},
            {"dateIso": "2024-05-14", "visitType": "初診", "patientNumber": "2"},
        ])
        data_dir = tmp_path / "snapshot"
        monkeypatch.setattr(sys, "argv", [
            "karte-link-import", "visits", str(source), "--data-dir", str(data_dir),
        ])

        assert import_snapshot.main() == 0
        assert "2 new, 2 total" in capsys.readouterr().out
        assert len(SnapshotStore(data_dir).load_records("visits")) == 2

    def test_unreadable_file(self, tmp_path, monkeypatch):
        source = tmp_path / "broken.json"
        source.write_text("{not json", encoding="utf-8")
        monkeypatch.setattr(sys, "argv", ["karte-link-import", "visits", str(source)])
        assert import_snapshot.main() == 1


class TestRunAnalysis:
    """Tests for the analysis CLI."""

    def test_report_and_csv_export(self, tmp_path, monkeypatch, capsys):
        data_dir = tmp_path / "snapshot"
        store = SnapshotStore(data_dir)
        store.set_item("clinic-analytics/diagnosis/v1", json.dumps([{
            "startDate": "2023-01-01",
            "diseaseName": "高血圧症",
            "category": "lifestyle-disease",
            "patientNumber": "1",
        }]))
        store.set_item("clinic-analytics/karte-records/v1", json.dumps([
            {"dateIso": "2024-05-13", "visitType": "再診", "patientNumber": "1"},
        ]))

        export_dir = tmp_path / "exports"
        monkeypatch.setattr(sys, "argv", [
            "karte-link-analyze", "--data-dir", str(data_dir), "--export-csv", str(export_dir),
        ])
        assert run_analysis.main() == 0

        report = json.loads(capsys.readouterr().out)
        assert report["cohort"]["patient_count"] == 1

        patients = pd.read_csv(export_dir / "lifestyle_patients.csv", encoding="utf-8-sig")
        assert list(patients["anonymized_id"]) == ["LS-001"]
        assert (export_dir / "disease_stats.csv").exists()
        assert (export_dir / "slots.csv").exists()
