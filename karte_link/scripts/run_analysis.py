#!/usr/bin/env python3
"""Compute the linkage report for the stored snapshot.

Usage:
    # Full report as JSON
    python -m karte_link.scripts.run_analysis

    # Restrict the visit window and export the cohort tables as CSV
    python -m karte_link.scripts.run_analysis --start 2024-01 --end 2024-06 --export-csv exports/
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from karte_link.linkage.config import (
    FAMILY_DIAGNOSES,
    FAMILY_RESERVATIONS,
    FAMILY_VISITS,
    HOLIDAY_COUNTRY,
    LOG_FORMAT,
    SNAPSHOT_DIR,
    STORAGE_QUOTA_BYTES,
)
from karte_link.linkage.normalizers import HolidayCalendar, default_holiday_calendar
from karte_link.linkage.pipeline import AnalysisInputs, LinkageReport, compute_all
from karte_link.linkage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


def export_csv(report: LinkageReport, output_dir: Path) -> None:
    """Write the cohort and distribution tables as UTF-8 (BOM) CSV files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    distributions = report.distributions.to_dict()

    patients = pd.DataFrame([profile.to_dict() for profile in report.cohort.profiles])
    if not patients.empty:
        patients["disease_names"] = patients["disease_names"].str.join(" / ")
        patients["disease_labels"] = patients["disease_labels"].str.join(" / ")
    patients.to_csv(output_dir / "lifestyle_patients.csv", index=False, encoding="utf-8-sig")

    for name in ("days_since_last", "visit_counts"):
        pd.DataFrame(distributions[name]).to_csv(
            output_dir / f"{name}.csv", index=False, encoding="utf-8-sig"
        )

    for name in ("age_groups", "disease_stats"):
        pd.json_normalize(distributions[name]).to_csv(
            output_dir / f"{name}.csv", index=False, encoding="utf-8-sig"
        )

    slots = []
    for segment, insight in report.slots.segments.items():
        for slot in insight.slots:
            row = slot.to_dict()
            row.pop("age_breakdown")
            row.pop("category_counts")
            slots.append({"segment": segment, **row})
    pd.DataFrame(slots).to_csv(output_dir / "slots.csv", index=False, encoding="utf-8-sig")

    logger.info(f"Exported CSV tables to {output_dir}")


def main() -> int:
    """Main entry point for the analysis CLI."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Compute the karte-link linkage report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--data-dir", type=Path, default=SNAPSHOT_DIR, help="Snapshot directory")
    parser.add_argument("--start", help="Window start (YYYY-MM or YYYY-MM-DD)")
    parser.add_argument("--end", help="Window end (YYYY-MM or YYYY-MM-DD)")
    parser.add_argument("--holidays", type=Path, help="File listing holiday dates")
    parser.add_argument("--export-csv", type=Path, metavar="DIR", help="Also write CSV tables to DIR")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)

    store = SnapshotStore(args.data_dir, STORAGE_QUOTA_BYTES)
    if args.holidays:
        holidays = HolidayCalendar.from_file(args.holidays, country=HOLIDAY_COUNTRY or None)
    else:
        holidays = default_holiday_calendar()

    inputs = AnalysisInputs(
        visits=store.load_records(FAMILY_VISITS),
        reservations=store.load_records(FAMILY_RESERVATIONS),
        diagnoses=store.load_records(FAMILY_DIAGNOSES),
        range_start=args.start,
        range_end=args.end,
        holidays=holidays,
    )
    report = compute_all(inputs)

    print(json.dumps(report.to_dict(), indent=args.indent, ensure_ascii=False, default=str))

    if args.export_csv:
        export_csv(report, args.export_csv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
