#!/usr/bin/env python3
"""Merge parsed export files into the stored snapshot.

Input files hold rows already in snapshot format: a JSON array of objects,
or a CSV whose header uses the snapshot field names (dateIso, visitType,
patientNumber, ...).

Usage:
    # Import two months of karte visits
    python -m karte_link.scripts.import_snapshot visits karte_2024-05.json karte_2024-06.json

    # Import reservations from a CSV into a specific data directory
    python -m karte_link.scripts.import_snapshot reservations bookings.csv --data-dir ./data
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
from dotenv import load_dotenv

from karte_link.linkage.config import LOG_FORMAT, RECORD_FAMILIES, SNAPSHOT_DIR, STORAGE_QUOTA_BYTES
from karte_link.linkage.logging import create_session_id, initialize_linkage_trace_logger
from karte_link.linkage.records import SnapshotFormatError, records_from_rows
from karte_link.linkage.snapshot_store import SnapshotStore, StorageQuotaExceededError, import_records

logger = logging.getLogger(__name__)


def read_rows(path: Path) -> List[Dict[str, Any]]:
    """Read snapshot rows from a JSON or CSV file."""
    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        df = df.replace({"": None})
        return df.to_dict(orient="records")

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def main() -> int:
    """Main entry point for the import CLI."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Merge parsed export files into the karte-link snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("family", choices=RECORD_FAMILIES, help="Record family to import")
    parser.add_argument("files", nargs="+", type=Path, help="JSON or CSV files in snapshot format")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=SNAPSHOT_DIR,
        help=f"Snapshot directory (default: {SNAPSHOT_DIR})",
    )
    parser.add_argument(
        "--quota-bytes",
        type=int,
        default=STORAGE_QUOTA_BYTES,
        help="Snapshot capacity in bytes",
    )
    parser.add_argument("--trace", action="store_true", help="Write a session trace under the log dir")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if args.trace:
        session_id = initialize_linkage_trace_logger(create_session_id(f"import-{args.family}"))
        logger.info(f"Trace session: {session_id}")

    store = SnapshotStore(args.data_dir, args.quota_bytes)

    for path in args.files:
        try:
            rows = read_rows(path)
            incoming, skipped = records_from_rows(args.family, rows)
        except (OSError, json.JSONDecodeError, SnapshotFormatError) as e:
            logger.error(f"Cannot read {path}: {e}")
            return 1

        try:
            result, outcome = import_records(store, args.family, incoming)
        except StorageQuotaExceededError as e:
            logger.error(f"{path}: {e}")
            return 1

        print(f"{path.name}: {len(incoming)} rows ({skipped} skipped), "
              f"{len(result.added)} new, {len(result.merged)} total")
        if outcome is not None and outcome.pruned_months:
            print(f"   Snapshot pruned to the latest {outcome.pruned_months} months")
        elif outcome is not None and not outcome.saved:
            print("   WARNING: snapshot could not be saved; data kept in memory only")

    return 0


if __name__ == "__main__":
    sys.exit(main())
