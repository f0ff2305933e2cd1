"""Persisted snapshot of the merged record families.

The dashboard kept its snapshot in browser storage, which has a hard size
quota. ``SnapshotStore`` keeps the same key layout on disk and enforces a
byte capacity so the visit family can fall back to shorter retention
windows when the full history no longer fits.
"""

import base64
import json
import logging
import threading
import zlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import (
    COMPRESSED_STORAGE_KEYS,
    FAMILY_RESERVATIONS,
    FAMILY_STORAGE_KEYS,
    FAMILY_VISITS,
    QUOTA_RETENTION_MONTHS,
    SNAPSHOT_DIR,
    STORAGE_KEY_RESERVATIONS_DIFF,
    STORAGE_QUOTA_BYTES,
)
from .logging.linkage_trace_logger import get_linkage_trace_logger
from .records import SnapshotFormatError, VisitRecord, records_from_rows, records_to_rows
from .source_merger import MergeResult, get_merger, prune_to_recent_months

logger = logging.getLogger(__name__)


class StorageQuotaExceededError(Exception):
    """Raised when a write would push the store past its byte capacity."""

    def __init__(self, key: str, required: int, capacity: int):
        super().__init__(
            f"Storage quota exceeded writing {key}: {required} bytes > {capacity}"
        )
        self.key = key
        self.required = required
        self.capacity = capacity


@dataclass
class PersistOutcome:
    """Result of persisting the visit family through the retry ladder."""
    saved: bool
    pruned_months: Optional[int]
    records: List[VisitRecord]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "saved": self.saved,
            "pruned_months": self.pruned_months,
            "record_count": len(self.records),
        }


def _file_name(key: str) -> str:
    return key.replace("/", "__") + ".json"


class SnapshotStore:
    """Key/value store of JSON payloads with a total byte capacity."""

    def __init__(self, root_dir: Path = SNAPSHOT_DIR, capacity_bytes: int = STORAGE_QUOTA_BYTES):
        """Initialize the store.

        Args:
            root_dir: Directory holding one file per storage key
            capacity_bytes: Maximum total size of all stored payloads
        """
        self.root_dir = Path(root_dir)
        self.capacity_bytes = capacity_bytes
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.root_dir / _file_name(key)

    def used_bytes(self, exclude: Optional[str] = None) -> int:
        """Total stored bytes, optionally ignoring one key."""
        if not self.root_dir.exists():
            return 0
        skip = _file_name(exclude) if exclude else None
        return sum(
            path.stat().st_size
            for path in self.root_dir.glob("*.json")
            if path.name != skip
        )

    def set_item(self, key: str, value: str) -> None:
        """Write a payload, compressing keys configured for compression.

        Raises:
            StorageQuotaExceededError: If the write would exceed capacity
        """
        if key in COMPRESSED_STORAGE_KEYS:
            value = base64.b64encode(zlib.compress(value.encode("utf-8"))).decode("ascii")
        data = value.encode("utf-8")

        with self._lock:
            required = self.used_bytes(exclude=key) + len(data)
            if required > self.capacity_bytes:
                raise StorageQuotaExceededError(key, required, self.capacity_bytes)
            self.root_dir.mkdir(parents=True, exist_ok=True)
            self._path(key).write_bytes(data)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        data = path.read_bytes()
        if key in COMPRESSED_STORAGE_KEYS:
            return zlib.decompress(base64.b64decode(data)).decode("utf-8")
        return data.decode("utf-8")

    def remove_item(self, key: str) -> None:
        with self._lock:
            path = self._path(key)
            if path.exists():
                path.unlink()

    # ------------------------------------------------------------------
    # Family helpers
    # ------------------------------------------------------------------

    def load_records(self, family: str) -> List[Any]:
        """Load a family's records, dropping rows that no longer parse.

        Raises:
            SnapshotFormatError: If the stored payload is not a JSON array
        """
        data_key, _ = _storage_keys(family)
        raw = self.get_item(data_key)
        if raw is None:
            return []
        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(f"Stored {family} snapshot is not valid JSON: {e}") from e
        records, skipped = records_from_rows(family, rows)
        if skipped:
            get_linkage_trace_logger().log_records_skipped(family, skipped, source="snapshot")
        return records

    def save_records(self, family: str, records: Sequence[Any], updated_at: Optional[str] = None) -> None:
        """Write a family's records and its last-updated timestamp.

        Raises:
            StorageQuotaExceededError: If the payload does not fit
        """
        data_key, updated_key = _storage_keys(family)
        self.set_item(data_key, json.dumps(records_to_rows(records), ensure_ascii=False))
        self.set_item(updated_key, updated_at or datetime.now().isoformat())

    def last_updated(self, family: str) -> Optional[str]:
        _, updated_key = _storage_keys(family)
        return self.get_item(updated_key)

    def clear_family(self, family: str) -> None:
        data_key, updated_key = _storage_keys(family)
        self.remove_item(data_key)
        self.remove_item(updated_key)
        if family == FAMILY_RESERVATIONS:
            self.remove_item(STORAGE_KEY_RESERVATIONS_DIFF)

    def save_reservation_diff(self, added: Sequence[Any]) -> None:
        """Store the newly added reservations; an empty diff clears the entry."""
        if not added:
            self.remove_item(STORAGE_KEY_RESERVATIONS_DIFF)
            return
        self.set_item(
            STORAGE_KEY_RESERVATIONS_DIFF,
            json.dumps(records_to_rows(added), ensure_ascii=False),
        )

    def load_reservation_diff(self) -> List[Any]:
        raw = self.get_item(STORAGE_KEY_RESERVATIONS_DIFF)
        if raw is None:
            return []
        records, _ = records_from_rows(FAMILY_RESERVATIONS, json.loads(raw))
        return records


def _storage_keys(family: str):
    try:
        return FAMILY_STORAGE_KEYS[family]
    except KeyError:
        raise ValueError(f"Unknown record family: {family}") from None


def save_visits_with_quota_fallback(
    store: SnapshotStore,
    records: Sequence[VisitRecord],
    updated_at: Optional[str] = None,
    retention_months: Sequence[int] = QUOTA_RETENTION_MONTHS,
) -> PersistOutcome:
    """Persist visits, retrying with shorter month windows on quota errors.

    Args:
        store: Snapshot store to write to
        records: Full merged visit set
        updated_at: Timestamp recorded next to the payload
        retention_months: Month windows tried after the full set fails

    Returns:
        PersistOutcome; on total failure ``saved`` is False and ``records``
        is the full in-memory set
    """
    trace = get_linkage_trace_logger()
    records = list(records)

    try:
        store.save_records(FAMILY_VISITS, records, updated_at)
        return PersistOutcome(saved=True, pruned_months=None, records=records)
    except StorageQuotaExceededError as e:
        logger.warning(f"Full visit snapshot does not fit: {e}")

    for months in retention_months:
        candidate = prune_to_recent_months(records, months)
        try:
            store.save_records(FAMILY_VISITS, candidate, updated_at)
        except StorageQuotaExceededError:
            logger.info(f"Visit snapshot pruned to {months} months still exceeds quota")
            continue
        trace.log_quota_fallback(
            family=FAMILY_VISITS,
            months=months,
            kept=len(candidate),
            dropped=len(records) - len(candidate),
        )
        return PersistOutcome(saved=True, pruned_months=months, records=candidate)

    trace.log_persist_failed(FAMILY_VISITS, record_count=len(records))
    return PersistOutcome(saved=False, pruned_months=None, records=records)


def import_records(
    store: SnapshotStore,
    family: str,
    incoming: Sequence[Any],
    updated_at: Optional[str] = None,
):
    """Merge an imported batch into the stored family and persist it.

    Visits go through the quota retry ladder; other families are written
    directly and a quota error propagates to the caller.

    Returns:
        Tuple of (MergeResult, PersistOutcome or None)
    """
    updated_at = updated_at or datetime.now().isoformat()
    existing = store.load_records(family)
    result: MergeResult = get_merger(family).merge(existing, incoming)
    get_linkage_trace_logger().log_merge_completed(
        family, total=len(result.merged), added=len(result.added), incoming=len(incoming)
    )

    if family == FAMILY_VISITS:
        outcome = save_visits_with_quota_fallback(store, result.merged, updated_at)
        return result, outcome

    store.save_records(family, result.merged, updated_at)
    if family == FAMILY_RESERVATIONS:
        store.save_reservation_diff(result.added)
    return result, None
