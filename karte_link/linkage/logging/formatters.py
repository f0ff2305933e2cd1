"""JSON and human-readable log formatters for linkage tracing."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Extra record attributes copied into JSON lines when present
TRACE_FIELDS = (
    "event_type", "session_id", "family", "total", "added", "incoming",
    "months", "kept", "dropped", "record_count", "skipped", "source",
    "matched", "unmatched_visits", "unmatched_reservations",
    "patient_count", "status_counts", "baseline_date", "range_start",
    "duration_ms", "error",
)

# (attribute, label, unit) shown after the summary message
SUMMARY_DETAILS = (
    ("total", "total", ""),
    ("added", "added", ""),
    ("months", "months", ""),
    ("skipped", "skipped", ""),
    ("duration_ms", "duration", "ms"),
)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class JSONLogFormatter(logging.Formatter):
    """One JSON object per trace event, for ``linkage_trace.jsonl``.

    Known trace attributes (``TRACE_FIELDS``) passed through ``extra`` are
    copied to the top level of the object; other extras are ignored.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_extra:
            payload.update(
                (name, getattr(record, name))
                for name in TRACE_FIELDS
                if getattr(record, name, None) is not None
            )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Single-line summary: ``[time] [family] <marker> EVENT: message (details)``."""

    EVENT_SYMBOLS = {
        "MERGE_COMPLETED": "+",
        "QUOTA_FALLBACK": "~",
        "PERSIST_FAILED": "!",
        "RECORDS_SKIPPED": "-",
        "MATCHING_SUMMARY": "=",
        "COHORT_BUILT": "#",
        "REPORT_COMPLETE": "*",
    }

    def __init__(self, use_symbols: bool = True):
        super().__init__()
        self.use_symbols = use_symbols

    def _prefix(self, record: logging.LogRecord) -> str:
        parts = [f"[{datetime.now().strftime('%H:%M:%S.%f')[:-3]}]"]
        family = getattr(record, "family", None)
        if family:
            parts.append(f"[{family}]")
        event_type = getattr(record, "event_type", None)
        if event_type:
            symbol = self.EVENT_SYMBOLS.get(event_type) if self.use_symbols else None
            if symbol:
                parts.append(symbol)
            parts.append(event_type)
        return " ".join(parts)

    def format(self, record: logging.LogRecord) -> str:
        details = [
            f"{label}={getattr(record, name)}{unit}"
            for name, label, unit in SUMMARY_DETAILS
            if getattr(record, name, None) is not None
        ]
        line = f"{self._prefix(record)}: {record.getMessage()}"
        if details:
            line += f" ({', '.join(details)})"
        return line


def format_trace_event(
    event_type: str,
    family: Optional[str] = None,
    **fields: Any
) -> Dict[str, Any]:
    """Build a trace event dict outside of ``logging`` (e.g. for API payloads).

    Args:
        event_type: Event name such as ``MERGE_COMPLETED``
        family: Record family the event concerns, if any
        **fields: Event-specific values

    Returns:
        Event dict with a UTC timestamp
    """
    event: Dict[str, Any] = {"timestamp": _utc_timestamp(), "event_type": event_type}
    if family:
        event["family"] = family
    event.update(fields)
    return event
