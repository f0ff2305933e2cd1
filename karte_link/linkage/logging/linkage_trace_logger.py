"""Specialized logger for merge, persistence and analysis events.

Events are plain ``logging`` records carrying structured extras, so they
reach whatever handlers the application configured; ``initialize_session``
additionally tees them into per-session JSONL and summary files.
"""

import logging
from typing import Dict, Optional

from .formatters import HumanReadableFormatter, JSONLogFormatter
from .handlers import LinkageTraceHandler, SessionManager, SummaryHandler


class LinkageTraceLogger:
    """Structured event logger for the linkage pipeline.

    Summary lines go to a ``<name>.summary`` child logger that does not
    propagate, so they only land in the session's ``summary.log``.
    """

    def __init__(self, name: str = "karte_link.linkage_trace", with_summary_file: bool = True):
        self.logger = logging.getLogger(name)
        self.summary_logger = logging.getLogger(f"{name}.summary")
        self.summary_logger.propagate = False
        self.with_summary_file = with_summary_file
        self.session_id: Optional[str] = None

    @staticmethod
    def _attach(logger: logging.Logger, handler: logging.Handler,
                formatter: logging.Formatter, level: int) -> None:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)
        logger.setLevel(level)

    def initialize_session(self, session_id: Optional[str] = None) -> str:
        """Tee events into the session directory; idempotent.

        Returns:
            The active session id
        """
        if self.session_id is None:
            self.session_id = SessionManager.get_instance().initialize(session_id)
            self._attach(self.logger, LinkageTraceHandler(), JSONLogFormatter(), logging.DEBUG)
            if self.with_summary_file:
                self._attach(self.summary_logger, SummaryHandler(), HumanReadableFormatter(), logging.INFO)
        return self.session_id

    def _log(self, level: int, message: str, event_type: str, **fields) -> None:
        extra: Dict[str, object] = dict(fields, event_type=event_type)
        self.logger.log(level, message, extra=extra)
        if self.session_id is not None and self.with_summary_file:
            self.summary_logger.log(level, message, extra=extra)

    def log_merge_completed(self, family: str, total: int, added: int, incoming: int) -> None:
        self._log(
            logging.INFO,
            f"Merged {incoming} incoming {family} records",
            event_type="MERGE_COMPLETED",
            family=family,
            total=total,
            added=added,
            incoming=incoming,
        )

    def log_quota_fallback(self, family: str, months: int, kept: int, dropped: int) -> None:
        self._log(
            logging.WARNING,
            f"Storage quota exceeded; kept the latest {months} months of {family}",
            event_type="QUOTA_FALLBACK",
            family=family,
            months=months,
            kept=kept,
            dropped=dropped,
        )

    def log_persist_failed(self, family: str, record_count: int) -> None:
        self._log(
            logging.WARNING,
            f"Could not persist {family} at any retention window; keeping in memory only",
            event_type="PERSIST_FAILED",
            family=family,
            record_count=record_count,
        )

    def log_records_skipped(self, family: str, skipped: int, source: str) -> None:
        self._log(
            logging.INFO,
            f"Skipped {skipped} malformed {family} rows from {source}",
            event_type="RECORDS_SKIPPED",
            family=family,
            skipped=skipped,
            source=source,
        )

    def log_matching_summary(
        self, matched: int, unmatched_visits: int, unmatched_reservations: int
    ) -> None:
        self._log(
            logging.INFO,
            f"Matched {matched} visits to reservations",
            event_type="MATCHING_SUMMARY",
            matched=matched,
            unmatched_visits=unmatched_visits,
            unmatched_reservations=unmatched_reservations,
        )

    def log_cohort_built(
        self,
        patient_count: int,
        status_counts: Dict[str, int],
        baseline_date: Optional[str],
        range_start: Optional[str],
    ) -> None:
        self._log(
            logging.INFO,
            f"Built lifestyle cohort of {patient_count} patients",
            event_type="COHORT_BUILT",
            patient_count=patient_count,
            status_counts=status_counts,
            baseline_date=baseline_date,
            range_start=range_start,
        )

    def log_report_complete(self, duration_ms: int) -> None:
        self._log(
            logging.INFO,
            "Linkage report computed",
            event_type="REPORT_COMPLETE",
            duration_ms=duration_ms,
        )


# Process-wide logger used by the linkage modules
_linkage_trace_logger: Optional[LinkageTraceLogger] = None


def get_linkage_trace_logger() -> LinkageTraceLogger:
    """Get the global trace logger instance."""
    global _linkage_trace_logger
    if _linkage_trace_logger is None:
        _linkage_trace_logger = LinkageTraceLogger()
    return _linkage_trace_logger


def initialize_linkage_trace_logger(session_id: Optional[str] = None) -> str:
    """Initialize session files for the global trace logger.

    Returns:
        The session ID
    """
    return get_linkage_trace_logger().initialize_session(session_id)
