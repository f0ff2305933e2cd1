"""Per-run log directories for import and analysis traces.

A run (one CLI import, one API process) writes its trace events into
``LOG_SESSIONS_DIR/<session id>/`` so consecutive imports can be diffed.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .. import config

TRACE_LOG_NAME = "linkage_trace.jsonl"
SUMMARY_LOG_NAME = "summary.log"


def get_sessions_dir() -> Path:
    """Directory holding one subdirectory per run, created on demand."""
    sessions_dir = config.LOG_SESSIONS_DIR
    sessions_dir.mkdir(parents=True, exist_ok=True)
    return sessions_dir


def create_session_id(label: Optional[str] = None) -> str:
    """Timestamped id such as ``2024-06-01_09-30-00`` or ``import_2024-06-01_09-30-00``."""
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return f"{label}_{stamp}" if label else stamp


class SessionManager:
    """Process-wide holder of the active run directory."""

    _instance: Optional["SessionManager"] = None

    def __init__(self):
        self.session_id: Optional[str] = None
        self.session_dir: Optional[Path] = None

    @classmethod
    def get_instance(cls) -> "SessionManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the active run; the next ``get_instance`` starts fresh."""
        cls._instance = None

    @property
    def active(self) -> bool:
        return self.session_dir is not None

    def initialize(self, session_id: Optional[str] = None) -> str:
        """Open the run directory once; later calls return the same id."""
        if self.active:
            return self.session_id

        self.session_id = session_id or create_session_id()
        self.session_dir = get_sessions_dir() / self.session_id
        self.session_dir.mkdir(parents=True, exist_ok=True)
        return self.session_id

    def get_log_path(self, log_name: str) -> Path:
        """Path of a log file inside the active run directory.

        Raises:
            RuntimeError: If no run directory has been opened
        """
        if not self.active:
            raise RuntimeError("No logging session; call initialize() first")
        return self.session_dir / log_name


class SessionFileHandler(logging.FileHandler):
    """FileHandler bound to a file in the active run directory."""

    def __init__(self, log_name: str, delay: bool = False):
        manager = SessionManager.get_instance()
        manager.initialize()
        self.log_name = log_name
        super().__init__(
            filename=str(manager.get_log_path(log_name)),
            mode="a",
            encoding="utf-8",
            delay=delay,
        )


class LinkageTraceHandler(SessionFileHandler):
    """JSONL trace of merge, persistence and analysis events."""

    def __init__(self):
        super().__init__(TRACE_LOG_NAME)


class SummaryHandler(SessionFileHandler):
    """Human-readable one-line-per-event summary."""

    def __init__(self):
        super().__init__(SUMMARY_LOG_NAME)
