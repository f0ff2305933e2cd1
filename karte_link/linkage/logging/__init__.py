"""Logging package for linkage tracing.

Components:
- formatters: JSON and human-readable log formatters
- handlers: Session-based file handlers
- linkage_trace_logger: Structured events for merge, persistence and analysis
"""

from .formatters import (
    JSONLogFormatter,
    HumanReadableFormatter,
    format_trace_event,
)
from .handlers import (
    SessionManager,
    SessionFileHandler,
    LinkageTraceHandler,
    SummaryHandler,
    create_session_id,
    get_sessions_dir,
)
from .linkage_trace_logger import (
    LinkageTraceLogger,
    get_linkage_trace_logger,
    initialize_linkage_trace_logger,
)

__all__ = [
    # Formatters
    "JSONLogFormatter",
    "HumanReadableFormatter",
    "format_trace_event",
    # Handlers
    "SessionManager",
    "SessionFileHandler",
    "LinkageTraceHandler",
    "SummaryHandler",
    "create_session_id",
    "get_sessions_dir",
    # Trace logger
    "LinkageTraceLogger",
    "get_linkage_trace_logger",
    "initialize_linkage_trace_logger",
]
