"""Utility modules: logging, retry and audit helpers."""
from .audit_log import ChangeRecord, ChangeTracker, get_recent_changes, setup_audit_logging
from .connection import CommandResult, with_retry
from .logging_config import (
    PerfStats,
    global_stats,
    perf_logger,
    setup_logging,
    timed,
    timed_section,
    timed_section_sync,
)

__all__ = [
    "ChangeRecord",
    "ChangeTracker",
    "CommandResult",
    "PerfStats",
    "get_recent_changes",
    "global_stats",
    "perf_logger",
    "setup_audit_logging",
    "setup_logging",
    "timed",
    "timed_section",
    "timed_section_sync",
    "with_retry",
]
