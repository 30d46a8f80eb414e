"""Audit logging for applied command batches.

One JSON line per apply (or dry run) in a dedicated rotating file:
device, record identity, commands, outcome.
"""
import getpass
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

audit_logger = logging.getLogger("rtx_state.audit")

DEFAULT_AUDIT_DIR = "~/.rtx-state"
AUDIT_FILE_NAME = "audit.log"
MAX_OUTPUT_CHARS = 1000


def default_audit_file() -> str:
    return os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), AUDIT_FILE_NAME)


def setup_audit_logging(log_dir: Optional[str] = None) -> str:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.rtx-state/

    Returns:
        Path of the audit log file
    """
    if log_dir is None:
        log_dir = os.path.expanduser(DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = os.path.join(log_dir, AUDIT_FILE_NAME)

    audit_logger.setLevel(logging.INFO)
    for handler in list(audit_logger.handlers):
        handler.close()
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON document per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of one applied (or previewed) command batch."""
    timestamp: str
    device_id: str
    operation: str  # apply, delete
    record: str     # Identity of the record being changed
    user: str
    dry_run: bool
    success: bool
    commands: list[str] = field(default_factory=list)
    confirmed: bool = False
    output: str = ""
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Write ChangeRecords for one device."""

    def __init__(self, device_id: str, user: Optional[str] = None):
        self.device_id = device_id
        self.user = user or _current_user()

    def log_change(
        self,
        operation: str,
        record: str,
        commands: list[str],
        success: bool,
        dry_run: bool = False,
        confirmed: bool = False,
        output: str = "",
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a command batch.

        Returns:
            The ChangeRecord that was logged
        """
        change = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device_id=self.device_id,
            operation=operation,
            record=record,
            user=self.user,
            dry_run=dry_run,
            success=success,
            commands=list(commands),
            confirmed=confirmed,
            output=output[:MAX_OUTPUT_CHARS] if output else "",
            error=error,
        )
        audit_logger.info(change.to_json())
        return change


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def get_recent_changes(
    log_file: Optional[str] = None,
    device_id: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.rtx-state/audit.log
        device_id: Filter by device ID
        operation: Filter by operation type
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = default_audit_file()
    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                change = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines
            if device_id and change.device_id != device_id:
                continue
            if operation and change.operation != operation:
                continue
            records.append(change)

    return list(reversed(records[-limit:]))
