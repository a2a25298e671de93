"""Audit logging for committed and discarded configuration changes.

Every commit or discard decision taken on a device is written as one JSON
line, so an operator can later answer "who pushed what, under which
reference, and did it stick".
"""
import json
import logging
import os
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Dedicated audit logger, kept out of the console
audit_logger = logging.getLogger("junos_send.audit")

DEFAULT_AUDIT_DIR = "~/.junos-send"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.junos-send/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
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
    """Record of a commit or discard on one device."""
    timestamp: str
    device: str
    operation: str  # commit, discard
    reference_id: str
    user: str
    success: bool
    commands: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Track and log configuration decisions for a single device."""

    def __init__(self, device: str, reference_id: str, user: str = "unknown"):
        self.device = device
        self.reference_id = reference_id
        self.user = user

    def log_change(
        self,
        operation: str,
        commands: list[str],
        success: bool,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a commit or discard.

        Args:
            operation: "commit" or "discard"
            commands: The staged command set the decision applied to
            success: Whether the device accepted the operation
            error: Error message if it did not

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device=self.device,
            operation=operation,
            reference_id=self.reference_id,
            user=self.user,
            success=success,
            commands=list(commands),
            error=error,
        )
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    device: Optional[str] = None,
    reference_id: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.junos-send/audit.log
        device: Filter by device address
        reference_id: Filter by work-order reference
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if device and record.device != device:
                continue
            if reference_id and record.reference_id != reference_id:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
