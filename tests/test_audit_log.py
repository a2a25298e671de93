"""Tests for the change audit log."""
import json

import pytest

from junos_send.utils.audit_log import (
    ChangeRecord,
    ChangeTracker,
    audit_logger,
    get_recent_changes,
    setup_audit_logging,
)


@pytest.fixture
def audit_file(tmp_path):
    """Audit log in a temporary directory."""
    path = setup_audit_logging(str(tmp_path / "audit"))
    yield path
    for handler in list(audit_logger.handlers):
        handler.close()
        audit_logger.removeHandler(handler)


class TestChangeRecord:
    """Tests for ChangeRecord serialization."""

    def test_json_roundtrip(self):
        record = ChangeRecord(
            timestamp="2026-01-13T10:00:00+00:00",
            device="10.0.0.1",
            operation="commit",
            reference_id="CHG-1",
            user="admin",
            success=True,
            commands=["set system host-name r1"],
        )

        line = record.to_json()

        assert "\n" not in line
        assert ChangeRecord.from_json(line) == record


class TestChangeTracker:
    """Tests for ChangeTracker."""

    def test_setup_creates_directory(self, audit_file):
        assert audit_file.parent.is_dir()
        assert audit_file.name == "audit.log"

    def test_log_change(self, audit_file):
        tracker = ChangeTracker("10.0.0.1", "CHG-1", user="admin")

        record = tracker.log_change("discard", ["set a"], True)

        assert record.device == "10.0.0.1"
        lines = audit_file.read_text().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["operation"] == "discard"

    def test_password_never_logged(self, audit_file):
        tracker = ChangeTracker("10.0.0.1", "CHG-1", user="admin")
        tracker.log_change("commit", ["set a"], True)

        assert "secret" not in audit_file.read_text()


class TestGetRecentChanges:
    """Tests for reading the audit log back."""

    def test_most_recent_first(self, audit_file):
        for ref in ("CHG-1", "CHG-2", "CHG-3"):
            ChangeTracker("10.0.0.1", ref).log_change("commit", [], True)

        records = get_recent_changes(str(audit_file))

        assert [r.reference_id for r in records] == ["CHG-3", "CHG-2", "CHG-1"]

    def test_filters_and_limit(self, audit_file):
        ChangeTracker("10.0.0.1", "CHG-1").log_change("commit", [], True)
        ChangeTracker("10.0.0.2", "CHG-1").log_change("commit", [], False, "commit check failed")
        ChangeTracker("10.0.0.2", "CHG-2").log_change("discard", [], True)

        assert len(get_recent_changes(str(audit_file), device="10.0.0.2")) == 2
        assert len(get_recent_changes(str(audit_file), reference_id="CHG-1")) == 2
        [latest] = get_recent_changes(str(audit_file), limit=1)
        assert latest.reference_id == "CHG-2"

    def test_malformed_lines_skipped(self, tmp_path):
        log_file = tmp_path / "audit.log"
        log_file.write_text('not json\n{"device": "x"}\n\n')

        assert get_recent_changes(str(log_file)) == []

    def test_missing_file(self, tmp_path):
        assert get_recent_changes(str(tmp_path / "missing.log")) == []
