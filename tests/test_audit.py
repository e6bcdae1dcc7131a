"""Tests for the append-only audit log."""

import threading
from datetime import datetime

import pytest

from lpm.audit import AuditLog
from lpm.models import TerminationRecord


def make_record(pid: int, name: str = "proc") -> TerminationRecord:
    return TerminationRecord(timestamp=datetime(2024, 5, 17, 13, 45, pid % 60), pid=pid, name=name)


class TestAuditLog:
    """Tests for AuditLog."""

    def test_append_creates_file(self, audit_log):
        audit_log.append(make_record(10, "stress"))

        assert audit_log.path.read_text() == "[2024-05-17 13:45:10] Killed Process: stress (PID: 10)\n"

    def test_append_creates_parent_directory(self, tmp_path):
        log = AuditLog(tmp_path / "var" / "log" / "lpm_log.txt")

        log.append(make_record(1))

        assert log.path.exists()

    def test_reopen_keeps_existing_bytes(self, audit_log):
        """Test appending from a new instance never rewrites earlier entries."""
        for pid in range(1, 4):
            audit_log.append(make_record(pid))
        before = audit_log.path.read_bytes()

        reopened = AuditLog(audit_log.path)
        reopened.append(make_record(4))

        after = reopened.path.read_bytes()
        assert after.startswith(before)
        assert len(after.splitlines()) == 4

    def test_existing_content_is_preserved(self, audit_log):
        audit_log.path.write_text("[2023-01-01 00:00:00] Killed Process: old (PID: 5)\n")

        audit_log.append(make_record(6))

        assert [record.pid for record in audit_log.records()] == [5, 6]

    def test_records_skip_malformed_lines(self, audit_log):
        audit_log.path.write_text(
            "[2023-01-01 00:00:00] Killed Process: old (PID: 5)\n"
            "something else\n"
            "[2023-01-01 00:00:01] Killed Process: new (PID: 6)\n"
        )

        assert [record.name for record in audit_log.records()] == ["old", "new"]

    def test_records_of_missing_file(self, audit_log):
        assert audit_log.records() == []

    def test_append_failure_raises_os_error(self, tmp_path):
        (tmp_path / "file").write_text("")
        log = AuditLog(tmp_path / "file" / "lpm_log.txt")

        with pytest.raises(OSError):
            log.append(make_record(1))

    def test_append_escapes_undecodable_name(self, audit_log):
        record = TerminationRecord(
            timestamp=datetime(2024, 5, 17, 13, 45, 9), pid=7, name="bad\udcffname"
        )

        audit_log.append(record)

        assert audit_log.path.read_bytes() == (
            b"[2024-05-17 13:45:09] Killed Process: bad\\udcffname (PID: 7)\n"
        )

    def test_concurrent_appends_do_not_interleave(self, audit_log):
        """Test records from many threads each land on their own line."""
        def writer(start: int) -> None:
            for pid in range(start, start + 50):
                audit_log.append(make_record(pid, name="x" * 200))

        threads = [threading.Thread(target=writer, args=(i * 1000 + 1,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        lines = audit_log.path.read_text().splitlines()
        assert len(lines) == 200
        assert len(audit_log.records()) == 200
