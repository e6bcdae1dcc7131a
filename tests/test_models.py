"""Tests for lpm data models."""

from datetime import datetime

import pytest

from lpm.models import ProcessInfo, Snapshot, TerminationRecord


def test_process_info_creation():
    """Test ProcessInfo dataclass creation."""
    info = ProcessInfo(pid=123, name="test_process", cpu_percent=50.0)

    assert info.pid == 123
    assert info.name == "test_process"
    assert info.cpu_percent == 50.0


def test_process_info_is_frozen():
    """Test that ProcessInfo is immutable (frozen)."""
    info = ProcessInfo(pid=1, name="init", cpu_percent=0.1)

    with pytest.raises(AttributeError):
        info.pid = 999


def test_process_info_uses_slots():
    """Test that ProcessInfo uses __slots__ for memory efficiency."""
    info = ProcessInfo(pid=1, name="init", cpu_percent=0.1)

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(info, "__dict__")


class TestSnapshot:
    """Tests for the Snapshot collection."""

    def test_keeps_enumeration_order(self, processes):
        """Test entries come back in the order they were read."""
        snapshot = Snapshot.from_processes(processes)

        assert [proc.pid for proc in snapshot] == [1, 2, 3]
        assert len(snapshot) == 3

    def test_duplicate_pid_keeps_first(self):
        """Test a PID reported twice in one read keeps its first entry."""
        snapshot = Snapshot.from_processes(
            [
                ProcessInfo(pid=7, name="first", cpu_percent=1.0),
                ProcessInfo(pid=7, name="second", cpu_percent=2.0),
            ]
        )

        assert len(snapshot) == 1
        assert snapshot.get(7).name == "first"

    def test_get_missing_pid(self, processes):
        """Test looking up a PID that was not running."""
        snapshot = Snapshot.from_processes(processes)

        assert snapshot.get(99) is None
        assert snapshot.get(2).name == "b"

    def test_pids(self, processes):
        snapshot = Snapshot.from_processes(processes)

        assert snapshot.pids() == {1, 2, 3}

    def test_taken_at(self):
        """Test the acquisition time is kept."""
        when = datetime(2024, 1, 2, 3, 4, 5)
        snapshot = Snapshot.from_processes([], taken_at=when)

        assert snapshot.taken_at == when
        assert len(snapshot) == 0

    def test_snapshot_is_frozen(self, processes):
        snapshot = Snapshot.from_processes(processes)

        with pytest.raises(AttributeError):
            snapshot.processes = ()


class TestTerminationRecord:
    """Tests for audit line rendering and parsing."""

    def test_to_line_format(self):
        """Test the fixed audit line format."""
        record = TerminationRecord(
            timestamp=datetime(2024, 5, 17, 13, 45, 9), pid=4242, name="stress"
        )

        assert record.to_line() == "[2024-05-17 13:45:09] Killed Process: stress (PID: 4242)\n"

    def test_newline_in_name_stays_on_one_line(self):
        """Test a name with a newline cannot split the record."""
        record = TerminationRecord(
            timestamp=datetime(2024, 5, 17, 13, 45, 9), pid=1, name="bad\nname"
        )

        line = record.to_line()
        assert line.count("\n") == 1
        assert line.endswith("\n")

    def test_from_line(self):
        """Test parsing a rendered line back into a record."""
        record = TerminationRecord.from_line(
            "[2024-05-17 13:45:09] Killed Process: my app (v2) (PID: 77)\n"
        )

        assert record.timestamp == datetime(2024, 5, 17, 13, 45, 9)
        assert record.pid == 77
        assert record.name == "my app (v2)"

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "garbage\n",
            "[2024-05-17 13:45:09] Started Process: x (PID: 1)\n",
            "[2024-05-17 13:45:09] Killed Process: x (PID: abc)\n",
            "[yesterday] Killed Process: x (PID: 1)\n",
        ],
    )
    def test_from_line_rejects_malformed(self, line):
        with pytest.raises(ValueError):
            TerminationRecord.from_line(line)
