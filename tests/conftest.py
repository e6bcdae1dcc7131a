"""Shared fixtures for lpm tests."""

from datetime import datetime

import pytest

from lpm.audit import AuditLog
from lpm.errors import SignalFailed, SnapshotUnavailable
from lpm.models import ProcessInfo


class FakeProcessSource:
    """In-memory process table."""

    def __init__(self, processes=()) -> None:
        self.processes: list[ProcessInfo] = list(processes)
        self.killed: list[int] = []
        self.reads = 0
        self.primed = 0
        self.read_error: str | None = None
        self.kill_error: str | None = None

    def prime(self) -> None:
        self.primed += 1

    def read_processes(self) -> list[ProcessInfo]:
        self.reads += 1
        if self.read_error is not None:
            raise SnapshotUnavailable(self.read_error)
        return list(self.processes)

    def kill(self, pid: int) -> None:
        if self.kill_error is not None:
            raise SignalFailed(pid, self.kill_error)
        if pid not in {proc.pid for proc in self.processes}:
            raise SignalFailed(pid, "no such process")
        self.killed.append(pid)
        self.processes = [proc for proc in self.processes if proc.pid != pid]


@pytest.fixture
def processes() -> list[ProcessInfo]:
    return [
        ProcessInfo(pid=1, name="a", cpu_percent=50.0),
        ProcessInfo(pid=2, name="b", cpu_percent=90.0),
        ProcessInfo(pid=3, name="c", cpu_percent=10.0),
    ]


@pytest.fixture
def fake_source(processes) -> FakeProcessSource:
    return FakeProcessSource(processes)


@pytest.fixture
def audit_log(tmp_path) -> AuditLog:
    return AuditLog(tmp_path / "lpm_log.txt")


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 5, 17, 13, 45, 9)
