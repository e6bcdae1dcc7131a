"""Data models for lpm."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    """Immutable point-in-time fact about one process."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count, may be NaN


@dataclass(slots=True, frozen=True)
class Snapshot:
    """
    Immutable enumeration of the processes visible at one moment.

    Entries keep the order the process table was enumerated in. Two snapshots
    taken at different times may disagree about whether a PID exists.
    """

    processes: tuple[ProcessInfo, ...]
    taken_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_processes(
        cls, processes: Iterable[ProcessInfo], taken_at: datetime | None = None
    ) -> "Snapshot":
        """Build a snapshot, keeping the first entry seen for each PID."""
        seen: set[int] = set()
        unique: list[ProcessInfo] = []
        for proc in processes:
            if proc.pid in seen:
                continue
            seen.add(proc.pid)
            unique.append(proc)
        if taken_at is None:
            taken_at = datetime.now()
        return cls(processes=tuple(unique), taken_at=taken_at)

    def __len__(self) -> int:
        return len(self.processes)

    def __iter__(self) -> Iterator[ProcessInfo]:
        return iter(self.processes)

    def get(self, pid: int) -> ProcessInfo | None:
        """Return the entry for ``pid`` or None if it was not running."""
        for proc in self.processes:
            if proc.pid == pid:
                return proc
        return None

    def pids(self) -> set[int]:
        return {proc.pid for proc in self.processes}


@dataclass(slots=True, frozen=True)
class TerminationRecord:
    """Audit entry for one successful kill."""

    timestamp: datetime
    pid: int
    name: str

    def to_line(self) -> str:
        """Render the record as a single newline-terminated audit line."""
        stamp = self.timestamp.strftime(TIMESTAMP_FORMAT)
        # A newline inside a process name would split the record in two
        name = self.name.replace("\r", " ").replace("\n", " ")
        return f"[{stamp}] Killed Process: {name} (PID: {self.pid})\n"

    @classmethod
    def from_line(cls, line: str) -> "TerminationRecord":
        """
        Parse a line produced by ``to_line``.

        Raises:
            ValueError: If the line is not a well-formed audit record.
        """
        line = line.rstrip("\n")
        if not line.startswith("[") or "] Killed Process: " not in line:
            raise ValueError(f"not an audit record: {line!r}")
        stamp, rest = line[1:].split("] Killed Process: ", 1)
        if not rest.endswith(")") or " (PID: " not in rest:
            raise ValueError(f"not an audit record: {line!r}")
        name, pid_text = rest[:-1].rsplit(" (PID: ", 1)
        return cls(
            timestamp=datetime.strptime(stamp, TIMESTAMP_FORMAT),
            pid=int(pid_text),
            name=name,
        )
