"""Access to the operating system's process table."""

import logging
from collections.abc import Iterable
from typing import Protocol

import psutil

from lpm.errors import SignalFailed, SnapshotUnavailable
from lpm.models import ProcessInfo

logger = logging.getLogger(__name__)


class ProcessSource(Protocol):
    """Read and signal interface over a process table."""

    def read_processes(self) -> Iterable[ProcessInfo]:
        """
        Enumerate the process table once.

        Raises:
            SnapshotUnavailable: If the table cannot be read at all.
        """
        ...

    def kill(self, pid: int) -> None:
        """
        Send a force-kill signal to ``pid``.

        Raises:
            SignalFailed: If the OS refuses or the process is already gone.
        """
        ...


class PsutilProcessSource:
    """
    Process table backed by psutil.

    psutil computes ``cpu_percent`` against the previous call on the same
    cached ``Process`` object, so every process reports 0.0 the first time it
    is seen. Call ``prime()`` and wait a little before the first real read to
    get meaningful figures.
    """

    ATTRS = ["pid", "name", "cpu_percent"]

    def prime(self) -> None:
        """Establish the CPU time baseline for all current processes."""
        try:
            for _ in psutil.process_iter(attrs=self.ATTRS):
                pass
        except psutil.Error as exc:
            raise SnapshotUnavailable(str(exc)) from exc

    def read_processes(self) -> list[ProcessInfo]:
        processes: list[ProcessInfo] = []
        try:
            for proc in psutil.process_iter(attrs=self.ATTRS):
                try:
                    info = proc.info
                    cpu = info.get("cpu_percent")
                    processes.append(
                        ProcessInfo(
                            pid=info["pid"],
                            name=info.get("name") or "",
                            cpu_percent=float(cpu) if cpu is not None else 0.0,
                        )
                    )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    # Died mid-read, access denied, or zombie
                    continue
        except (psutil.Error, OSError) as exc:
            raise SnapshotUnavailable(f"cannot read process table: {exc}") from exc

        logger.debug("Read %d processes", len(processes))
        return processes

    def kill(self, pid: int) -> None:
        try:
            psutil.Process(pid).kill()
        except psutil.ZombieProcess as exc:
            raise SignalFailed(pid, "process is a zombie") from exc
        except psutil.NoSuchProcess as exc:
            raise SignalFailed(pid, "no such process") from exc
        except psutil.AccessDenied as exc:
            raise SignalFailed(pid, "permission denied") from exc
        except (psutil.Error, OSError) as exc:
            raise SignalFailed(pid, str(exc)) from exc
