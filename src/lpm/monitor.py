"""Snapshot acquisition and background polling for lpm."""

import logging
import threading
from datetime import datetime
from queue import Queue

from lpm.errors import SnapshotUnavailable
from lpm.models import Snapshot
from lpm.source import ProcessSource

logger = logging.getLogger(__name__)


class SystemSnapshot:
    """
    Takes point-in-time snapshots of a process source.

    Each call to ``acquire`` is a single read of the process table. The OS
    table keeps changing while it is read, so a snapshot is consistent with
    itself but not atomic across processes.
    """

    def __init__(self, source: ProcessSource) -> None:
        self._source = source

    @property
    def source(self) -> ProcessSource:
        return self._source

    def acquire(self) -> Snapshot:
        """
        Read the process table once.

        Raises:
            SnapshotUnavailable: If the source cannot be read.
        """
        taken_at = datetime.now()
        try:
            processes = self._source.read_processes()
            return Snapshot.from_processes(processes, taken_at=taken_at)
        except SnapshotUnavailable:
            raise
        except OSError as exc:
            raise SnapshotUnavailable(f"cannot read process table: {exc}") from exc


class SystemMonitor:
    """
    Background poller that publishes snapshots to a thread-safe Queue.

    Runs in a separate daemon thread. A failed read is logged and the loop
    carries on with the next poll.
    """

    def __init__(
        self,
        snapshotter: SystemSnapshot,
        update_queue: Queue[Snapshot],
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            snapshotter: Where snapshots come from.
            update_queue: Thread-safe queue to push snapshots to.
            poll_rate: How often to poll the system (in seconds). Default 2.0s.
        """
        self._snapshotter = snapshotter
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def refresh(self) -> None:
        """Ask the polling thread to take a snapshot now."""
        self._wake_event.set()

    def poll_once(self) -> bool:
        """Take one snapshot and queue it. Returns False if the read failed."""
        try:
            snapshot = self._snapshotter.acquire()
        except SnapshotUnavailable as exc:
            logger.warning("Snapshot failed: %s", exc)
            return False
        self._queue.put(snapshot)
        return True

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self.poll_once()

            # Wait for poll_rate seconds, a refresh request, or stop
            self._wake_event.wait(timeout=self._poll_rate)
            self._wake_event.clear()
