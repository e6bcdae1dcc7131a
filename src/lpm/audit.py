"""Append-only audit log of terminated processes."""

import logging
import os
from pathlib import Path

from lpm.models import TerminationRecord

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_LOG = "lpm_log.txt"


class AuditLog:
    """
    Text file holding one line per successful kill.

    The file is only ever opened for appending. Each record is written with a
    single ``write`` on an ``O_APPEND`` descriptor and synced to disk before
    the descriptor is closed, so concurrent writers never interleave and
    entries survive a crash of the writing process.
    """

    def __init__(self, path: str | os.PathLike[str] = DEFAULT_AUDIT_LOG) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: TerminationRecord) -> None:
        """
        Append ``record`` to the log.

        Names that are not valid UTF-8 are written with backslash escapes.

        Raises:
            OSError: If the file cannot be opened, written or synced.
        """
        data = record.to_line().encode("utf-8", errors="backslashreplace")
        if self._path.parent != Path("."):
            self._path.parent.mkdir(parents=True, exist_ok=True)

        fd = os.open(self._path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            written = os.write(fd, data)
            if written != len(data):
                raise OSError(f"short write to {self._path}: {written} of {len(data)} bytes")
            os.fsync(fd)
        finally:
            os.close(fd)
        logger.debug("Appended audit record for PID %d to %s", record.pid, self._path)

    def records(self) -> list[TerminationRecord]:
        """Read back every well-formed record, oldest first."""
        if not self._path.exists():
            return []
        records: list[TerminationRecord] = []
        with open(self._path, encoding="utf-8", errors="replace") as f:
            for lineno, line in enumerate(f, start=1):
                try:
                    records.append(TerminationRecord.from_line(line))
                except ValueError:
                    logger.debug("Skipping malformed audit line %d in %s", lineno, self._path)
        return records
