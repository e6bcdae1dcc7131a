"""Confirmed termination of a single process."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from lpm.audit import AuditLog
from lpm.errors import AuditWriteFailed, InvalidArgument, SignalFailed
from lpm.models import TerminationRecord
from lpm.monitor import SystemSnapshot

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class TerminationOutcome(Enum):
    """How a termination request ended."""

    KILLED = "killed"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"
    SIGNAL_FAILED = "signal_failed"


@dataclass(slots=True, frozen=True)
class TerminationResult:
    """Result of ``TerminationController.terminate``."""

    outcome: TerminationOutcome
    pid: int
    name: str | None = None
    record: TerminationRecord | None = None
    error: SignalFailed | None = None
    audit_error: AuditWriteFailed | None = None

    @property
    def succeeded(self) -> bool:
        """True when the kill signal was delivered, whatever the audit log did."""
        return self.outcome is TerminationOutcome.KILLED

    @property
    def message(self) -> str:
        """Human-readable summary of the outcome."""
        if self.outcome is TerminationOutcome.KILLED:
            text = f"Killed process '{self.name}' (PID: {self.pid})"
            if self.audit_error is not None:
                text += f" but the audit log was not updated: {self.audit_error}"
            return text
        if self.outcome is TerminationOutcome.NOT_FOUND:
            return f"No process found with PID {self.pid}"
        if self.outcome is TerminationOutcome.CANCELLED:
            return f"Kill cancelled for process '{self.name}' (PID: {self.pid})"
        return f"Failed to kill process with PID {self.pid}: {self.error.reason}"


def confirm_prompt(name: str, pid: int) -> str:
    return f"Do you want to kill process '{name}' [PID: {pid}]?"


def validate_pid(target_id: int) -> int:
    """
    Check that ``target_id`` can name a process.

    Raises:
        InvalidArgument: If it is not a positive integer.
    """
    if isinstance(target_id, bool) or not isinstance(target_id, int):
        raise InvalidArgument(f"PID must be an integer, got {target_id!r}")
    if target_id <= 0:
        raise InvalidArgument(f"PID must be positive, got {target_id}")
    return target_id


def parse_pid(text: str) -> int:
    """
    Parse operator input into a PID.

    Raises:
        InvalidArgument: If ``text`` is not a positive decimal integer.
    """
    text = text.strip()
    if not text.isdecimal():
        raise InvalidArgument("Invalid PID input!")
    return validate_pid(int(text))


class TerminationController:
    """
    Runs the confirm, signal, log sequence for one process.

    The target is always re-resolved against a fresh snapshot right before the
    operator is asked, so a PID seen in an older listing that has since been
    reused is shown with its current name. Success means the OS accepted the
    kill signal; the controller does not wait for the process to exit.
    """

    def __init__(
        self,
        snapshotter: SystemSnapshot,
        audit_log: AuditLog,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._snapshotter = snapshotter
        self._audit_log = audit_log
        self._clock = clock

    def terminate(
        self,
        target_id: int,
        name_hint: str | None,
        confirm: ConfirmFn,
    ) -> TerminationResult:
        """
        Kill ``target_id`` after ``confirm`` approves it.

        Args:
            target_id: PID to kill.
            name_hint: Name the caller last saw for this PID, if any.
            confirm: Called with a prompt; returns True to go ahead. May block.

        Raises:
            InvalidArgument: If ``target_id`` is not a positive integer.
            SnapshotUnavailable: If the fresh snapshot cannot be taken.
        """
        pid = validate_pid(target_id)

        snapshot = self._snapshotter.acquire()
        proc = snapshot.get(pid)
        if proc is None:
            logger.info("PID %d not found at termination time", pid)
            return TerminationResult(TerminationOutcome.NOT_FOUND, pid)

        if name_hint is not None and name_hint != proc.name:
            logger.warning(
                "PID %d is now '%s', was '%s' when listed", pid, proc.name, name_hint
            )

        if not confirm(confirm_prompt(proc.name, pid)):
            logger.info("Kill of '%s' (PID %d) cancelled by operator", proc.name, pid)
            return TerminationResult(TerminationOutcome.CANCELLED, pid, proc.name)

        try:
            self._snapshotter.source.kill(pid)
        except SignalFailed as exc:
            logger.warning("Kill of '%s' (PID %d) failed: %s", proc.name, pid, exc.reason)
            return TerminationResult(
                TerminationOutcome.SIGNAL_FAILED, pid, proc.name, error=exc
            )

        record = TerminationRecord(timestamp=self._clock(), pid=pid, name=proc.name)
        logger.info("Killed '%s' (PID %d)", proc.name, pid)

        audit_error = None
        try:
            self._audit_log.append(record)
        except (OSError, ValueError) as exc:
            audit_error = AuditWriteFailed(str(self._audit_log.path), exc)
            logger.warning("%s", audit_error)

        return TerminationResult(
            TerminationOutcome.KILLED,
            pid,
            proc.name,
            record=record,
            audit_error=audit_error,
        )
