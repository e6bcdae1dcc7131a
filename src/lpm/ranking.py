"""Pure ranking and filtering over a process snapshot."""

import math
from numbers import Real

from lpm.errors import InvalidArgument
from lpm.models import ProcessInfo, Snapshot


def cpu_sort_key(proc: ProcessInfo) -> tuple[bool, float, int]:
    """
    Total-order key for "highest CPU first".

    NaN usage sorts after every real value. Equal usage is ordered by PID
    ascending, which keeps the result independent of enumeration order.
    """
    usage = proc.cpu_percent
    if math.isnan(usage):
        return (True, 0.0, proc.pid)
    return (False, -usage, proc.pid)


def top_n(snapshot: Snapshot, n: int) -> list[ProcessInfo]:
    """
    Return the ``n`` processes using the most CPU, highest first.

    Raises:
        InvalidArgument: If ``n`` is not a non-negative integer.
    """
    if isinstance(n, bool) or not isinstance(n, int):
        raise InvalidArgument(f"process count must be an integer, got {n!r}")
    if n < 0:
        raise InvalidArgument(f"process count must not be negative, got {n}")
    if n == 0:
        return []
    return sorted(snapshot, key=cpu_sort_key)[:n]


def _check_threshold(threshold: float) -> None:
    if isinstance(threshold, bool) or not isinstance(threshold, Real):
        raise InvalidArgument(f"threshold must be a number, got {threshold!r}")
    if not math.isfinite(threshold):
        raise InvalidArgument(f"threshold must be finite, got {threshold!r}")


def above_threshold(snapshot: Snapshot, threshold: float) -> list[ProcessInfo]:
    """
    Return processes using strictly more than ``threshold`` percent CPU.

    Entries keep snapshot order. NaN usage never matches.

    Raises:
        InvalidArgument: If ``threshold`` is not a finite number.
    """
    _check_threshold(threshold)
    return [proc for proc in snapshot if proc.cpu_percent > threshold]


def count_above_threshold(snapshot: Snapshot, threshold: float) -> int:
    _check_threshold(threshold)
    return sum(1 for proc in snapshot if proc.cpu_percent > threshold)
