"""Command line entry point for lpm."""

import argparse
import logging
import sys
import time

from lpm.audit import AuditLog
from lpm.config import Settings, load_settings
from lpm.control import TerminationController, parse_pid
from lpm.errors import LpmError
from lpm.models import Snapshot
from lpm.monitor import SystemSnapshot
from lpm.ranking import above_threshold, top_n
from lpm.source import PsutilProcessSource

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings, interactive: bool) -> None:
    """
    Send lpm log records to a file, stderr, or nowhere.

    The full-screen shell owns the terminal, so without a log file its
    records are dropped rather than written over the screen.
    """
    if settings.log_file:
        handler: logging.Handler = logging.FileHandler(settings.log_file, encoding="utf-8")
    elif interactive:
        handler = logging.NullHandler()
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("lpm")
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())


def sampled_snapshot(source: PsutilProcessSource, sample: float) -> Snapshot:
    """Snapshot with CPU usage measured over ``sample`` seconds."""
    source.prime()
    if sample > 0:
        time.sleep(sample)
    return SystemSnapshot(source).acquire()


def ask_yes_no(prompt: str) -> bool:
    """Confirmation on stdin. Anything but y/yes is a no."""
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_top(args: argparse.Namespace, settings: Settings) -> int:
    snapshot = sampled_snapshot(PsutilProcessSource(), args.sample)
    processes = top_n(snapshot, settings.top_n)
    print(f"Top {settings.top_n} processes by CPU usage:")
    for proc in processes:
        print(f"[PID: {proc.pid}] {proc.name} - {proc.cpu_percent:.2f}% CPU")
    return 0


def cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    snapshot = sampled_snapshot(PsutilProcessSource(), args.sample)
    hot = above_threshold(snapshot, settings.threshold)
    for proc in hot:
        print(
            f"High CPU Usage Detected: [PID: {proc.pid}] {proc.name} - "
            f"{proc.cpu_percent:.2f}% CPU"
        )
    if not hot:
        print(f"No process above {settings.threshold:.1f}% CPU")
    return 0


def cmd_kill(args: argparse.Namespace, settings: Settings) -> int:
    pid = parse_pid(args.pid)
    controller = TerminationController(
        SystemSnapshot(PsutilProcessSource()), AuditLog(settings.audit_log)
    )
    confirm = (lambda prompt: True) if args.yes else ask_yes_no
    result = controller.terminate(pid, None, confirm)
    if result.audit_error is not None:
        print(result.message, file=sys.stderr)
    else:
        print(result.message)
    return 0 if result.succeeded else 1


def cmd_log(args: argparse.Namespace, settings: Settings) -> int:
    for record in AuditLog(settings.audit_log).records():
        sys.stdout.write(record.to_line())
    return 0


def cmd_ui(args: argparse.Namespace, settings: Settings) -> int:
    from lpm.app import LpmApp

    LpmApp(settings).run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lpm",
        description="List, watch and kill processes by CPU usage.",
    )
    parser.add_argument("--config", help="YAML settings file (default: $LPM_CONFIG)")
    parser.add_argument("--audit-log", help="file that records every kill")
    parser.add_argument("--log-file", help="write diagnostic logs to this file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    parser.set_defaults(func=cmd_ui)
    sub = parser.add_subparsers(dest="command")

    ui = sub.add_parser("ui", help="interactive process table (default)")
    ui.add_argument("-n", "--top", type=int, dest="top_n", help="rows to show")
    ui.add_argument("-t", "--threshold", type=float, help="CPU percent to flag")
    ui.add_argument("--poll-rate", type=float, help="seconds between refreshes")
    ui.set_defaults(func=cmd_ui)

    top = sub.add_parser("top", help="print the top processes by CPU usage")
    top.add_argument("-n", "--top", type=int, dest="top_n", help="number of processes")
    top.add_argument("--sample", type=float, default=0.5, help="CPU sampling interval")
    top.set_defaults(func=cmd_top)

    check = sub.add_parser("check", help="print processes above the CPU threshold")
    check.add_argument("-t", "--threshold", type=float, help="CPU percent")
    check.add_argument("--sample", type=float, default=0.5, help="CPU sampling interval")
    check.set_defaults(func=cmd_check)

    kill = sub.add_parser("kill", help="kill a process after confirmation")
    kill.add_argument("pid", help="PID of the process to kill")
    kill.add_argument("-y", "--yes", action="store_true", help="do not ask for confirmation")
    kill.set_defaults(func=cmd_kill)

    log = sub.add_parser("log", help="print the kill audit log")
    log.set_defaults(func=cmd_log)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the lpm command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(
            args.config,
            top_n=getattr(args, "top_n", None),
            threshold=getattr(args, "threshold", None),
            poll_rate=getattr(args, "poll_rate", None),
            audit_log=args.audit_log,
            log_file=args.log_file,
            log_level=args.log_level,
        )
    except LpmError as exc:
        print(f"lpm: {exc}", file=sys.stderr)
        return 2

    configure_logging(settings, interactive=args.command in (None, "ui"))

    try:
        return args.func(args, settings)
    except LpmError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"lpm: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
