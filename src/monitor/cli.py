"""CLI entry-point for the security monitor.

Usage examples
--------------
# Run guards and monitors in the foreground (Ctrl+C / SIGTERM to stop):
security-monitor run --config config/monitor.yaml

# Print the current stats snapshot as JSON:
security-monitor stats

# Administrative unblock (shared Redis store):
security-monitor unblock-user alice
security-monitor unblock-ip 203.0.113.7

# One-off scan of a log file, all lines:
security-monitor scan logs/security/app.log --lines 0

# Hash every critical file and report problems:
security-monitor check-integrity
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path

from src.monitor.engine import SecurityEngine
from src.shared.config_loader import Settings
from src.shared.logger import setup_logging

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="security-monitor",
        description="Brute-force / API abuse guard and security event monitor",
    )
    p.add_argument(
        "--config",
        default=None,
        help="YAML file with pattern rules, critical files and limits. "
             "Environment variables override it.",
    )
    p.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default: SECURITY_LOG_LEVEL or INFO",
    )

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Start monitors and block until interrupted.")
    sub.add_parser("stats", help="Print the stats snapshot as JSON.")

    u = sub.add_parser("unblock-user", help="Remove an account lockout.")
    u.add_argument("username")
    i = sub.add_parser("unblock-ip", help="Remove an IP block.")
    i.add_argument("addr")

    s = sub.add_parser("scan", help="Scan one log file against the pattern rules.")
    s.add_argument("file")
    s.add_argument(
        "--lines",
        type=int,
        default=None,
        help="Read only the last N lines (0 = whole file). Default: tail_lines setting",
    )

    sub.add_parser("check-integrity", help="Hash critical files and report problems.")
    return p


def _run(engine: SecurityEngine) -> int:
    stop = threading.Event()

    def _on_signal(signum: int, _frame: object) -> None:
        log.info("Received signal %d, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _on_signal)
    engine.start()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        engine.shutdown()
    return 0


def _scan(engine: SecurityEngine, file: str, lines: int | None) -> int:
    path = Path(file)
    if not path.is_file():
        log.error("Log file not found: %s", path)
        return 2
    if lines is not None:
        engine.log_monitor.tail_lines = lines if lines > 0 else sys.maxsize
    alerts = engine.log_monitor.scan_file(path)
    engine.dispatcher.shutdown(wait=True)
    for alert in alerts:
        print(alert.to_json())
    log.info("Scan of %s raised %d alert(s)", path, len(alerts))
    return 0


def _check_integrity(engine: SecurityEngine) -> int:
    engine.integrity.baseline()
    problems = engine.integrity.verify_all()
    engine.dispatcher.shutdown(wait=True)
    report = {
        "status": engine.integrity.status(),
        "files": {
            path: {"hash": e.last_hash, "missing": e.missing, "severity": e.severity}
            for path, e in engine.integrity.entries().items()
        },
    }
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 1 if problems else 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(config_path=args.config)
    level = args.log_level or settings.log_level
    setup_logging(level, log_file=settings.monitor_log_path if args.command == "run" else None)

    engine = SecurityEngine(settings)
    if args.command == "run":
        return _run(engine)
    if args.command == "scan":
        return _scan(engine, args.file, args.lines)
    if args.command == "check-integrity":
        return _check_integrity(engine)

    try:
        if args.command == "stats":
            print(json.dumps(engine.get_stats(), indent=2, ensure_ascii=False))
        elif args.command == "unblock-user":
            engine.unblock_user(args.username)
            print(f"Unblocked user {args.username}")
        elif args.command == "unblock-ip":
            engine.unblock_ip(args.addr)
            print(f"Unblocked IP {args.addr}")
    finally:
        engine.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
