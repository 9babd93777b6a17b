"""
Deadline sweep entry point for the external scheduler (cron, systemd timer, ...).

Run once per tick:
    python sweep.py --once
Or keep running:
    python sweep.py --loop --interval 60
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from config import DB_PATH, LOG_LEVEL, SWEEP_INTERVAL_SECONDS

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("wagr.sweep")

from infrastructure.service_container import ServiceConfig, ServiceContainer  # noqa: E402


def build_container(db_path: str) -> ServiceContainer:
    container = ServiceContainer(ServiceConfig(db_path=db_path))
    container.initialize()
    return container


def run_loop(container: ServiceContainer, interval: int, max_runs: int | None = None) -> int:
    """Sweep every ``interval`` seconds. Returns the number of failed sweeps."""
    failures = 0
    runs = 0
    while max_runs is None or runs < max_runs:
        report = container.sweep_service.run_once()
        if not report.ok:
            failures += 1
        runs += 1
        if max_runs is None or runs < max_runs:
            time.sleep(interval)
    return failures


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Refund, resolve and settle wagers and quizzes past their deadline.")
    parser.add_argument("--db", default=DB_PATH, help="Path to SQLite DB (default: DB_PATH or wagr_ledger.db)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single sweep and exit (default)")
    mode.add_argument("--loop", action="store_true", help="Keep sweeping every --interval seconds")
    parser.add_argument(
        "--interval",
        type=int,
        default=SWEEP_INTERVAL_SECONDS,
        help=f"Seconds between sweeps in --loop mode (default: {SWEEP_INTERVAL_SECONDS})",
    )
    args = parser.parse_args(argv)

    if args.interval <= 0:
        parser.error("--interval must be positive")

    container = build_container(args.db)

    if not args.loop:
        report = container.sweep_service.run_once()
        for instance_type, instance_id, reason in report.failed:
            print(f"FAILED {instance_type} {instance_id}: {reason}", file=sys.stderr)
        return 0 if report.ok else 1

    logger.info(f"Sweeping {args.db} every {args.interval}s")
    try:
        run_loop(container, args.interval)
    except KeyboardInterrupt:
        logger.info("Sweep loop stopped by user (Ctrl+C)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
