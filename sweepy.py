#!/usr/bin/env python3
"""Sweepy - find and safely remove stale node_modules folders."""

import argparse
import queue
import sys
from pathlib import Path
from typing import Optional

from sweepy_config import SweepyError, load_config
from sweepy_console import ProgressConsumer, SweepyConsole, setup_logging
from sweepy_reports import ReportStore
from sweepy_staleness import Strategy

__version__ = "1.0.0"


def cmd_scan(args, config, ui: SweepyConsole) -> int:
    from sweepy_scout import SweepyScout

    store = ReportStore(config)
    config.ensure_dirs()
    store.rotate_all()

    scout = SweepyScout(config, store=store)
    strategy = Strategy.LEGACY if args.legacy else Strategy.DEFAULT

    consumer = None
    events = None
    if ui.console.is_terminal:
        events = queue.Queue(maxsize=256)
        consumer = ProgressConsumer(ui, events)
        consumer.start()
    try:
        summary = scout.scan(
            roots=[Path(r) for r in args.roots] or None,
            days=args.days,
            strategy=strategy,
            exclude=args.exclude,
            out=args.out,
            progress=events,
        )
    finally:
        if consumer:
            consumer.stop()

    ui.show_scan_summary(summary)
    return 0


def cmd_clean(args, config, ui: SweepyConsole) -> int:
    from sweepy_clean import Cleaner

    store = ReportStore(config)
    config.ensure_dirs()
    store.rotate_all()

    cleaner = Cleaner(config, store=store, ui=ui)
    cleaner.run(
        report=args.report,
        force=args.force,
        what_if=args.what_if,
        interactive=args.interactive,
    )
    # Per-path failures are reported in the summary, not through the exit code
    return 0


def cmd_schedule(args, config, ui: SweepyConsole) -> int:
    from sweepy_schedule import TaskInstaller

    installer = TaskInstaller(config.home)
    if args.action == "install":
        entry = installer.install(days=args.days or config.days, every_days=args.every_days, at=args.at)
        ui.print_success("Scheduled scan installed:")
        ui.print(entry, markup=False)
    elif args.action == "remove":
        if installer.uninstall():
            ui.print_success("Scheduled scan removed.")
        else:
            ui.print("No scheduled scan was installed.")
    else:
        entry = installer.status()
        if entry:
            ui.print(entry, markup=False)
        else:
            ui.print("No scheduled scan installed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--home", type=Path, help="Working directory (default: $SWEEPY_HOME or ~/.sweepy)")
    common.add_argument("--config", "-c", type=Path, help="Config file path (default: <home>/config.yaml)")
    common.add_argument("--verbose", "-v", action="store_true", help="Show debug output")

    parser = argparse.ArgumentParser(
        prog="sweepy",
        description="Find stale node_modules folders, review the report, then delete them safely.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", parents=[common], help="Scan for stale folders and write a report")
    scan.add_argument("roots", nargs="*", help="Directories to search (default: configured roots)")
    scan.add_argument("--days", "-d", type=int, help="Stale after this many days without changes")
    scan.add_argument("--out", "-o", type=Path, help="Write the report here instead of <home>/reports")
    scan.add_argument("--legacy", action="store_true",
                      help="Use folder access times instead of lock files (less reliable)")
    scan.add_argument("--exclude", "-x", action="extend", nargs="+", default=[], metavar="PATTERN",
                      help="Glob of paths to leave alone (repeatable)")
    scan.set_defaults(func=cmd_scan)

    clean = subparsers.add_parser("clean", parents=[common], help="Delete the folders listed in a report")
    clean.add_argument("--report", "-r", type=Path, help="Report file (default: latest report)")
    clean.add_argument("--force", "-f", action="store_true", help="Skip the DELETE confirmation prompt")
    clean.add_argument("--what-if", action="store_true", help="Preview only, delete nothing")
    clean.add_argument("--interactive", "-i", action="store_true", help="Pick which folders to delete")
    clean.set_defaults(func=cmd_clean)

    schedule = subparsers.add_parser("schedule", parents=[common], help="Manage the periodic scan")
    schedule.add_argument("action", choices=["install", "remove", "status"])
    schedule.add_argument("--every-days", type=int, default=7, help="Run every N days (default: 7)")
    schedule.add_argument("--at", default="09:00", help="Time of day HH:MM (default: 09:00)")
    schedule.add_argument("--days", "-d", type=int, help="Staleness threshold for the scheduled scan")
    schedule.set_defaults(func=cmd_schedule)

    return parser


def main(argv: Optional[list] = None, ui: Optional[SweepyConsole] = None) -> int:
    args = build_parser().parse_args(argv)
    ui = ui or SweepyConsole()
    setup_logging(ui.console, verbose=args.verbose)

    try:
        if getattr(args, "days", None) is not None and args.days < 0:
            raise SweepyError("--days must not be negative")
        config = load_config(home=args.home, config_path=args.config)
        return args.func(args, config, ui)
    except SweepyError as e:
        ui.print_error(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        ui.print_error("Interrupted. Deletions already made are recorded in the audit log.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
