#!/usr/bin/env python3
"""junos-send command line.

Usage:
    junos-send [-m {c,o,s}] [-f FILE] [--no-diff] [-s] [--report PATH]
    python -m junos_send.cli ...

Environment:
    JUNOS_SEND_USERNAME / JUNOS_SEND_PASSWORD    Skip the credential prompts
    JUNOS_SEND_LOG_LEVEL                         Console log level
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config.settings import SettingsError, load_settings
from .config.work_order import WorkOrder, WorkOrderError, load_work_order
from .engine import (
    ClassificationError,
    DeviceOutcome,
    FleetRunner,
    Mode,
    RunOptions,
    invalid_commands,
    summarize,
)
from .prompts import ask_credentials, ask_yes_no, confirm_commit, force_select
from .utils.audit_log import get_recent_changes, setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

NAME = "Junos Send"

EXIT_OK = 0
EXIT_BAD_INPUT = 1
EXIT_DEVICE_FAILED = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="junos-send",
        description="Load set-style configuration or run show commands on Junos devices over NETCONF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Choose the mode interactively
    junos-send -f change.json

    # Configuration mode, no diff display
    junos-send -m c -f change.json --no-diff

    # Operational mode, save outputs under ./<refID>/
    junos-send -m o -s -f checks.yaml
""",
    )
    parser.add_argument(
        "-m", "--mode",
        choices=["c", "o", "s"],
        default="s",
        type=str.lower,
        help="Config (c), Operational (o), or select interactively (s) (default: s)",
    )
    parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Work order file (JSON or YAML); prompted for when omitted",
    )
    parser.add_argument(
        "-d", "--diff",
        dest="show_diff",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Show the diff of configuration changes before asking to commit",
    )
    parser.add_argument(
        "-s", "--save",
        dest="save_outputs",
        action="store_true",
        help="Save operational command output to <refID>/<device>.txt",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory that holds the <refID> output folder (default: .)",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="YAML settings file (port, timeout, retries, ...)",
    )
    parser.add_argument(
        "--confirm-timeout",
        type=float,
        metavar="SECONDS",
        help="Discard when no commit decision is made in time (default: wait)",
    )
    parser.add_argument(
        "--discard-attempts",
        type=int,
        default=1,
        help="Attempts for discarding a staged change (default: 1)",
    )
    parser.add_argument(
        "--history",
        type=int,
        nargs="?",
        const=20,
        metavar="N",
        help="Show the last N commit/discard decisions from the audit log (default: 20) and exit",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Write a JSON report of the run",
    )
    parser.add_argument(
        "-v", "-V", "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def print_work_order(work_order: WorkOrder) -> None:
    """Show what is about to be sent."""
    rule = "=" * 21
    print(f"Description:\n{rule}\n{work_order.description}\n")
    print(f"Reference:\n{rule}\n{work_order.reference_id}\n")
    print(f"Devices:\n{rule}")
    for address in work_order.device_addresses:
        print(f"\t{address}")
    print(f"Commands:\n{rule}")
    for command in work_order.commands:
        print(f"\t{command}")
    print()


def print_history(audit_dir: str, limit: int) -> None:
    """Print recent commit/discard decisions, most recent first."""
    log_file = Path(audit_dir).expanduser() / "audit.log"
    records = get_recent_changes(str(log_file), limit=limit)
    if not records:
        print(f"No changes recorded in {log_file}")
        return
    for record in records:
        status = "OK" if record.success else f"FAILED ({record.error})"
        print(
            f"{record.timestamp}  {record.device:39s}  {record.reference_id}  "
            f"{record.operation:7s}  {status}  by {record.user}"
        )


def write_report(path: Path, work_order: WorkOrder, mode: Mode, outcomes: list[DeviceOutcome]) -> None:
    report = {
        "reference_id": work_order.reference_id,
        "description": work_order.description,
        "mode": mode.value,
        "summary": summarize(outcomes).to_dict(),
        "devices": [o.to_dict() for o in outcomes],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
    logger.info(f"Report written to {path}")


def log_summary(outcomes: list[DeviceOutcome]) -> None:
    logger.info("=" * 60)
    logger.info("RESULTS")
    logger.info("=" * 60)
    for outcome in outcomes:
        if outcome.failed:
            status = "FAIL"
        elif outcome.mode == Mode.CONFIGURATION:
            status = "COMMITTED" if outcome.committed else "NOT COMMITTED"
        else:
            status = "OK"
        logger.info(f"  {outcome.device}: {status}")
        for error in outcome.errors:
            logger.info(f"    {error.step.value}: {error.message}")

    summary = summarize(outcomes)
    logger.info(f"Total: {summary.total} devices, failed: {summary.failed}")
    logger.info("=" * 60)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"{NAME}\nVer: {__version__}")
        return EXIT_OK

    setup_logging(level=logging.DEBUG if args.verbose else None)

    try:
        settings = load_settings(args.settings)
    except (OSError, SettingsError) as e:
        logger.error(f"Settings problem: {e}")
        return EXIT_BAD_INPUT

    if args.history is not None:
        print_history(settings.audit_dir, args.history)
        return EXIT_OK

    try:
        path = args.file or Path(input("Please provide the file path for input information: ").strip())
        work_order = load_work_order(path)
    except WorkOrderError as e:
        logger.error(str(e))
        return EXIT_BAD_INPUT
    except (EOFError, KeyboardInterrupt):
        return EXIT_INTERRUPTED

    try:
        if args.mode == "s":
            flag = force_select(
                "Please choose from config mode (c) or operational mode (o) (c/o): ", "c", "o"
            )
        else:
            flag = args.mode
        mode = Mode.from_flag(flag)

        # Checked again by the runner; failing here saves a credential prompt
        invalid = invalid_commands(work_order.commands, mode)
        if invalid:
            logger.error(f"Please check the following commands for allowed {mode.value} syntax:")
            for command in invalid:
                logger.error(f"\t{command}")
            return EXIT_BAD_INPUT

        print_work_order(work_order)
        if not ask_yes_no("Continue with sending of commands? (y/n) "):
            logger.warning("Quitting, no commands or config items were sent.")
            return EXIT_OK

        credentials = ask_credentials()
    except (EOFError, KeyboardInterrupt):
        logger.warning("Interrupted, nothing was sent")
        return EXIT_INTERRUPTED

    if mode == Mode.CONFIGURATION:
        audit_file = setup_audit_logging(settings.audit_dir)
        logger.debug(f"Audit log: {audit_file}")

    options = RunOptions(
        show_diff=args.show_diff,
        save_outputs=args.save_outputs,
        output_root=args.output_dir,
        confirm_timeout=args.confirm_timeout,
        discard_attempts=args.discard_attempts,
    )
    runner = FleetRunner(settings, confirm=confirm_commit)

    logger.info(f"Proceeding in {mode.value} mode on {len(work_order.device_addresses)} device(s)")
    try:
        outcomes = asyncio.run(runner.run(work_order, mode, credentials, options))
    except ClassificationError as e:
        logger.error(str(e))
        return EXIT_BAD_INPUT
    except (EOFError, KeyboardInterrupt):
        logger.warning("Run interrupted by user, check devices for staged changes")
        return EXIT_INTERRUPTED

    log_summary(outcomes)
    if args.report:
        write_report(args.report, work_order, mode, outcomes)

    if any(o.failed for o in outcomes):
        return EXIT_DEVICE_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
