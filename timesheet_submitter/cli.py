"""
Command-line interface for the timesheet submission engine.

This module provides the CLI using argparse. It plays the caller's role
around a batch: it loads pending rows, fetches credentials, runs the
quarter-routed submission and writes the outcome back to the CSV.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from .config import AutomationConfig
from .csv_loader import CSVLoadError
from .form_config import get_quarter_for_date
from .logging_utils import setup_logging, get_logger, log_section, log_error, log_warning
from .models import ProgressEvent
from .quarter_processing import process_rows_by_quarter, summarize_plan
from .stores import CsvRowStore, EnvCredentialStore


CREDENTIAL_SERVICE = 'timesheet'


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='timesheet_submitter',
        description='Submit timesheet rows to the quarterly Smartsheet forms',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dry run - validate CSV and show which form each row goes to
  python -m timesheet_submitter submit --csv data/october.csv --dry-run

  # Submit pending rows (credentials from TIMESHEET_EMAIL / TIMESHEET_PASSWORD)
  python -m timesheet_submitter submit --csv data/october.csv

  # Submit in headless mode against a local mock form
  python -m timesheet_submitter submit --csv data/october.csv --headless --mock-url http://localhost:3000

  # Verbose output for debugging
  python -m timesheet_submitter submit --csv data/october.csv --verbose
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    submit_parser = subparsers.add_parser(
        'submit',
        help='Submit pending rows from a CSV file'
    )

    submit_parser.add_argument(
        '--csv',
        type=str,
        required=True,
        metavar='PATH',
        help='Path to CSV file with timesheet rows'
    )

    submit_parser.add_argument(
        '--headless',
        action='store_true',
        help='Run browser in headless mode (no GUI)'
    )

    submit_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Parse CSV and show plan without opening browser'
    )

    submit_parser.add_argument(
        '--mock-url',
        type=str,
        metavar='URL',
        help='Submit to a local mock form instead of the quarterly forms'
    )

    submit_parser.add_argument(
        '--retry-delay',
        type=float,
        metavar='S',
        help='Seconds to wait before re-clicking submit (Level 1 retry)'
    )

    submit_parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )

    return parser


def validate_args(args: argparse.Namespace) -> bool:
    """
    Validate command-line arguments.

    Args:
        args: Parsed arguments

    Returns:
        True if valid, False otherwise
    """
    logger = get_logger()

    if not Path(args.csv).exists():
        log_error(f"CSV file not found: {args.csv}", logger)
        return False

    if args.retry_delay is not None and args.retry_delay < 0:
        log_error("--retry-delay cannot be negative", logger)
        return False

    return True


def build_config(args: argparse.Namespace) -> AutomationConfig:
    """
    Build the automation configuration from the environment and arguments.

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    config = AutomationConfig.from_env()
    if args.headless:
        config.headless = True
    if args.retry_delay is not None:
        config.submit_click_retry_delay_seconds = args.retry_delay
    config.validate()
    return config


def log_progress(event: ProgressEvent):
    """Progress sink that writes events to the log."""
    get_logger().info(f"[{event.percent:3d}%] {event.message} ({event.current}/{event.total})")


def cmd_submit(args: argparse.Namespace) -> int:
    """
    Execute the submit command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger = get_logger()

    try:
        config = build_config(args)
    except ValueError as e:
        log_error(f"Configuration error: {e}", logger)
        return 1

    log_section("Loading CSV Data", logger)

    store = CsvRowStore(args.csv)
    try:
        rows = store.get_pending_rows()
    except CSVLoadError as e:
        log_error(f"CSV loading failed: {e}", logger)
        return 1

    if not rows:
        logger.info("No pending rows to submit")
        return 0

    logger.info(f"Loaded {len(rows)} pending row(s) from {args.csv}")
    logger.info("")
    for i, row in enumerate(rows, 1):
        quarter = get_quarter_for_date(row.date)
        logger.info(
            f"  {i}. {row.date} {row.project} {row.hours:g}h "
            f"({quarter.id if quarter else 'no quarter'})"
        )

    if args.dry_run:
        logger.info("")
        log_section("Dry Run Complete", logger)
        for group_id, count in summarize_plan(rows, args.mock_url).items():
            logger.info(f"  {group_id}: {count} row(s)")
        logger.info("No browser operations performed.")
        logger.info("Run without --dry-run to submit.")
        return 0

    credentials = EnvCredentialStore().get_credentials(CREDENTIAL_SERVICE)
    if credentials is None:
        prefix = CREDENTIAL_SERVICE.upper()
        log_error(f"Credentials not found: set {prefix}_EMAIL and {prefix}_PASSWORD", logger)
        return 1

    log_section("Submitting", logger)
    store.mark_in_progress(row.id for row in rows)

    try:
        result = asyncio.run(process_rows_by_quarter(
            rows,
            credentials,
            config,
            on_progress=log_progress,
            mock_url=args.mock_url,
        ))
    except KeyboardInterrupt:
        logger.info("")
        logger.warning("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT

    store.mark_submitted(result.submitted_ids)
    store.mark_failed(result.removed_ids)

    logger.info(result.format_summary())

    if result.ok and result.removed_count == 0:
        logger.info("Operation completed successfully")
        return 0

    log_warning("Operation completed with errors", logger)
    return 1


def main(argv=None):
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=getattr(args, 'verbose', False))

    logger = get_logger()

    logger.info("")
    logger.info("=" * 70)
    logger.info("  Timesheet Submitter")
    logger.info("=" * 70)

    if not args.command:
        parser.print_help()
        return 1

    if not validate_args(args):
        return 1

    if args.command == 'submit':
        return cmd_submit(args)

    log_error(f"Unknown command: {args.command}", logger)
    return 1


if __name__ == '__main__':
    sys.exit(main())
