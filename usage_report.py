"""
PYLON Monthly Usage Report.

Approximates interaction usage to date for the current billing period,
including a breakdown by index.

Usage:
    python usage_report.py <username> <account API key> [billing period start day]
    python usage_report.py --account default

Disclaimer: this tool does not provide true audits of interaction counts
due to redaction and other platform limitations. For figures relevant to
billing, request a total generated by the platform's data warehouse.
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import List, Optional, TextIO

from billing_period import calculate_billing_window, localized_now
from config import ReporterConfig, DEFAULT_UTC_OFFSET_HOURS, select_account
from progress import ConsoleProgress, ProgressReporter
from pylon_adapter import PylonClient, setup_logging
from report_tables import export_breakdown_csv, print_report
from usage_calculator import ReportState, UsageCalculator
from validators import ReportRequest

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Approximate PYLON interaction usage for the current billing period"
    )
    parser.add_argument("username", nargs="?", help="Account username")
    parser.add_argument("api_key", nargs="?", help="Account API key")
    parser.add_argument(
        "billing_period_start",
        nargs="?",
        type=int,
        help="Day of month the billing period starts on (default 1)",
    )
    parser.add_argument(
        "--account",
        type=str,
        default="default",
        help="Stored account to use when no credentials are given.",
    )
    parser.add_argument(
        "--accounts-file",
        type=str,
        default=None,
        help="JSON file of stored accounts (default ~/.pylon/accounts.json).",
    )
    parser.add_argument(
        "--output-csv",
        type=str,
        default=None,
        help="Also write the per-index breakdown to this CSV file.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default="usage_reporter.log",
        help="Log file path.",
    )
    parser.add_argument(
        "--utc-offset",
        type=int,
        default=DEFAULT_UTC_OFFSET_HOURS,
        help="Fixed UTC offset in hours the billing period is defined in (default -8).",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> ReporterConfig:
    """Build the run configuration from CLI arguments or a stored account."""
    if args.username:
        username, api_key, billing_start = args.username, args.api_key, args.billing_period_start
    else:
        entry = select_account(args.account, args.accounts_file)
        username, api_key, billing_start = entry.username, entry.api_key, entry.billing_start

    request = ReportRequest(
        username=username,
        api_key=api_key,
        billing_period_start=billing_start if billing_start is not None else 1,
    )
    return ReporterConfig(
        username=request.username,
        api_key=request.api_key,
        billing_period_start=request.billing_period_start,
        utc_offset_hours=args.utc_offset,
    )


def run_usage_report(
    config: ReporterConfig,
    output_csv: Optional[str] = None,
    progress: Optional[ProgressReporter] = None,
    now: Optional[datetime] = None,
    stream: Optional[TextIO] = None,
) -> ReportState:
    """
    Run the full report: billing window, index and identity phases, tables.

    Any API failure propagates and no report is printed.
    """
    progress = progress or ConsoleProgress(stream)
    now = now or localized_now(config.utc_offset_hours)

    logger.info("=" * 60)
    logger.info("PYLON Usage Report")
    logger.info("=" * 60)
    logger.info("Configuration: %s", config.to_dict())

    window = calculate_billing_window(config.billing_period_start, now, config.utc_offset_hours)
    calculator = UsageCalculator(PylonClient(config), window, config=config, progress=progress)
    state = calculator.run()

    print_report(config.username, state, now, stream=stream)

    if output_csv:
        export_breakdown_csv(state, output_csv)

    logger.info("Report complete: %d interactions across %d indexes", state.volume, state.indexes_found)
    return state


def main(argv: Optional[List[str]] = None) -> ReportState:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.username and not args.api_key:
        parser.error("an API key is required when a username is given")

    setup_logging(args.log_file)
    config = resolve_config(args)
    return run_usage_report(config, output_csv=args.output_csv)


def cli() -> None:
    try:
        main()
    except Exception as e:
        logger.error("Usage report failed: %s", e, exc_info=True)
        print(f"\n- FAILED: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
