#!/usr/bin/env python3
"""
Monthly Consultant Report Script

Builds and dispatches the monthly report for every active consultant who
has reports enabled. Runs the same batch as
POST /api/v1/consultants/monthly-report.

Usage:
    python run_monthly_reports.py
    python run_monthly_reports.py --year 2024 --month 1
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.stores import supabase_stores
from services.monthly_report_service import run_monthly_report_batch
from services.notifications import LoggingNotificationSink


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Send monthly consultant commission reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report on the previous calendar month
  python run_monthly_reports.py

  # Re-run January 2024
  python run_monthly_reports.py --year 2024 --month 1
        """
    )

    parser.add_argument(
        "--year",
        "-y",
        type=int,
        help="Report year (requires --month)"
    )

    parser.add_argument(
        "--month",
        "-m",
        type=int,
        choices=range(1, 13),
        metavar="{1..12}",
        help="Report month (requires --year)"
    )

    args = parser.parse_args()

    if (args.year is None) != (args.month is None):
        parser.error("--year and --month must be given together")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        result = run_monthly_report_batch(
            supabase_stores(),
            LoggingNotificationSink(),
            year=args.year,
            month=args.month,
        )
    except Exception as e:
        print(f"✗ Report batch failed: {e}", file=sys.stderr)
        return 1

    print()
    print("=" * 60)
    print(f"MONTHLY REPORTS {result.period_start:%Y-%m}")
    print("=" * 60)
    print(f"Period:                {result.period_start} to {result.period_end}")
    print(f"Consultants processed: {result.consultants_processed}")
    print(f"Reports sent:          {result.reports_sent}")
    print(f"Failures:              {len(result.errors)}")
    for failure in result.errors:
        print(f"  - {failure.consultant_id}: {failure.error}")
    print("=" * 60)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
