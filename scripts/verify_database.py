"""
Database Verification Script.

============================================================
VERIFY AN EXISTING EVENTHIVE STORE
============================================================

This script:
1. Connects to the configured store and target database
2. Checks all 10 catalog tables exist
3. Prints row counts for every table
4. Prints a bounded sample of users, events and tickets

It never writes and never creates the database.

EXIT CODES:
- 0: All tables present, baseline data found
- 1: Database connection failed
- 2: Tables missing
- 3: Verification queries failed
- 4: Baseline tables empty (store not seeded)

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from core.exceptions import BootstrapError, ConfigurationError, VerificationWarning
from database import (
    DatabaseConfig,
    REQUIRED_TABLES,
    SEED_DATASET,
    VerificationProbe,
    VerificationReport,
    describe_table,
    open_store,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("verify_database")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="verify_database",
        description="Read-only verification of an EventHive store",
    )
    parser.add_argument("--database", "-d", type=str, metavar="NAME", help="Target database name")
    parser.add_argument("--url", type=str, metavar="URL", help="Server-level SQLAlchemy URL")
    parser.add_argument("--sample-limit", type=int, default=5, metavar="N", help="Rows sampled per table")
    parser.add_argument(
        "--describe",
        action="append",
        default=[],
        metavar="TABLE",
        help="Print the column listing of TABLE (repeatable)",
    )
    return parser


def build_database_config(args: argparse.Namespace) -> DatabaseConfig:
    """Environment settings with CLI overrides."""
    config = DatabaseConfig.from_env()
    if args.url:
        config.url = args.url
    if args.database:
        config.database = args.database
    return config


def print_verification_report(report: VerificationReport) -> None:
    """Print row counts, samples and warnings."""
    print("\n" + "=" * 70)
    print("EVENTHIVE STORE VERIFICATION REPORT")
    print("=" * 70)

    print("\n" + "-" * 70)
    print("TABLES")
    print("-" * 70)
    for table in REQUIRED_TABLES:
        if table in report.row_counts:
            print(f"  ✓ {table:30s} : {report.row_counts[table]:6d} rows")
        elif table in report.missing_tables:
            print(f"  ✗ {table:30s} : MISSING")
        else:
            print(f"  ? {table:30s} : not counted")

    for table, rows in report.samples.items():
        print("\n" + "-" * 70)
        print(f"SAMPLE: {table}")
        print("-" * 70)
        for row in rows:
            print("  " + ", ".join(f"{k}={v}" for k, v in row.items()))

    if report.warnings:
        print("\n" + "-" * 70)
        print("WARNINGS")
        print("-" * 70)
        for warning in report.warnings:
            print(f"  ! {warning.message}")


def print_table_description(store, table: str) -> None:
    """Print a live table's columns."""
    print("\n" + "-" * 70)
    print(f"DESCRIBE {table}")
    print("-" * 70)
    for column in describe_table(store, table):
        nullable = "NULL" if column["nullable"] else "NOT NULL"
        default = f" DEFAULT {column['default']}" if column["default"] is not None else ""
        print(f"  {column['name']:24s} {column['type']:20s} {nullable}{default}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main verification flow."""
    args = create_parser().parse_args(argv)

    print("\n" + "=" * 70)
    print("STARTING EVENTHIVE STORE VERIFICATION")
    print("=" * 70)

    try:
        config = build_database_config(args)
    except ConfigurationError as e:
        print(f"Error: invalid environment setting: {e.message}", file=sys.stderr)
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        with open_store(config, ensure=False, select=True) as store:
            report = VerificationProbe(store, sample_limit=args.sample_limit).run()
            print_verification_report(report)

            for table in args.describe:
                try:
                    print_table_description(store, table)
                except VerificationWarning as e:
                    logger.warning(e.to_log_format())
                    print(f"  ✗ {e.message}")

    except (BootstrapError, ConfigurationError) as e:
        logger.error(e.to_log_format())
        print(f"  ✗ Database connection failed: {e.message}")
        return 1

    if report.missing_tables:
        print(f"\n  ✗ VERIFICATION FAILED - Missing tables: {report.missing_tables}")
        return 2

    if report.warnings:
        print(f"\n  ✗ VERIFICATION FAILED - {len(report.warnings)} warning(s)")
        return 3

    empty = [table for table in SEED_DATASET if report.row_counts.get(table, 0) == 0]
    if empty:
        print(f"\n  ✗ VERIFICATION FAILED - Empty tables: {empty}")
        return 4

    print("\n" + "=" * 70)
    print("✓ EVENTHIVE STORE VERIFICATION PASSED")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
