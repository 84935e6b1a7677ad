"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the store bootstrap.

- Provides argparse-based CLI
- Loads configuration from environment, CLI overrides it
- Prints a run summary
- Exit code 0 on success, 1 on failure

============================================================
USAGE
============================================================
python -m orchestrator.cli
python -m orchestrator.cli --database eventhive_dev --log-level DEBUG
python -m orchestrator.cli --url sqlite:///eventhive.db
python -m orchestrator.cli --drop-existing --sample-limit 10

============================================================
"""

import argparse
import dataclasses
import json
import logging
import sys
from typing import List, Optional

from .models import BootstrapConfig, BootstrapResult
from .core import BootstrapOrchestrator, setup_logging
from core.exceptions import ConfigurationError
from database.catalog import ENTITY_CATALOG
from database.resolver import resolve_creation_order


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="eventhive-bootstrap",
        description="Provision the EventHive store: database, schema and seed data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Phases:
  connect             - Connect to the store server
  ensure_database     - Create the target database if absent
  materialize_schema  - Create the 10 entity tables in dependency order
  seed                - Insert baseline users, events and tickets
  verify              - Read-only row counts and samples

Examples:
  %(prog)s                                  # Use DATABASE_URL / DB_* settings
  %(prog)s --database eventhive_test        # Bootstrap a different database
  %(prog)s --url sqlite:///eventhive.db     # Local SQLite file
  %(prog)s --show-order                     # Print creation order and exit
        """
    )

    # --------------------------------------------------------
    # Store Options
    # --------------------------------------------------------
    store_group = parser.add_argument_group("Store Options")

    store_group.add_argument(
        "--database", "-d",
        type=str,
        metavar="NAME",
        help="Target database name (default: DB_NAME or eventhive)",
    )

    store_group.add_argument(
        "--url",
        type=str,
        metavar="URL",
        help="Server-level SQLAlchemy URL (default: DATABASE_URL or DB_* settings)",
    )

    store_group.add_argument(
        "--echo",
        action="store_true",
        help="Log every SQL statement",
    )

    # --------------------------------------------------------
    # Bootstrap Options
    # --------------------------------------------------------
    bootstrap_group = parser.add_argument_group("Bootstrap Options")

    bootstrap_group.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop all catalog tables before creating them (DESTROYS DATA)",
    )

    bootstrap_group.add_argument(
        "--sample-limit",
        type=int,
        metavar="N",
        help="Rows sampled per table during verification (default: 5)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    # --------------------------------------------------------
    # Output
    # --------------------------------------------------------
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    parser.add_argument(
        "--show-order",
        action="store_true",
        help="Show entity creation order and exit",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Args:
        args: Parsed arguments

    Returns:
        List of validation errors
    """
    errors = []

    if args.sample_limit is not None and args.sample_limit < 1:
        errors.append("--sample-limit must be at least 1")

    if args.database is not None and not args.database:
        errors.append("--database must not be empty")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> BootstrapConfig:
    """
    Build bootstrap configuration from environment and CLI arguments.

    CLI arguments take precedence over environment variables.

    Args:
        args: Parsed arguments

    Returns:
        BootstrapConfig instance
    """
    config = BootstrapConfig.from_env()

    database = config.database
    if args.url:
        database = dataclasses.replace(database, url=args.url)
    if args.database:
        database = dataclasses.replace(database, database=args.database)
    if args.echo:
        database = dataclasses.replace(database, echo=True)
    config.database = database

    if args.sample_limit is not None:
        config.sample_limit = args.sample_limit
    if args.drop_existing:
        config.drop_existing = True
    if args.log_level:
        config.log_level = args.log_level

    return config


# ============================================================
# SHOW ORDER
# ============================================================

def show_order() -> None:
    """Print the entity creation order."""
    print("\nEntity creation order")
    print("=" * 60)

    for i, entity in enumerate(resolve_creation_order(ENTITY_CATALOG), 1):
        depends = ", ".join(entity.dependencies()) or "-"
        print(f"  {i:2d}. {entity.name:22s} depends on: {depends}")

    print()


# ============================================================
# SUMMARY
# ============================================================

def print_summary(result: BootstrapResult) -> None:
    """Print a human-readable run summary."""
    print()
    print("=" * 60)
    if result.success:
        print(f"  BOOTSTRAP COMPLETE  ({result.duration_seconds:.2f}s)")
    else:
        print(f"  BOOTSTRAP FAILED at phase: {result.failed_phase.phase_id}")
        print(f"  Error: {result.error}")
        if result.phase_results:
            failed = result.phase_results[-1]
            if failed.entity:
                print(f"  Entity: {failed.entity}")
            if "cause_message" in failed.context:
                print(f"  Cause: {failed.context['cause_message']}")
    print("=" * 60)

    print(f"  States: {' -> '.join(s.value for s in result.state_history)}")

    if result.materialization:
        print(f"  Tables created:  {len(result.materialization.created)}")
        print(f"  Tables existing: {len(result.materialization.existing)}")

    if result.seed_result:
        print(f"  Seed inserted:   {result.seed_result.total_inserted}")
        print(f"  Seed present:    {result.seed_result.total_ignored}")

    if result.verification:
        print("  Row counts:")
        for table, count in result.verification.row_counts.items():
            print(f"    {table:22s} {count}")
        for warning in result.verification.warnings:
            print(f"  WARNING: {warning.message}")

    print()


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Show order if requested
    if args.show_order:
        show_order()
        return 0

    # Validate arguments
    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: invalid environment setting: {e.message}", file=sys.stderr)
        return 1

    setup_logging(level=config.log_level, log_format=args.log_format)

    try:
        orchestrator = BootstrapOrchestrator(config)
    except ConfigurationError as e:
        logging.error(e.to_log_format())
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    # Print startup banner
    print_banner(config)

    try:
        result = orchestrator.run()
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print_summary(result)

    return 0 if result.success else 1


def print_banner(config: BootstrapConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  EVENTHIVE STORE BOOTSTRAP")
    print("=" * 60)
    print(f"  Server:        {config.database.safe_url()}")
    print(f"  Database:      {config.database.database}")
    print(f"  Drop existing: {config.drop_existing}")
    print(f"  Sample limit:  {config.sample_limit}")
    print(f"  Log Level:     {config.log_level}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
