"""Ordering service management CLI.

Database schema management plus the payment timeout sweep, meant to be
run from cron or a Kubernetes CronJob.

Usage:
    python src/manage.py setup-db                       # Create all tables
    python src/manage.py drop-db                        # Drop all tables
    python src/manage.py cancel-pending --dry-run       # List orders past the timeout
    python src/manage.py cancel-pending --timeout 45    # Cancel them
"""

import argparse
import sys


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_database():
    """Create the ordering schema."""
    from ordering.utils.db import setup_db

    domain = _domain()
    print("Creating ordering database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    """Drop the ordering schema."""
    from ordering.utils.db import drop_db

    domain = _domain()
    print("Dropping ordering database schema...")
    drop_db(domain)
    print("Done.")


def cancel_pending(timeout_minutes=None, dry_run=False) -> dict:
    """Run the payment timeout sweep once and print what it did."""
    from ordering.order.timeout import CancelTimedOutOrders
    from ordering.utils.logging import configure_logging
    from shared.settings import get_settings

    configure_logging()
    settings = get_settings()
    domain = _domain()
    timeout_minutes = timeout_minutes or settings.payment_timeout_minutes

    with domain.domain_context():
        report = domain.process(
            CancelTimedOutOrders(timeout_minutes=timeout_minutes, dry_run=dry_run),
            asynchronous=False,
        )

    if not report["candidates"]:
        print("No orders to cancel.")
        return report

    print(f"Found {len(report['candidates'])} order(s) pending for more than {timeout_minutes} minutes:")
    for row in report["candidates"]:
        print(f"  {row['order_number']}  created {row['created_at']}  {row['payment_status']}  {row['grand_total']}")

    if dry_run:
        print("DRY RUN - no orders were cancelled.")
        return report

    print(f"Cancelled {len(report['cancelled'])} order(s).")
    for failure in report["failed"]:
        print(f"  Failed to cancel {failure['order_number']}: {failure['error']}")
    return report


def main(argv=None):
    parser = argparse.ArgumentParser(description="Ordering service management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    cancel_parser = subparsers.add_parser(
        "cancel-pending",
        help="Cancel orders that have been waiting for payment too long",
    )
    cancel_parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Timeout in minutes (default: PAYMENT_TIMEOUT_MINUTES or 30)",
    )
    cancel_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show which orders would be cancelled without cancelling them",
    )

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "cancel-pending":
        report = cancel_pending(args.timeout, args.dry_run)
        if report["failed"]:
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
