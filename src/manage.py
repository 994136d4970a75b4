"""Checkout management CLI.

Creates and drops the checkout schema and seeds the standard plan tiers.

Usage:
    python src/manage.py setup-db                 # Create all tables
    python src/manage.py drop-db                  # Drop all tables
    python src/manage.py seed-plans               # Create or refresh plans
    python src/manage.py seed-plans --keep-prices # Only create missing plans
"""

import argparse
import sys


def _domain():
    from checkout.domain import checkout

    print("Initializing checkout domain...")
    checkout.init()
    return checkout


def setup_database():
    from checkout.utils.db import setup_db

    domain = _domain()
    print("Creating checkout database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from checkout.utils.db import drop_db

    domain = _domain()
    print("Dropping checkout database schema...")
    drop_db(domain)
    print("Done.")


def seed_plans(update_existing: bool = True):
    from checkout.catalog.seed import SeedPlans

    domain = _domain()
    with domain.domain_context():
        created = domain.process(SeedPlans(update_existing=update_existing), asynchronous=False)
    print(f"Seeded plans ({created} created).")


def main():
    parser = argparse.ArgumentParser(description="Checkout management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    seed_parser = subparsers.add_parser("seed-plans", help="Create or refresh the standard plans")
    seed_parser.add_argument(
        "--keep-prices",
        action="store_true",
        help="Leave prices of existing plans untouched",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-plans":
        seed_plans(update_existing=not args.keep_prices)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
