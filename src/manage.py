"""Tailor Mint database management CLI.

Creates and drops the schema for every bounded context on the configured
database (DATABASE_URL).

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

from shared.config import get_settings
from shared.database import configure_database, drop_db, setup_db


def setup_databases(database_url=None):
    """Create the schema on ``database_url`` (default: settings)."""
    url = database_url or get_settings().database_url
    print(f"Creating schema on {url}...")
    setup_db(configure_database(url))
    print("Done.")


def drop_databases(database_url=None):
    """Drop the schema on ``database_url`` (default: settings)."""
    url = database_url or get_settings().database_url
    print(f"Dropping schema on {url}...")
    drop_db(configure_database(url))
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Tailor Mint database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("setup-db", "Create all database tables"), ("drop-db", "Drop all database tables")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--database-url", help="Override DATABASE_URL")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases(args.database_url)
    elif args.command == "drop-db":
        drop_databases(args.database_url)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
