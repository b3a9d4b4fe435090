"""Back-office database management CLI.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=production python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

import structlog

logger = structlog.get_logger(__name__)


def setup_database():
    from backoffice.domain import backoffice
    from backoffice.utils.db import setup_db

    backoffice.init()
    providers = setup_db(backoffice)
    if not providers:
        logger.warning("no_sql_provider_configured", hint="set PROTEAN_ENV=production")
    logger.info("schema_created", providers=providers)


def drop_database():
    from backoffice.domain import backoffice
    from backoffice.utils.db import drop_db

    backoffice.init()
    logger.info("schema_dropped", providers=drop_db(backoffice))


def main():
    parser = argparse.ArgumentParser(description="Back-office database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
