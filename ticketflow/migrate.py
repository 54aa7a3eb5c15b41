#!/usr/bin/env python3
"""
Run the ticket store migrations by hand.

Usage:
    python -m ticketflow.migrate json         # import the legacy db.json into an empty store
    python -m ticketflow.migrate rename-key   # rename the legacy _id key column to ticket_number
"""

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from ticketflow.core.config import get_settings
from ticketflow.core.errors import StartupFailure
from ticketflow.core.logging import configure_logging
from ticketflow.ticket.migration import migrate_from_json, rename_primary_key
from ticketflow.ticket.store import TicketStore

logger = logging.getLogger("ticketflow.migrate")


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="TicketFlow store migrations")
    parser.add_argument("command", choices=["json", "rename-key"])
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    parser.add_argument("--json", dest="json_path", default=settings.LEGACY_JSON_PATH,
                        help="legacy JSON store (json command only)")
    parser.add_argument("--collection", default=settings.LEGACY_COLLECTION)
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)
    store = TicketStore(args.database_url)
    try:
        if args.command == "rename-key":
            outcome = rename_primary_key(store.engine)
            print(f"rename-key: {outcome}")
            return 0

        store.initialize()
        result = migrate_from_json(store, args.json_path, args.collection)
        if result.error:
            print(f"json: failed ({result.error})")
            return 1
        if result.skipped:
            print(f"json: skipped ({result.skipped})")
        else:
            print(f"json: migrated {result.migrated_count} of {result.source_count} tickets")
        return 0
    except (StartupFailure, SQLAlchemyError) as e:
        logger.error("%s", e)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
