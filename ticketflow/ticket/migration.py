# ticketflow/ticket/migration.py
"""
One-shot migrations into the tickets table.

`migrate_from_json` moves records out of the legacy flat-file store and runs
on every startup; it only ever does work against an empty table.
`rename_primary_key` renames the key column of an older table layout and is
run by hand through `python -m ticketflow.migrate rename-key`.
"""

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Engine, MetaData, insert, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from ticketflow.core.errors import TicketStoreError
from ticketflow.ticket.models import Ticket
from ticketflow.ticket.store import TicketStore

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"
LEGACY_KEY = "_id"


@dataclass
class MigrationResult:
    source_count: int = 0
    migrated_count: int = 0
    skipped: str | None = None
    backup_path: Path | None = None
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.error is None and self.migrated_count == self.source_count


def _legacy_row(record: dict) -> dict:
    return {
        "ticket_number": record.get("ticket_number") or record.get(LEGACY_KEY),
        "issue_title": record.get("issue_title"),
        "issue_description": record.get("issue_description"),
        "status": record.get("status"),
        "priority": record.get("priority"),
        "email": record.get("email"),
        "phone_number": record.get("phone_number"),
        "notes": record.get("notes") or "",
        "created": record.get("created"),
        "changed": record.get("changed"),
    }


def migrate_from_json(
    store: TicketStore,
    json_path: str | Path,
    collection: str = "ticket",
) -> MigrationResult:
    """Copy tickets from the legacy JSON document into an empty store.

    Rows that break a constraint (duplicate key, bad enum, missing field) are
    skipped by INSERT OR IGNORE. After commit the source file is copied to
    `<path>.backup`. Nothing here raises; failures land in `result.error`.
    """
    path = Path(json_path)
    result = MigrationResult()

    if not path.exists():
        logger.info("No legacy store at %s, skipping migration", path)
        result.skipped = "no-source"
        return result

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        records = (data.get(collection) if isinstance(data, dict) else None) or []
        result.source_count = len(records)

        if not records:
            logger.info("No tickets to migrate from %s", path)
            result.skipped = "empty-source"
            return result

        existing = store.count()
        if existing > 0:
            logger.info(
                "Store already holds %d tickets, skipping migration of %d legacy records",
                existing,
                len(records),
            )
            result.skipped = "store-not-empty"
            return result

        logger.info("Migrating %d tickets from %s", len(records), path)
        stmt = insert(Ticket.__table__).prefix_with("OR IGNORE")
        with store.transaction() as conn:
            for record in records:
                row = _legacy_row(record) if isinstance(record, dict) else None
                if row is None:
                    logger.error("Skipping malformed legacy record: %r", record)
                    continue
                try:
                    if conn.execute(stmt, row).rowcount > 0:
                        result.migrated_count += 1
                    else:
                        logger.warning("Legacy ticket %s was not inserted", row["ticket_number"])
                except SQLAlchemyError as e:
                    logger.error("Failed to migrate ticket %s: %s", row["ticket_number"], e)
        logger.info("Migrated %d tickets, store now holds %d", result.migrated_count, store.count())
    except (OSError, ValueError, TypeError, SQLAlchemyError, TicketStoreError) as e:
        logger.error("Migration from %s failed: %s", path, e)
        result.error = str(e)
        return result

    if result.migrated_count != result.source_count:
        logger.warning(
            "Expected %d tickets but migrated %d", result.source_count, result.migrated_count
        )

    backup = path.with_name(path.name + BACKUP_SUFFIX)
    try:
        shutil.copyfile(path, backup)
    except OSError as e:
        logger.error("Could not back up %s: %s", path, e)
    else:
        result.backup_path = backup
        logger.info("Backed up %s to %s", path, backup)

    return result


def rename_primary_key(
    engine: Engine,
    table: str = Ticket.__tablename__,
    old: str = LEGACY_KEY,
    new: str = "ticket_number",
) -> str:
    """Rebuild `table` so its key column is called `new` instead of `old`.

    Returns "already-migrated", "nothing-to-migrate" or "migrated".
    """
    inspector = inspect(engine)
    if not inspector.has_table(table):
        logger.info("Table %s does not exist, nothing to migrate", table)
        return "nothing-to-migrate"

    columns = {c["name"] for c in inspector.get_columns(table)}
    logger.info("Current %s columns: %s", table, sorted(columns))
    if new in columns:
        logger.info("Table %s already has %s, no migration needed", table, new)
        return "already-migrated"
    if old not in columns:
        logger.warning("Table %s has neither %s nor %s", table, old, new)
        return "nothing-to-migrate"

    staging = f"{table}_new"
    target = Ticket.__table__.to_metadata(MetaData(), name=staging)
    stmt = insert(target)
    migrated = 0

    with engine.begin() as conn:
        rows = conn.execute(text(f'SELECT * FROM "{table}"')).mappings().all()
        logger.info("Found %d tickets to migrate", len(rows))
        target.create(conn)
        for row in rows:
            values = {c.name: row.get(c.name) for c in target.columns if c.name != new}
            values[new] = row[old]
            values["notes"] = values.get("notes") or ""
            try:
                conn.execute(stmt, values)
                migrated += 1
            except SQLAlchemyError as e:
                logger.error("Failed to migrate ticket %s: %s", row[old], e)
        conn.execute(text(f'DROP TABLE "{table}"'))
        conn.execute(text(f'ALTER TABLE "{staging}" RENAME TO "{table}"'))

    logger.info("Renamed %s.%s to %s, migrated %d of %d tickets", table, old, new, migrated, len(rows))
    return "migrated"
