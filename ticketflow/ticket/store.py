# ticketflow/ticket/store.py
import logging
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import Connection, delete, func, inspect, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ticketflow.core.database import Base, create_db_engine, make_session_factory
from ticketflow.core.errors import ConstraintViolation, StartupFailure, TicketStoreError
from ticketflow.ticket.models import MUTABLE_FIELDS, Ticket, TicketChanges, utc_now_iso

logger = logging.getLogger(__name__)


class TicketStore:
    """Single-row CRUD over the tickets table.

    Every operation runs under one process-wide lock, so requests are
    serialised onto a single logical connection. Concurrent updates to the
    same ticket are last-writer-wins.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_db_engine(database_url)
        self._session_factory = make_session_factory(self.engine)
        self._lock = threading.RLock()
        self._closed = False

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            db = self._session_factory()
            try:
                yield db
            finally:
                db.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Connection inside a transaction that commits on clean exit."""
        with self._lock, self.engine.begin() as conn:
            yield conn

    def initialize(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StartupFailure(f"cannot open ticket store: {e}") from e
        logger.info("Ticket store initialized")

    def list_all(self) -> list[Ticket]:
        try:
            with self.session() as db:
                return list(db.scalars(select(Ticket).order_by(Ticket.created.desc())))
        except SQLAlchemyError as e:
            raise TicketStoreError(f"failed to list tickets: {e}") from e

    def get(self, ticket_number: str) -> Ticket | None:
        try:
            with self.session() as db:
                return db.get(Ticket, ticket_number)
        except SQLAlchemyError as e:
            raise TicketStoreError(f"failed to load ticket {ticket_number}: {e}") from e

    def count(self) -> int:
        try:
            with self.session() as db:
                return db.scalar(select(func.count()).select_from(Ticket)) or 0
        except SQLAlchemyError as e:
            raise TicketStoreError(f"failed to count tickets: {e}") from e

    def create(self, ticket: Ticket) -> bool:
        with self.session() as db:
            try:
                db.add(ticket)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConstraintViolation(
                    f"ticket {ticket.ticket_number} rejected: {e.orig}"
                ) from e
            except SQLAlchemyError as e:
                db.rollback()
                raise TicketStoreError(f"failed to create ticket {ticket.ticket_number}: {e}") from e
        return True

    def update(self, ticket_number: str, changes: TicketChanges | Mapping[str, Any]) -> bool:
        values = {k: v for k, v in changes.items() if k in MUTABLE_FIELDS}
        ignored = set(changes) - MUTABLE_FIELDS
        if ignored:
            logger.debug("Ignoring immutable or unknown fields for %s: %s", ticket_number, sorted(ignored))
        values["changed"] = utc_now_iso()

        stmt = update(Ticket).where(Ticket.ticket_number == ticket_number).values(**values)
        with self.session() as db:
            try:
                result = db.execute(stmt)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConstraintViolation(f"ticket {ticket_number} rejected: {e.orig}") from e
            except SQLAlchemyError as e:
                db.rollback()
                raise TicketStoreError(f"failed to update ticket {ticket_number}: {e}") from e
        return result.rowcount > 0

    def delete(self, ticket_number: str) -> bool:
        stmt = delete(Ticket).where(Ticket.ticket_number == ticket_number)
        with self.session() as db:
            try:
                result = db.execute(stmt)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise TicketStoreError(f"failed to delete ticket {ticket_number}: {e}") from e
        return result.rowcount > 0

    def verify_state(self) -> bool:
        """Log a summary of the table contents. False when it is empty."""
        with self._lock:
            present = {c["name"] for c in inspect(self.engine).get_columns(Ticket.__tablename__)}
        missing = [c.name for c in Ticket.__table__.columns if c.name not in present]
        if missing:
            logger.warning("Tickets table is missing columns: %s", missing)

        tickets = self.list_all()
        logger.info("Database verification: %d tickets found", len(tickets))
        if not tickets:
            logger.warning("No tickets found in database")
            return False
        for ticket in tickets[:3]:
            logger.info(
                "Sample ticket %s: %r status=%s priority=%s created=%s",
                ticket.ticket_number,
                ticket.issue_title,
                ticket.status,
                ticket.priority,
                ticket.created,
            )
        return True

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self.engine.dispose()
            except Exception:
                logger.exception("Error while closing ticket store")
            else:
                logger.info("Ticket store closed")


def get_store(request: Request) -> TicketStore:
    return request.app.state.store
