# ticketflow/ticket/services.py
import logging
import threading
import time

from fastapi import BackgroundTasks

from ticketflow.ticket.models import TITLE_MAX_LENGTH, Ticket, TicketStatus, utc_now_iso
from ticketflow.ticket.schemas import TicketCreate, TicketUpdate
from ticketflow.ticket.store import TicketStore
from ticketflow.webhook.notifier import WebhookAction, WebhookNotifier

logger = logging.getLogger(__name__)

ELLIPSIS = "..."


class TicketNumberGenerator:
    """Millisecond-epoch ticket numbers, strictly increasing within a process."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            self._last = max(time.time_ns() // 1_000_000, self._last + 1)
            return str(self._last)


next_ticket_number = TicketNumberGenerator()


def derive_title(description: str) -> str:
    if len(description) <= TITLE_MAX_LENGTH:
        return description
    return description[:TITLE_MAX_LENGTH] + ELLIPSIS


def apply_defaults(data: dict) -> dict:
    """Fill in a missing title from the description and a missing status."""
    if not data.get("issue_title"):
        if data.get("issue_description"):
            data["issue_title"] = derive_title(data["issue_description"])
            logger.debug("Derived title from description: %r", data["issue_title"])
        else:
            # An empty title never overwrites the stored one
            data.pop("issue_title", None)
    if not data.get("status"):
        data["status"] = TicketStatus.OPEN.value
        logger.debug("Defaulted status to %s", data["status"])
    return data


def get_all_tickets(store: TicketStore) -> list[Ticket]:
    return store.list_all()


def get_ticket(store: TicketStore, ticket_number: str) -> Ticket | None:
    return store.get(ticket_number)


def create_ticket(
    store: TicketStore,
    notifier: WebhookNotifier,
    tasks: BackgroundTasks,
    payload: TicketCreate,
) -> Ticket:
    data = apply_defaults(payload.model_dump(mode="json"))
    now = utc_now_iso()
    ticket = Ticket(ticket_number=next_ticket_number(), **data, created=now, changed=now)
    store.create(ticket)
    logger.info("Created ticket %s", ticket.ticket_number)
    notifier.schedule(tasks, WebhookAction.CREATE, ticket)
    return ticket


def update_ticket(
    store: TicketStore,
    notifier: WebhookNotifier,
    tasks: BackgroundTasks,
    ticket_number: str,
    payload: TicketUpdate,
) -> Ticket | None:
    changes = apply_defaults(payload.model_dump(mode="json", exclude_unset=True, exclude_none=True))
    if not store.update(ticket_number, changes):
        return None
    ticket = store.get(ticket_number)
    if ticket is None:
        # Deleted between the update and the re-read
        return None
    logger.info("Updated ticket %s (%s)", ticket_number, ", ".join(sorted(changes)))
    notifier.schedule(tasks, WebhookAction.UPDATE, ticket)
    return ticket


def delete_ticket(
    store: TicketStore,
    notifier: WebhookNotifier,
    tasks: BackgroundTasks,
    ticket_number: str,
) -> Ticket | None:
    snapshot = store.get(ticket_number)
    if snapshot is None:
        return None
    if not store.delete(ticket_number):
        return None
    logger.info("Deleted ticket %s", ticket_number)
    notifier.schedule(tasks, WebhookAction.DELETE, snapshot)
    return snapshot
