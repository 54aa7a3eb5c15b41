# ticketflow/ticket/routes.py
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response

from ticketflow.ticket import services as ticket_service
from ticketflow.ticket.schemas import TicketCreate, TicketOut, TicketUpdate
from ticketflow.ticket.store import TicketStore, get_store
from ticketflow.webhook.notifier import WebhookNotifier, get_notifier

router = APIRouter(prefix="/rest/ticket", tags=["Tickets"])


@router.post("", response_model=TicketOut, status_code=201)
def create(
    ticket: TicketCreate,
    background_tasks: BackgroundTasks,
    store: TicketStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    return ticket_service.create_ticket(store, notifier, background_tasks, ticket)


@router.get("", response_model=list[TicketOut])
def list_all(store: TicketStore = Depends(get_store)):
    return ticket_service.get_all_tickets(store)


@router.get("/{ticket_number}", response_model=TicketOut)
def get(ticket_number: str, store: TicketStore = Depends(get_store)):
    ticket = ticket_service.get_ticket(store, ticket_number)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


@router.put("/{ticket_number}", response_model=TicketOut)
def update(
    ticket_number: str,
    ticket: TicketUpdate,
    background_tasks: BackgroundTasks,
    store: TicketStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    updated = ticket_service.update_ticket(store, notifier, background_tasks, ticket_number, ticket)
    if not updated:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return updated


@router.delete("/{ticket_number}", status_code=204)
def delete(
    ticket_number: str,
    background_tasks: BackgroundTasks,
    store: TicketStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    deleted = ticket_service.delete_ticket(store, notifier, background_tasks, ticket_number)
    if not deleted:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return Response(status_code=204)
