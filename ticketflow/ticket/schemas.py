# ticketflow/ticket/schemas.py
from pydantic import BaseModel, Field

from ticketflow.ticket.models import (
    DESCRIPTION_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    TicketPriority,
    TicketStatus,
)

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
# US numbers in E.164: +1 followed by ten digits
PHONE_PATTERN = r"^\+1\d{10}$"


class TicketCreate(BaseModel):
    issue_title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    issue_description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    status: TicketStatus | None = None
    priority: TicketPriority
    email: str = Field(..., pattern=EMAIL_PATTERN)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    notes: str = Field(default="", max_length=NOTES_MAX_LENGTH)


class TicketUpdate(BaseModel):
    # Unknown keys, including ticket_number and created, are dropped
    issue_title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    issue_description: str | None = Field(default=None, min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)


class TicketOut(BaseModel):
    ticket_number: str
    # Derived titles may run past the input limit by the ellipsis
    issue_title: str
    issue_description: str
    status: TicketStatus
    priority: TicketPriority
    email: str
    phone_number: str
    notes: str
    created: str
    changed: str

    model_config = {"from_attributes": True}
