# ticketflow/ticket/models.py
from datetime import datetime, timezone
from enum import Enum
from typing import TypedDict

from sqlalchemy import CheckConstraint, Column, String, Text

from ticketflow.core.database import Base


class TicketStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In-progress"
    CLOSED = "Closed"


class TicketPriority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 1000


def _in_clause(column: str, enum: type[Enum]) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum)
    return f"{column} IN ({values})"


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint(_in_clause("status", TicketStatus), name="ck_tickets_status"),
        CheckConstraint(_in_clause("priority", TicketPriority), name="ck_tickets_priority"),
    )

    ticket_number = Column(String, primary_key=True)
    issue_title = Column(String, nullable=False)
    issue_description = Column(String, nullable=False)
    status = Column(String, nullable=False, default=TicketStatus.OPEN.value)
    priority = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    notes = Column(Text, nullable=False, default="", server_default="")
    created = Column(String, nullable=False)
    changed = Column(String, nullable=False)


# Fields a partial update may touch. The key and `created` never appear here.
MUTABLE_FIELDS = frozenset(
    {
        "issue_title",
        "issue_description",
        "status",
        "priority",
        "email",
        "phone_number",
        "notes",
    }
)


class TicketChanges(TypedDict, total=False):
    issue_title: str
    issue_description: str
    status: str
    priority: str
    email: str
    phone_number: str
    notes: str


assert frozenset(TicketChanges.__annotations__) == MUTABLE_FIELDS


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
