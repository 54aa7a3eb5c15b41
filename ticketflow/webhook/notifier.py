# ticketflow/webhook/notifier.py
"""
Outbound webhook for ticket mutations.

Each create/update/delete produces one JSON POST to a single configured
endpoint. Delivery is best effort: one attempt, no retry, bounded only by
the HTTP timeout. Failures are logged, kept in a short dead-letter log and
handed to any registered failure listeners; they never reach the request
that triggered them.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from enum import Enum
from typing import Any

import httpx
from fastapi import BackgroundTasks, Request

from ticketflow.core.errors import WebhookDeliveryError
from ticketflow.ticket.models import Ticket

logger = logging.getLogger(__name__)

FAILURE_LOG_SIZE = 100

PAYLOAD_FIELDS = (
    "issue_title",
    "issue_description",
    "status",
    "priority",
    "email",
    "phone_number",
    "notes",
    "created",
    "changed",
)


class WebhookAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


FailureListener = Callable[[WebhookDeliveryError], Any]


class WebhookNotifier:
    """Send ticket mutation events to one external endpoint."""

    def __init__(
        self,
        url: str | None,
        enabled: bool = True,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._enabled = enabled
        self.timeout = timeout
        self._transport = transport
        self._lock = threading.Lock()
        self._listeners: list[FailureListener] = []
        self.failures: deque[WebhookDeliveryError] = deque(maxlen=FAILURE_LOG_SIZE)
        logger.info("Webhook notifier initialized (url=%s, enabled=%s)", url, enabled)

    def is_enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled
        logger.info("Webhook %s", "enabled" if enabled else "disabled")

    @property
    def url(self) -> str | None:
        with self._lock:
            return self._url

    def set_url(self, url: str | None) -> None:
        with self._lock:
            self._url = url
        logger.info("Webhook URL updated to %s", url)

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._listeners.append(listener)

    @staticmethod
    def build_payload(ticket: Ticket, action: WebhookAction) -> dict:
        payload = {"ticket_number": ticket.ticket_number, "action": action.value}
        for field in PAYLOAD_FIELDS:
            payload[field] = getattr(ticket, field)
        return payload

    async def deliver(self, payload: dict) -> bool:
        """POST `payload` once. Returns True on a 2xx response."""
        action = payload.get("action")
        ticket_number = payload.get("ticket_number")
        url = self.url

        if not self.is_enabled():
            logger.info("Webhook disabled, skipping %s for ticket %s", action, ticket_number)
            return False
        if not url:
            logger.debug("Webhook URL not configured, skipping %s for ticket %s", action, ticket_number)
            return False

        logger.info("Sending %s webhook for ticket %s to %s", action, ticket_number, url)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            self._record_failure(WebhookDeliveryError(action, ticket_number, str(e) or type(e).__name__))
            return False

        logger.info(
            "Webhook %s for ticket %s delivered (status %d)", action, ticket_number, resp.status_code
        )
        return True

    def _record_failure(self, error: WebhookDeliveryError) -> None:
        logger.warning("%s; continuing", error)
        self.failures.append(error)
        for listener in list(self._listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Webhook failure listener raised")

    async def notify_created(self, ticket: Ticket) -> bool:
        return await self.deliver(self.build_payload(ticket, WebhookAction.CREATE))

    async def notify_updated(self, ticket: Ticket) -> bool:
        return await self.deliver(self.build_payload(ticket, WebhookAction.UPDATE))

    async def notify_deleted(self, ticket: Ticket) -> bool:
        return await self.deliver(self.build_payload(ticket, WebhookAction.DELETE))

    def schedule(self, tasks: BackgroundTasks, action: WebhookAction, ticket: Ticket) -> None:
        """Queue delivery to run once the response has been sent.

        The payload is built now so later changes to the row do not leak in.
        """
        tasks.add_task(self.deliver, self.build_payload(ticket, action))


def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier
