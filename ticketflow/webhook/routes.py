# ticketflow/webhook/routes.py
from typing import Any

from fastapi import APIRouter, Body, Depends

from ticketflow.core.errors import ConfigurationError
from ticketflow.webhook.notifier import WebhookNotifier, get_notifier
from ticketflow.webhook.schemas import WebhookStatus

router = APIRouter(prefix="/rest/webhook", tags=["Webhook"])


@router.get("/status", response_model=WebhookStatus)
def get_status(notifier: WebhookNotifier = Depends(get_notifier)):
    return WebhookStatus(enabled=notifier.is_enabled())


@router.put("/status", response_model=WebhookStatus)
def set_status(
    body: Any = Body(default=None),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    # Only a JSON boolean is accepted; "true" and 1 are rejected with 400
    enabled = body.get("enabled") if isinstance(body, dict) else None
    if not isinstance(enabled, bool):
        raise ConfigurationError("enabled must be a boolean")
    notifier.set_enabled(enabled)
    return WebhookStatus(enabled=notifier.is_enabled())
