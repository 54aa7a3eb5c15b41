# ticketflow/webhook/schemas.py
from pydantic import BaseModel


class WebhookStatus(BaseModel):
    enabled: bool
