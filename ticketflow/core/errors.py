# ticketflow/core/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TicketFlowError(Exception):
    """Base class for application errors."""


class TicketStoreError(TicketFlowError):
    """The ticket store failed to carry out an operation."""


class ConstraintViolation(TicketStoreError):
    """A write broke a table constraint (duplicate key, value outside an enum)."""


class StartupFailure(TicketFlowError):
    """The store could not be opened or initialised."""


class ConfigurationError(TicketFlowError):
    """An administrative setting was malformed."""


class WebhookDeliveryError(TicketFlowError):
    """A webhook POST failed. Never propagated past the notifier."""

    def __init__(self, action: str, ticket_number: str | None, reason: str):
        super().__init__(f"{action} webhook for ticket {ticket_number} failed: {reason}")
        self.action = action
        self.ticket_number = ticket_number
        self.reason = reason


async def constraint_violation_handler(request: Request, exc: ConstraintViolation):
    logger.warning("Constraint violation on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def store_error_handler(request: Request, exc: TicketStoreError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette resolves handlers along the MRO, so the subclass wins
    app.add_exception_handler(ConstraintViolation, constraint_violation_handler)
    app.add_exception_handler(TicketStoreError, store_error_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
