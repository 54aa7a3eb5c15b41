# ticketflow/main.py
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ticketflow.core.config import Settings, get_settings
from ticketflow.core.errors import register_exception_handlers
from ticketflow.core.logging import configure_logging
from ticketflow.ticket.migration import migrate_from_json
from ticketflow.ticket.models import utc_now_iso
from ticketflow.ticket.routes import router as ticket_router
from ticketflow.ticket.store import TicketStore
from ticketflow.webhook.notifier import WebhookNotifier
from ticketflow.webhook.routes import router as webhook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    store: TicketStore = app.state.store

    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)
    # StartupFailure propagates and aborts startup
    store.initialize()
    migrate_from_json(store, settings.LEGACY_JSON_PATH, settings.LEGACY_COLLECTION)
    store.verify_state()
    try:
        yield
    finally:
        logger.info("Shutting down %s", settings.APP_NAME)
        store.close()


def create_app(
    settings: Settings | None = None,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESC,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = TicketStore(settings.DATABASE_URL)
    app.state.notifier = WebhookNotifier(
        url=settings.WEBHOOK_URL,
        enabled=settings.WEBHOOK_ENABLED,
        timeout=settings.WEBHOOK_TIMEOUT,
        transport=webhook_transport,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(ticket_router)
    app.include_router(webhook_router)

    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok", "timestamp": utc_now_iso()}

    @app.get("/echo", tags=["Health"])
    def echo(request: Request):
        return dict(request.query_params)

    return app


app = create_app()
