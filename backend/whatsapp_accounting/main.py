"""
WhatsApp Accounting Backend.

ARCHITECTURE:
- Provider webhooks (BotBiz, Twilio, 360dialog, Meta) and a generic /webhook
  normalize inbound chat messages for the conversation handler
- Conversation handler: intent parsing -> ledger -> reply, one state machine
- SQLite/Postgres via SQLAlchemy: customers, payments, processed messages
- Dashboard API: customers, payments, totals, provider settings

The messaging provider is chosen once at startup and kept on app.state.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from whatsapp_accounting.agent.conversation import ConversationHandler
from whatsapp_accounting.api.routes import (
    customers,
    payments,
    webhook,
    whatsapp_360dialog,
    whatsapp_botbiz,
    whatsapp_meta,
    whatsapp_twilio,
)
from whatsapp_accounting.api.routes import settings as settings_routes
from whatsapp_accounting.core.config import settings
from whatsapp_accounting.core.rate_limiter import RateLimitMiddleware
from whatsapp_accounting.db.init_db import init_db
from whatsapp_accounting.db.session import SessionLocal
from whatsapp_accounting.whatsapp.botbiz_poller import BotBizPoller
from whatsapp_accounting.whatsapp.providers import BotBizProvider, build_provider

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Initialize database tables
    2. Build the configured WhatsApp provider
    3. Start the BotBiz poller (BotBiz active and polling enabled)

    Shutdown:
    1. Stop the poller
    """
    configure_logging()
    logger.info("[*] Initializing database...")
    init_db()

    if getattr(app.state, "provider", None) is None:
        app.state.provider = build_provider(settings)
    provider = app.state.provider

    poller = None
    if isinstance(provider, BotBizProvider) and settings.BOTBIZ_POLLING_ENABLED:
        poller = BotBizPoller(
            provider,
            ConversationHandler(SessionLocal, provider=provider),
            interval_ms=settings.BOTBIZ_POLLING_INTERVAL,
        )
        poller.start()
    app.state.poller = poller

    yield

    if poller is not None:
        await poller.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="WhatsApp Accounting API",
        description="Payments and balances kept over WhatsApp chat, with a small dashboard API.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Dashboard origins only; provider webhooks are server-to-server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
        max_age=600,
        expose_headers=["Content-Type"],
    )

    app.add_middleware(RateLimitMiddleware)

    @app.middleware("http")
    async def add_security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    app.include_router(webhook.router, tags=["webhook"])
    app.include_router(whatsapp_twilio.router, prefix="/api/whatsapp/twilio", tags=["whatsapp"])
    app.include_router(whatsapp_meta.router, prefix="/api/whatsapp/meta", tags=["whatsapp"])
    app.include_router(whatsapp_360dialog.router, prefix="/api/whatsapp/360dialog", tags=["whatsapp"])
    app.include_router(whatsapp_botbiz.router, prefix="/api/whatsapp/botbiz", tags=["whatsapp"])
    app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
    app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
    app.include_router(settings_routes.router, prefix="/api/settings", tags=["settings"])

    @app.get("/health")
    def health():
        provider = getattr(app.state, "provider", None)
        return {"status": "ok", "provider": provider.name if provider else None}

    @app.get("/")
    def root():
        return {"message": "WhatsApp Accounting API is running"}

    return app


app = create_app()
