"""FastAPI dependencies: DB session, messaging provider, conversation handler.

The provider is built once in the app lifespan and kept on app.state; tests
override these dependencies instead of patching globals.
"""
from typing import Callable, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from whatsapp_accounting.agent.conversation import ConversationHandler
from whatsapp_accounting.core.config import settings
from whatsapp_accounting.db.session import SessionLocal
from whatsapp_accounting.whatsapp.providers import MessagingProvider, build_provider


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    """Session factory for work that outlives the request (background tasks)."""
    return SessionLocal


def get_provider(request: Request) -> MessagingProvider:
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        provider = build_provider(settings)
        request.app.state.provider = provider
    return provider


def get_conversation_handler(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    provider: MessagingProvider = Depends(get_provider),
) -> ConversationHandler:
    return ConversationHandler(session_factory, provider=provider)
