"""
Pytest configuration and fixtures for the WhatsApp accounting backend.

Every test gets a fresh in-memory SQLite database (StaticPool, so the
handler's own sessions and the request sessions see the same data) and a
RecordingProvider that captures outbound messages instead of calling a
real WhatsApp API.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from whatsapp_accounting.agent.conversation import ConversationHandler
from whatsapp_accounting.api.deps import get_db, get_provider, get_session_factory
from whatsapp_accounting.db.base import Base
from whatsapp_accounting.db.init_db import init_db
from whatsapp_accounting.main import create_app
from whatsapp_accounting.whatsapp.providers import MessagingProvider, SendResult


class RecordingProvider(MessagingProvider):
    """Captures (to, text) pairs. Set ``fail`` to simulate a rejected send."""

    name = "recording"

    def __init__(self):
        super().__init__(timeout=1)
        self.sent = []
        self.fail = False

    def _send(self, to: str, text: str) -> SendResult:
        if self.fail:
            return SendResult(success=False, provider=self.name, error="Simulated failure")
        self.sent.append((to, text))
        return SendResult(success=True, provider=self.name, message_id=f"msg-{len(self.sent)}")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def handler(session_factory, provider):
    return ConversationHandler(session_factory, provider=provider)


@pytest.fixture
def app(session_factory, provider):
    app = create_app()
    app.state.provider = provider

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_provider] = lambda: provider
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)
