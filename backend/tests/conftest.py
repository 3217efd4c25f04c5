import os

# Settings are read at import time; pin the test environment first
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
os.environ["OUTBOX_WORKER_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ADMIN_PASSWORD"] = "admin-secret"
os.environ["QUOTE_TOKEN_SECRET"] = "test-quote-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["MAIL_USERNAME"] = "studio@example.com"
os.environ["CONTACT_EMAIL"] = "admin@example.com"
os.environ["BASE_URL"] = "https://studio.example.com"
os.environ["EMAIL_SEND_DELAY_SECONDS"] = "3"

from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import app.models.domain  # noqa: F401
import app.models.outbox  # noqa: F401
from app.api.deps import get_db, get_email_provider, get_stripe_client
from app.core.config import settings
from app.main import app
from app.services.workflow_service import QuoteWorkflowService, build_quote_workflow
from tests.utils.test_utils import FIXED_NOW, FakeEmailProvider


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a test database session."""
    # Create an in-memory SQLite database for testing
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        yield session

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def email_provider() -> FakeEmailProvider:
    return FakeEmailProvider()


@pytest.fixture(scope="function")
def stripe_client() -> MagicMock:
    """Mock StripeClient returning a fixed payment intent."""
    mock_client = MagicMock()
    intent = MagicMock()
    intent.id = "pi_test_123"
    intent.client_secret = "pi_test_123_secret_abc"
    mock_client.payment_intents.create.return_value = intent
    return mock_client


@pytest.fixture(scope="function")
def workflow(db: Session, email_provider: FakeEmailProvider) -> QuoteWorkflowService:
    """Workflow wired from test settings with a fixed clock."""
    service = build_quote_workflow(db, settings, email_provider)
    service.clock = lambda: FIXED_NOW
    return service


@pytest.fixture(scope="function")
def client(db: Session, email_provider: FakeEmailProvider, stripe_client: MagicMock) -> Generator[TestClient, None, None]:
    """Create a test client bound to the test session and fake providers."""

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_email_provider] = lambda: email_provider
    app.dependency_overrides[get_stripe_client] = lambda: stripe_client

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def admin_client(client: TestClient) -> TestClient:
    """Test client carrying the admin cookie."""
    client.cookies.set("invoice-auth", "admin-secret")
    return client
