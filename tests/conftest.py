# tests/conftest.py

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from storefront.api import deps
from storefront.core.config import Settings
from storefront.core.limiter import limiter
from storefront.db.base import Base
from storefront.main import create_app
from storefront.schemas.token import TokenPayload
from storefront.services.payment.provider_factory import PaymentProviderFactory
from storefront.services.payment.provider_interface import (
    PaymentConfirmation,
    PaymentSession,
)
from storefront.services.post_purchase import PostPurchaseDispatcher

BUYER = TokenPayload(sub="buyer_123", email="buyer@example.com", name="Test Buyer", exp=4102444800)
ADMIN = TokenPayload(sub="admin_1", email="admin@example.com", name="Admin", role="admin", exp=4102444800)


# --- Database ---
@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# --- Configuration ---
@pytest.fixture(scope="function")
def settings():
    return Settings(
        _env_file=None,
        ENV="test",
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-secret",
        APP_URL="https://store.test",
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_KEY_SECRET="rzp_test_secret",
        RAZORPAY_WEBHOOK_SECRET="rzp_webhook_secret",
        CASHFREE_APP_ID=None,
        CASHFREE_SECRET_KEY=None,
        STRIPE_SECRET_KEY=None,
        RESEND_API_KEY=None,
    )


# --- Payment provider ---
@pytest.fixture(scope="function")
def fake_provider():
    """A razorpay-coded provider whose gateway calls are mocked."""
    provider = MagicMock()
    provider.code = "razorpay"
    provider.name = "Razorpay"
    provider.get_publishable_key.return_value = "rzp_test_key"
    provider.create_session = AsyncMock(
        side_effect=lambda params: PaymentSession(
            session_ref=f"order_gw_{params.order_id}",
            client_session_token=f"order_gw_{params.order_id}",
            public_key="rzp_test_key",
        )
    )
    provider.confirm_payment = AsyncMock(
        return_value=PaymentConfirmation(
            succeeded=True, confirmation_id="pay_abc123", status="captured"
        )
    )
    provider.verify_webhook_signature.return_value = True
    return provider


@pytest.fixture(scope="function")
def provider_factory(settings, fake_provider):
    return PaymentProviderFactory(settings, providers={"razorpay": fake_provider})


@pytest.fixture(scope="function")
def email_sender():
    return MagicMock(return_value={"success": True, "id": "email_1"})


@pytest.fixture(scope="function")
def dispatcher(session_factory, settings, email_sender):
    """Runs post-purchase handlers inline."""
    return PostPurchaseDispatcher(session_factory, settings, email_sender=email_sender)


# --- Application ---
@pytest.fixture(scope="function")
def app(settings, session_factory, provider_factory):
    limiter.reset()
    app = create_app(
        settings, session_factory=session_factory, provider_factory=provider_factory
    )
    app.dependency_overrides[deps.get_current_user] = lambda: BUYER
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture(scope="function")
def admin_client(app):
    app.dependency_overrides[deps.get_current_user] = lambda: ADMIN
    with TestClient(app) as client:
        yield client
