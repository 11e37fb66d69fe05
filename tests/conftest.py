"""
Test configuration and fixtures for Careerlyst Billing.

Provides shared fixtures for unit and integration tests.
"""

import os

# Settings are validated at import time; give the app a test environment
os.environ.setdefault("SUPABASE_URL", "https://testproject.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-that-is-long-enough-for-hs256")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from tests.factories import USER_EMAIL, USER_ID, make_subscription


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application."""
    from careerlyst.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


@pytest.fixture
def mock_user():
    """The authenticated caller."""
    from careerlyst.api.dependencies import AuthenticatedUser
    return AuthenticatedUser(id=USER_ID, email=USER_EMAIL)


@pytest.fixture
def auth_client(app, client, mock_user):
    """Client whose requests are authenticated as ``mock_user``."""
    from careerlyst.api.dependencies import get_current_user
    app.dependency_overrides[get_current_user] = lambda: mock_user
    return client


@pytest.fixture
def mock_reconciler(app):
    """Mock SubscriptionReconciler injected into the routes."""
    from careerlyst.api.dependencies import get_reconciler
    mock = MagicMock()
    for name in (
        "sync_for_user",
        "transfer_legacy_user",
        "transfer_by_customer",
        "set_cancel_at_period_end",
        "change_plan",
        "reconcile_webhook_subscription",
        "mark_subscription_canceled",
        "mark_subscription_past_due",
    ):
        setattr(mock, name, AsyncMock())
    app.dependency_overrides[get_reconciler] = lambda: mock
    return mock


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_stripe_service():
    """Mock for StripeService."""
    mock = MagicMock()
    mock.find_customer_id_by_email = AsyncMock(return_value=None)
    mock.retrieve_customer = AsyncMock()
    mock.tag_customer_transfer = AsyncMock()
    mock.list_subscriptions = AsyncMock(return_value=[])
    mock.retrieve_subscription = AsyncMock()
    mock.set_cancel_at_period_end = AsyncMock()
    mock.change_subscription_price = AsyncMock()
    return mock


@pytest.fixture
def mock_subscription_repo():
    """Mock for SubscriptionRepository."""
    mock = MagicMock()
    mock.get_customer_id_for_user = AsyncMock(return_value=None)
    mock.get_active_for_user = AsyncMock(return_value=None)
    mock.upsert = AsyncMock()
    mock.mark_status = AsyncMock(return_value=1)
    return mock


@pytest.fixture
def mock_legacy_repo():
    """Mock for LegacyUserRepository."""
    mock = MagicMock()
    mock.get_by_email = AsyncMock(return_value=None)
    mock.mark_matched = AsyncMock()
    return mock


@pytest.fixture
def mock_portfolio_repo():
    """Mock for PortfolioRepository."""
    mock = MagicMock()
    mock.unpublish_for_user = AsyncMock(return_value=0)
    return mock


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def sample_subscriptions() -> List[Dict[str, Any]]:
    """A customer's subscriptions, newest first, with the active one listed last."""
    return [
        make_subscription(id="sub_canceled", status="canceled", metadata={"plan": "learn"}),
        make_subscription(id="sub_past_due", status="past_due", metadata={"plan": "learn"}),
        make_subscription(id="sub_active", status="active", metadata={"plan": "accelerate"}),
    ]
