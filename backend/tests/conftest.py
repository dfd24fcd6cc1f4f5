"""
Pytest fixtures and configuration for the storefront backend tests

Repository and service tests patch get_db_connection_dict; API tests
run the FastAPI app in-process with authentication overridden.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.core.auth import TokenUser, get_current_tenant_user, get_current_user
from storefront.core.rate_limit import rate_limiter
from storefront.domain.tenant import Tenant

TENANT_ID = "11111111-1111-1111-1111-111111111111"
USER_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def tenant_id():
    return TENANT_ID


@pytest.fixture
def tenant():
    """An active store that can accept payments"""
    return Tenant(
        id=TENANT_ID,
        name="Demo Store",
        slug="demo",
        currency="USD",
        stripe_account_id="acct_123",
        stripe_onboarding_complete=True,
    )


@pytest.fixture
def admin_user():
    return TokenUser(id=USER_ID, email="owner@demo.test", tenant_id=TENANT_ID, name="Owner", role="admin")


@pytest.fixture
def now():
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def product_row():
    """A products row as returned by RealDictCursor"""
    return {
        'id': 'prod-1',
        'tenant_id': TENANT_ID,
        'name': 'Cold Brew Kit',
        'slug': 'cold-brew-kit',
        'sku': 'CBK-001',
        'description': 'Everything to brew at home',
        'price': Decimal('49.90'),
        'compare_at_price': None,
        'cost_price': Decimal('20.00'),
        'quantity': 12,
        'track_quantity': True,
        'low_stock_threshold': 5,
        'status': 'active',
        'category_id': 'cat-1',
        'images': ['https://cdn.test/cbk.jpg'],
        'created_at': datetime(2025, 5, 1, tzinfo=timezone.utc),
        'updated_at': datetime(2025, 5, 2, tzinfo=timezone.utc),
    }


@pytest.fixture
def client(admin_user):
    """
    TestClient with the dashboard user injected

    Scope: function (overrides are cleared after each test)
    """
    from storefront.main import app

    app.dependency_overrides[get_current_user] = lambda: admin_user
    app.dependency_overrides[get_current_tenant_user] = lambda: admin_user
    rate_limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    rate_limiter.reset()
