"""Pytest configuration and fixtures"""
import os
from decimal import Decimal
from unittest.mock import Mock

import pytest
import pytest_asyncio

# Set test environment variables before storefront.db reads them
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from storefront.cart import (  # noqa: E402
    CartPersistence,
    CartStore,
    CatalogEntry,
    DiscountCode,
    DiscountType,
    InMemoryCatalog,
    InMemoryDiscounts,
    MemoryStorage,
)
from storefront.config import CartSettings  # noqa: E402


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client"""
    client = Mock()

    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.limit.return_value = table_mock
    table_mock.order.return_value = table_mock

    client.table.return_value = table_mock
    return client


@pytest.fixture
def sample_product():
    """Sample `products` row"""
    return {
        "id": "prod-001",
        "name": "Wireless Headphones",
        "description": "Noise cancelling",
        "price": 50.0,
        "status": "active",
        "stock_count": 5,
    }


@pytest.fixture
def settings():
    return CartSettings()


@pytest.fixture
def catalog():
    """Catalog with a few products covering the stock cases"""
    return InMemoryCatalog([
        CatalogEntry(product_id="prod-001", name="Wireless Headphones",
                     unit_price=Decimal("50.00"), max_quantity=5),
        CatalogEntry(product_id="prod-002", name="Paperback Book",
                     unit_price=Decimal("20.00"), max_quantity=10),
        CatalogEntry(product_id="prod-003", name="Limited Print",
                     unit_price=Decimal("30.00"), max_quantity=3, low_stock=True),
        CatalogEntry(product_id="prod-004", name="Running Shoes", variant_id="size-42",
                     variant_name="Size 42", unit_price=Decimal("80.00"), max_quantity=4),
        CatalogEntry(product_id="prod-004", name="Running Shoes", variant_id="size-43",
                     variant_name="Size 43", unit_price=Decimal("85.00"), max_quantity=2),
        CatalogEntry(product_id="prod-005", name="Backordered Lamp",
                     unit_price=Decimal("40.00"), max_quantity=5, in_stock=False),
    ])


@pytest.fixture
def discounts():
    return InMemoryDiscounts([
        DiscountCode(code="SAVE10", type=DiscountType.PERCENTAGE,
                     value=Decimal("10"), minimum_amount=Decimal("50")),
        DiscountCode(code="FIVEOFF", type=DiscountType.FIXED, value=Decimal("5")),
        DiscountCode(code="HUGE", type=DiscountType.FIXED, value=Decimal("1000")),
        DiscountCode(code="RETIRED", type=DiscountType.FIXED, value=Decimal("5"),
                     is_active=False),
    ])


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def persistence(storage):
    return CartPersistence(storage, "shopping-cart:test-session")


@pytest_asyncio.fixture
async def store(catalog, discounts, persistence, settings):
    """Initialized cart store backed by in-memory storage"""
    cart = CartStore(catalog, discounts, persistence=persistence, settings=settings)
    await cart.init()
    yield cart
    await cart.dispose()
