"""
Tests for the Supabase-backed catalog and discount lookups
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest

from storefront.cart import DiscountType, SupabaseCatalog, SupabaseDiscounts


def result(rows):
    return Mock(data=rows)


class TestSupabaseCatalog:
    """Tests for SupabaseCatalog.resolve."""

    @pytest.mark.asyncio
    async def test_resolve_product(self, mock_supabase_client, sample_product):
        table = mock_supabase_client.table.return_value
        table.execute.return_value = result([sample_product])

        entry = await SupabaseCatalog(mock_supabase_client).resolve("prod-001")

        mock_supabase_client.table.assert_called_with("products")
        table.eq.assert_called_with("id", "prod-001")
        assert entry.name == "Wireless Headphones"
        assert entry.unit_price == Decimal("50.0")
        assert entry.max_quantity == 5
        assert entry.in_stock is True
        assert entry.low_stock is True
        assert entry.is_purchasable

    @pytest.mark.asyncio
    async def test_unknown_product(self, mock_supabase_client):
        mock_supabase_client.table.return_value.execute.return_value = result([])

        assert await SupabaseCatalog(mock_supabase_client).resolve("nope") is None

    @pytest.mark.asyncio
    async def test_out_of_stock_and_inactive(self, mock_supabase_client, sample_product):
        row = {**sample_product, "stock_count": 0, "status": "archived"}
        mock_supabase_client.table.return_value.execute.return_value = result([row])

        entry = await SupabaseCatalog(mock_supabase_client).resolve("prod-001")

        assert entry.in_stock is False
        assert entry.low_stock is False
        assert entry.product_available is False

    @pytest.mark.asyncio
    async def test_variant_overrides_price_and_stock(self, mock_supabase_client, sample_product):
        variant = {
            "id": "size-42", "product_id": "prod-001", "name": "Size 42",
            "price": 65.0, "stock_quantity": 20, "is_active": True,
        }
        mock_supabase_client.table.return_value.execute.side_effect = [
            result([sample_product]),
            result([variant]),
        ]

        entry = await SupabaseCatalog(mock_supabase_client).resolve("prod-001", "size-42")

        assert entry.unit_price == Decimal("65.0")
        assert entry.max_quantity == 20
        assert entry.low_stock is False
        assert entry.variant_name == "Size 42"
        assert entry.variant_available is True

    @pytest.mark.asyncio
    async def test_missing_variant_is_unavailable(self, mock_supabase_client, sample_product):
        mock_supabase_client.table.return_value.execute.side_effect = [
            result([sample_product]),
            result([]),
        ]

        entry = await SupabaseCatalog(mock_supabase_client).resolve("prod-001", "size-99")

        assert entry.variant_available is False
        assert entry.in_stock is False
        assert not entry.is_purchasable


class TestSupabaseDiscounts:
    """Tests for SupabaseDiscounts.lookup."""

    @pytest.mark.asyncio
    async def test_percent_code(self, mock_supabase_client):
        mock_supabase_client.table.return_value.execute.return_value = result([{
            "code": "save10",
            "discount_percent": 10,
            "discount_amount": None,
            "min_order_amount": 50,
            "valid_until": "2030-01-01T00:00:00Z",
            "is_active": True,
        }])

        code = await SupabaseDiscounts(mock_supabase_client).lookup("save10")

        mock_supabase_client.table.assert_called_with("promo_codes")
        mock_supabase_client.table.return_value.eq.assert_called_with("code", "SAVE10")
        assert code.code == "SAVE10"
        assert code.type == DiscountType.PERCENTAGE
        assert code.value == Decimal("10")
        assert code.minimum_amount == Decimal("50")
        assert code.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert code.describe() == "10% discount"

    @pytest.mark.asyncio
    async def test_fixed_code(self, mock_supabase_client):
        mock_supabase_client.table.return_value.execute.return_value = result([{
            "code": "FIVEOFF",
            "discount_percent": None,
            "discount_amount": 5,
            "is_active": False,
        }])

        code = await SupabaseDiscounts(mock_supabase_client).lookup("FIVEOFF")

        assert code.type == DiscountType.FIXED
        assert code.value == Decimal("5")
        assert code.minimum_amount is None
        assert code.is_active is False
        assert code.describe("USD") == "$5.00 off"

    @pytest.mark.asyncio
    async def test_unknown_code(self, mock_supabase_client):
        mock_supabase_client.table.return_value.execute.return_value = result([])

        assert await SupabaseDiscounts(mock_supabase_client).lookup("NOPE") is None

    @pytest.mark.asyncio
    async def test_expiry_without_offset_is_utc(self, mock_supabase_client):
        mock_supabase_client.table.return_value.execute.return_value = result([{
            "code": "SPRING",
            "discount_percent": 15,
            "valid_until": "2030-03-01T12:00:00",
        }])

        code = await SupabaseDiscounts(mock_supabase_client).lookup("SPRING")

        assert code.expires_at == datetime(2030, 3, 1, 12, tzinfo=timezone.utc)
        assert code.is_expired(datetime(2030, 3, 2)) is True
        assert code.is_expired() is False
