"""
Tests for cart models
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.cart import (
    CartValidation,
    CatalogEntry,
    PendingLineItem,
    ResolvedLineItem,
    ValidationIssue,
    ValidationIssueType,
)
from storefront.cart.models import CartState, Severity


def make_entry(**overrides):
    fields = dict(
        product_id="prod-123",
        name="Mechanical Keyboard",
        unit_price=Decimal("99.90"),
        max_quantity=10,
    )
    fields.update(overrides)
    return CatalogEntry(**fields)


class TestPendingLineItem:
    """Tests for PendingLineItem."""

    def test_key_includes_variant(self):
        """Test product/variant key."""
        item = PendingLineItem(id="cart_1", product_id="prod-123", quantity=1, variant_id="red")

        assert item.key == ("prod-123", "red")
        assert item.added_at.tzinfo is not None


class TestResolvedLineItem:
    """Tests for ResolvedLineItem."""

    def test_total_price_is_derived(self):
        """Test total price for quantity."""
        item = ResolvedLineItem.from_pending(
            PendingLineItem(id="cart_1", product_id="prod-123", quantity=3),
            make_entry(),
        )

        # 99.90 * 3 = 299.70
        assert item.total_price == Decimal("299.70")
        assert item.with_quantity(1).total_price == Decimal("99.90")

    def test_float_price_is_normalized(self):
        item = ResolvedLineItem(
            id="cart_1", product_id="p", quantity=3,
            unit_price=0.1, product_name="Sticker", max_quantity=10,
        )

        assert item.unit_price == Decimal("0.1")
        assert item.total_price == Decimal("0.30")

    def test_from_pending_caps_max_quantity(self):
        """Test store-wide quantity cap on top of stock."""
        pending = PendingLineItem(id="cart_1", product_id="prod-123", quantity=1)

        assert ResolvedLineItem.from_pending(pending, make_entry(max_quantity=500), 99).max_quantity == 99
        assert ResolvedLineItem.from_pending(pending, make_entry(max_quantity=3), 99).max_quantity == 3

    def test_from_pending_keeps_identity(self):
        added = datetime(2025, 1, 1, tzinfo=timezone.utc)
        pending = PendingLineItem(
            id="cart_1", product_id="prod-123", quantity=2,
            variant_id="blue", added_at=added, updated_at=added,
        )

        item = ResolvedLineItem.from_pending(
            pending, make_entry(variant_id="blue", variant_name="Blue")
        )

        assert item.id == "cart_1"
        assert item.added_at == added
        assert item.display_name == "Mechanical Keyboard (Blue)"
        assert item.to_pending() == pending

    def test_previous_price_kept_only_when_changed(self):
        pending = PendingLineItem(id="cart_1", product_id="prod-123", quantity=1)

        same = ResolvedLineItem.from_pending(pending, make_entry(), previous_unit_price=Decimal("99.90"))
        changed = ResolvedLineItem.from_pending(pending, make_entry(), previous_unit_price=Decimal("89.90"))

        assert same.previous_unit_price is None
        assert not same.price_changed
        assert changed.price_changed

    def test_with_quantity_returns_copy(self):
        item = ResolvedLineItem.from_pending(
            PendingLineItem(id="cart_1", product_id="prod-123", quantity=1), make_entry()
        )

        updated = item.with_quantity(4)

        assert updated.quantity == 4
        assert item.quantity == 1
        assert updated.updated_at >= item.updated_at

    def test_to_dict(self):
        """Test serialization to dict."""
        item = ResolvedLineItem.from_pending(
            PendingLineItem(id="cart_1", product_id="prod-123", quantity=2), make_entry()
        )

        data = item.to_dict()

        assert data["unit_price"] == 99.9
        assert data["total_price"] == 199.8
        assert data["quantity"] == 2
        assert isinstance(data["added_at"], str)


class TestCartValidation:
    """Tests for CartValidation helpers."""

    def test_errors_for_item(self):
        issue = ValidationIssue(
            type=ValidationIssueType.OUT_OF_STOCK,
            message="gone",
            severity=Severity.ERROR,
            item_id="cart_1",
        )
        validation = CartValidation(errors=(issue,))

        assert not validation.is_valid
        assert validation.errors_for("cart_1") == [issue]
        assert validation.errors_for("cart_2") == []
        assert validation.has_error(ValidationIssueType.OUT_OF_STOCK)
        assert not validation.has_error(ValidationIssueType.OUT_OF_STOCK, "cart_2")


class TestCartState:
    """Tests for CartState lookups."""

    def test_find_by_key_distinguishes_variants(self):
        pending = PendingLineItem(id="cart_1", product_id="prod-123", quantity=1, variant_id="red")
        state = CartState(items=[
            ResolvedLineItem.from_pending(pending, make_entry(variant_id="red"))
        ])

        assert state.find_by_key("prod-123", "red").id == "cart_1"
        assert state.find_by_key("prod-123") is None
        assert state.find_item("missing") is None


class TestCatalogEntry:
    @pytest.mark.parametrize("product_available,variant_available,expected", [
        (True, True, True),
        (False, True, False),
        (True, False, False),
    ])
    def test_is_purchasable(self, product_available, variant_available, expected):
        entry = make_entry(
            product_available=product_available, variant_available=variant_available
        )
        assert entry.is_purchasable is expected
