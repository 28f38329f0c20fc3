"""Cart pricing. Pure derivation, recomputed on every read."""
from decimal import Decimal
from typing import Optional, Sequence

from storefront.money import ZERO, money_sum, percent, round_money, to_decimal
from .discounts import DiscountCode
from .models import (
    AppliedDiscount,
    CartTotals,
    DiscountType,
    ResolvedLineItem,
    ShippingOption,
)


class PricingEngine:
    """
    Flat-rate pricing for a cart.

    Each total is derived from scratch:
    1. subtotal = sum of line totals
    2. shipping = selected option cost, else the default, only when non-empty
    3. tax = subtotal * tax_rate
    4. discount = sum of applied discount amounts (they stack)
    5. total = subtotal + shipping + tax - discount, never below zero
    """

    def __init__(
        self,
        tax_rate: Decimal = Decimal("0.08"),
        default_shipping_cost: Decimal = Decimal("5.99"),
        currency: str = "USD",
    ):
        self.tax_rate = to_decimal(tax_rate)
        self.default_shipping_cost = to_decimal(default_shipping_cost)
        self.currency = currency

    @classmethod
    def from_settings(cls, settings) -> "PricingEngine":
        return cls(
            tax_rate=settings.tax_rate,
            default_shipping_cost=settings.default_shipping_cost,
            currency=settings.currency,
        )

    def subtotal(self, items: Sequence[ResolvedLineItem]) -> Decimal:
        return round_money(money_sum(item.total_price for item in items))

    def shipping(
        self,
        items: Sequence[ResolvedLineItem],
        shipping_option: Optional[ShippingOption] = None,
    ) -> Decimal:
        if not items:
            return ZERO
        if shipping_option is not None:
            return round_money(shipping_option.cost)
        return round_money(self.default_shipping_cost)

    def tax(self, subtotal: Decimal) -> Decimal:
        return round_money(subtotal * self.tax_rate)

    def discount(self, discounts: Sequence[AppliedDiscount]) -> Decimal:
        return round_money(money_sum(d.discount for d in discounts))

    def totals(
        self,
        items: Sequence[ResolvedLineItem],
        shipping_option: Optional[ShippingOption] = None,
        discounts: Sequence[AppliedDiscount] = (),
    ) -> CartTotals:
        subtotal = self.subtotal(items)
        shipping = self.shipping(items, shipping_option)
        tax = self.tax(subtotal)
        discount = self.discount(discounts)
        total = max(ZERO, round_money(subtotal + shipping + tax - discount))
        return CartTotals(
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            discount=discount,
            total=total,
            currency=self.currency,
        )

    def discount_amount(self, code: DiscountCode, subtotal: Decimal) -> Decimal:
        """Amount a code is worth against the given subtotal."""
        if code.type == DiscountType.PERCENTAGE:
            return round_money(percent(subtotal, code.value))
        return round_money(code.value)
