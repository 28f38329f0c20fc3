"""Cart validation against locally known stock facts."""
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from .models import (
    AppliedDiscount,
    CartValidation,
    ResolvedLineItem,
    Severity,
    ValidationIssue,
    ValidationIssueType,
    ensure_utc,
)


class CartValidator:
    """
    Classify line items into blocking errors and warnings.

    Uses only facts already on the items (in_stock, low_stock, quantity vs
    max_quantity, availability flags). It never calls the catalog; refresh
    the items first if stock might be stale.
    """

    def __init__(
        self,
        discount_expiry_window: timedelta = timedelta(hours=24),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.discount_expiry_window = discount_expiry_window
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def validate(
        self,
        items: Sequence[ResolvedLineItem],
        discounts: Sequence[AppliedDiscount] = (),
    ) -> CartValidation:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        for item in items:
            name = item.display_name

            if not item.product_available:
                errors.append(_error(
                    ValidationIssueType.PRODUCT_UNAVAILABLE,
                    f"{item.product_name} is no longer available",
                    item,
                ))
            elif item.variant_id and not item.variant_available:
                errors.append(_error(
                    ValidationIssueType.VARIANT_UNAVAILABLE,
                    f"Selected option for {item.product_name} is no longer available",
                    item,
                ))

            if not item.in_stock:
                errors.append(_error(
                    ValidationIssueType.OUT_OF_STOCK,
                    f"{name} is out of stock",
                    item,
                ))

            if item.low_stock:
                warnings.append(_warning(
                    ValidationIssueType.LOW_STOCK,
                    f"Only {item.max_quantity} {name} left in stock",
                    item_id=item.id,
                ))

            if item.quantity > item.max_quantity:
                errors.append(_error(
                    ValidationIssueType.QUANTITY_LIMIT,
                    f"Quantity exceeds available stock for {name}",
                    item,
                ))

            if item.price_changed:
                warnings.append(_warning(
                    ValidationIssueType.PRICE_CHANGED,
                    f"Price of {name} changed from {item.previous_unit_price} to {item.unit_price}",
                    item_id=item.id,
                ))

        now = ensure_utc(self._clock())
        for discount in discounts:
            if discount.expires_at and now <= discount.expires_at <= now + self.discount_expiry_window:
                warnings.append(_warning(
                    ValidationIssueType.DISCOUNT_EXPIRING,
                    f"Discount {discount.code} expires soon",
                    code=discount.code,
                ))

        return CartValidation(errors=tuple(errors), warnings=tuple(warnings))


def _error(issue_type: ValidationIssueType, message: str, item: ResolvedLineItem) -> ValidationIssue:
    return ValidationIssue(
        type=issue_type,
        message=message,
        severity=Severity.ERROR,
        item_id=item.id,
    )


def _warning(issue_type: ValidationIssueType, message: str, item_id=None, code=None) -> ValidationIssue:
    return ValidationIssue(
        type=issue_type,
        message=message,
        severity=Severity.WARNING,
        item_id=item_id,
        code=code,
    )
