"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from storefront.money import round_money, multiply, to_decimal, to_float

if TYPE_CHECKING:
    from .catalog import CatalogEntry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Make a datetime timezone-aware in UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================
# Options
# ============================================

class ShippingType(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"
    PICKUP = "pickup"


class ShippingOption(BaseModel):
    """Selected shipping method. Only one can be active per cart."""
    id: str
    name: str
    cost: Decimal = Field(ge=0)
    description: str = ""
    estimated_days: Optional[str] = None
    type: ShippingType = ShippingType.STANDARD


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AppliedDiscount(BaseModel):
    """Discount redeemed on the cart; amount is fixed at application time."""
    code: str
    discount: Decimal = Field(ge=0)
    type: DiscountType
    value: Decimal = Field(ge=0)
    description: str = ""
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def _expires_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


# ============================================
# Line items
# ============================================

@dataclass
class PendingLineItem:
    """
    Line item identity and quantity, before catalog resolution.

    This is what gets persisted. It carries no price or stock data, so it
    cannot be mistaken for a priced line.
    """
    id: str
    product_id: str
    quantity: int
    variant_id: Optional[str] = None
    added_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.product_id, self.variant_id)


@dataclass
class ResolvedLineItem:
    """Line item enriched with the catalog's price and stock snapshot."""
    id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    product_name: str
    max_quantity: int
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    in_stock: bool = True
    low_stock: bool = False
    product_available: bool = True
    variant_available: bool = True
    previous_unit_price: Optional[Decimal] = None  # set when a refresh saw a new price
    added_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.unit_price = to_decimal(self.unit_price)
        if self.previous_unit_price is not None:
            self.previous_unit_price = to_decimal(self.previous_unit_price)

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.product_id, self.variant_id)

    @property
    def total_price(self) -> Decimal:
        """Total price for all units, always derived from unit_price."""
        return round_money(multiply(self.unit_price, self.quantity))

    @property
    def price_changed(self) -> bool:
        return (
            self.previous_unit_price is not None
            and self.previous_unit_price != self.unit_price
        )

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.product_name} ({self.variant_name})"
        return self.product_name

    def with_quantity(self, quantity: int, now: Optional[datetime] = None) -> "ResolvedLineItem":
        """Copy with a new quantity and a refreshed updated_at."""
        return replace(self, quantity=quantity, updated_at=now or utcnow())

    def to_pending(self) -> PendingLineItem:
        return PendingLineItem(
            id=self.id,
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            added_at=self.added_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_pending(
        cls,
        pending: PendingLineItem,
        entry: "CatalogEntry",
        max_quantity_cap: Optional[int] = None,
        previous_unit_price: Optional[Decimal] = None,
    ) -> "ResolvedLineItem":
        """
        Resolve a pending item against a catalog entry.

        Args:
            pending: Item identity and quantity
            entry: Current catalog facts for the item's product/variant
            max_quantity_cap: Store-wide ceiling applied on top of catalog stock
            previous_unit_price: Last known price, kept only when it differs

        Returns:
            Resolved line item
        """
        max_quantity = entry.max_quantity
        if max_quantity_cap is not None:
            max_quantity = min(max_quantity, max_quantity_cap)

        if previous_unit_price is not None and to_decimal(previous_unit_price) == entry.unit_price:
            previous_unit_price = None

        return cls(
            id=pending.id,
            product_id=pending.product_id,
            variant_id=pending.variant_id,
            quantity=pending.quantity,
            unit_price=entry.unit_price,
            product_name=entry.name,
            variant_name=entry.variant_name,
            max_quantity=max_quantity,
            in_stock=entry.in_stock,
            low_stock=entry.low_stock,
            product_available=entry.product_available,
            variant_available=entry.variant_available,
            previous_unit_price=previous_unit_price,
            added_at=pending.added_at,
            updated_at=pending.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary for UI payloads."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "quantity": self.quantity,
            "unit_price": to_float(self.unit_price),
            "total_price": to_float(self.total_price),
            "in_stock": self.in_stock,
            "low_stock": self.low_stock,
            "max_quantity": self.max_quantity,
            "added_at": self.added_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


LineItem = Union[PendingLineItem, ResolvedLineItem]


# ============================================
# Validation
# ============================================

class ValidationIssueType(str, Enum):
    # Blocking
    OUT_OF_STOCK = "out_of_stock"
    QUANTITY_LIMIT = "quantity_limit"
    PRODUCT_UNAVAILABLE = "product_unavailable"
    VARIANT_UNAVAILABLE = "variant_unavailable"
    # Informational
    LOW_STOCK = "low_stock"
    PRICE_CHANGED = "price_changed"
    DISCOUNT_EXPIRING = "discount_expiring"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    type: ValidationIssueType
    message: str
    severity: Severity
    item_id: Optional[str] = None
    code: Optional[str] = None


@dataclass(frozen=True)
class CartValidation:
    """Derived checkout assessment. Never persisted."""
    errors: Tuple[ValidationIssue, ...] = ()
    warnings: Tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def errors_for(self, item_id: str) -> List[ValidationIssue]:
        return [issue for issue in self.errors if issue.item_id == item_id]

    def has_error(self, issue_type: ValidationIssueType, item_id: Optional[str] = None) -> bool:
        return any(
            issue.type == issue_type and (item_id is None or issue.item_id == item_id)
            for issue in self.errors
        )


# ============================================
# Totals, summary, state
# ============================================

@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": to_float(self.subtotal),
            "shipping": to_float(self.shipping),
            "tax": to_float(self.tax),
            "discount": to_float(self.discount),
            "total": to_float(self.total),
            "currency": self.currency,
        }


@dataclass(frozen=True)
class CartSummary:
    item_count: int
    total_items: int
    totals: CartTotals
    items: Tuple[ResolvedLineItem, ...]
    is_empty: bool
    has_out_of_stock_items: bool
    has_low_stock_items: bool
    is_valid: bool

    @property
    def can_checkout(self) -> bool:
        return not self.is_empty and self.is_valid and not self.has_out_of_stock_items


@dataclass
class CartState:
    """Everything the store mutates. Owned by a single CartStore."""
    items: List[ResolvedLineItem] = field(default_factory=list)
    shipping_option: Optional[ShippingOption] = None
    applied_discounts: List[AppliedDiscount] = field(default_factory=list)
    validation: CartValidation = field(default_factory=CartValidation)
    is_open: bool = False
    is_loading: bool = False
    last_error: Optional[str] = None

    def find_item(self, item_id: str) -> Optional[ResolvedLineItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def find_by_key(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[ResolvedLineItem]:
        return next(
            (item for item in self.items if item.key == (product_id, variant_id)),
            None,
        )

    def find_discount(self, code: str) -> Optional[AppliedDiscount]:
        return next((d for d in self.applied_discounts if d.code == code), None)


# ============================================
# Events
# ============================================

class CartEventType(str, Enum):
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    QUANTITY_UPDATED = "quantity_updated"
    CART_CLEARED = "cart_cleared"
    DISCOUNT_APPLIED = "discount_applied"
    DISCOUNT_REMOVED = "discount_removed"


@dataclass(frozen=True)
class CartEvent:
    type: CartEventType
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=utcnow)
