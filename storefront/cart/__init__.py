"""Cart package: models, pricing, validation, persistence and the store facade."""
from .catalog import CatalogEntry, CatalogLookup, InMemoryCatalog, SupabaseCatalog
from .discounts import DiscountCode, DiscountLookup, InMemoryDiscounts, SupabaseDiscounts
from .events import CartEventBus
from .models import (
    AppliedDiscount,
    CartEvent,
    CartEventType,
    CartState,
    CartSummary,
    CartTotals,
    CartValidation,
    DiscountType,
    LineItem,
    PendingLineItem,
    ResolvedLineItem,
    ShippingOption,
    ShippingType,
    ValidationIssue,
    ValidationIssueType,
)
from .pipeline import MutationPipeline
from .pricing import PricingEngine
from .service import CartStore, create_cart_store
from .storage import (
    CART_SCHEMA_VERSION,
    CartPersistence,
    MemoryStorage,
    RedisStorage,
)
from .validator import CartValidator

__all__ = [
    "AppliedDiscount",
    "CART_SCHEMA_VERSION",
    "CartEvent",
    "CartEventBus",
    "CartEventType",
    "CartPersistence",
    "CartState",
    "CartStore",
    "CartSummary",
    "CartTotals",
    "CartValidation",
    "CartValidator",
    "CatalogEntry",
    "CatalogLookup",
    "DiscountCode",
    "DiscountLookup",
    "DiscountType",
    "InMemoryCatalog",
    "InMemoryDiscounts",
    "LineItem",
    "MemoryStorage",
    "MutationPipeline",
    "PendingLineItem",
    "PricingEngine",
    "RedisStorage",
    "ResolvedLineItem",
    "ShippingOption",
    "ShippingType",
    "SupabaseCatalog",
    "SupabaseDiscounts",
    "ValidationIssue",
    "ValidationIssueType",
    "create_cart_store",
]
