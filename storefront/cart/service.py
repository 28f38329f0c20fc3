"""Cart store: the action surface for one browsing session's cart."""
import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import timedelta
from typing import List, Optional, Tuple

from storefront.config import CartSettings, STORAGE_BACKEND_REDIS
from storefront.db import RedisKeys
from storefront.errors import (
    CartDisposedError,
    CartError,
    CheckoutBlockedError,
    InvalidQuantityError,
    ItemNotFoundError,
    ProductUnavailableError,
    QuantityExceedsStockError,
    ERROR_CHECKOUT_BLOCKED,
    ERROR_DISCOUNT_ALREADY_APPLIED,
    ERROR_DISCOUNT_EXPIRED,
    ERROR_DISCOUNT_INVALID,
    ERROR_DISCOUNT_MINIMUM,
    ERROR_DISCOUNT_REQUIRED,
    ERROR_DISCOUNT_UNAVAILABLE,
)
from storefront.logging import (
    get_logger,
    sanitize_id_for_logging,
    sanitize_string_for_logging,
)
from storefront.money import ZERO, format_money, to_float
from .catalog import CatalogLookup
from .discounts import DiscountLookup
from .events import CartEventBus, CartListener
from .models import (
    AppliedDiscount,
    CartEventType,
    CartState,
    CartSummary,
    CartTotals,
    CartValidation,
    PendingLineItem,
    ResolvedLineItem,
    ShippingOption,
    utcnow,
)
from .pipeline import Mutation, MutationPipeline
from .pricing import PricingEngine
from .storage import CartPersistence, KeyValueStorage, MemoryStorage, RedisStorage
from .validator import CartValidator

logger = get_logger(__name__)


def _new_item_id() -> str:
    return f"cart_{uuid.uuid4().hex}"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CartStore:
    """
    Single source of truth for a session's cart.

    Lifecycle: init() (empty or hydrated from storage) -> mutations ->
    dispose(). Mutations are serialized with an asyncio.Lock, so two
    overlapping calls run one after the other instead of overwriting each
    other. Every committed mutation goes through the MutationPipeline:
    validate and persist under the lock, then emit once it is released.
    Mutating before init() hydrates first.

    Usage:
        async with CartStore(catalog, discounts, persistence) as cart:
            item = await cart.add_item("prod-1", 2)
            await cart.apply_discount_code("SAVE10")
            print(cart.summary.totals.total)
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        discounts: DiscountLookup,
        persistence: Optional[CartPersistence] = None,
        settings: Optional[CartSettings] = None,
        *,
        pricing: Optional[PricingEngine] = None,
        validator: Optional[CartValidator] = None,
        events: Optional[CartEventBus] = None,
        pipeline: Optional[MutationPipeline] = None,
        id_factory=None,
    ):
        self.settings = settings or CartSettings()
        self.catalog = catalog
        self.discounts = discounts
        self.persistence = persistence
        self.pricing = pricing or PricingEngine.from_settings(self.settings)
        self.validator = validator or CartValidator(
            discount_expiry_window=timedelta(hours=self.settings.discount_expiry_warning_hours)
        )
        self.events = events or CartEventBus()
        self.pipeline = pipeline or MutationPipeline.default(
            self.validator, self.events, persistence
        )
        self._id_factory = id_factory or _new_item_id
        self._state = CartState()
        self._lock = asyncio.Lock()
        self._committed: List[Mutation] = []
        self._initialized = False
        self._disposed = False

    # ==================== Lifecycle ====================

    async def init(self) -> "CartStore":
        """Hydrate from persistence (if any) and run a first validation."""
        self._ensure_active()
        if self._initialized:
            return self

        async with self._lock:
            if self._initialized:
                return self
            if self.persistence is not None:
                restored = await self.persistence.restore(
                    self.catalog, self.settings.max_quantity_per_item
                )
                if restored is not None:
                    self._state.items = restored.items
                    self._state.shipping_option = restored.shipping_option
                    self._state.applied_discounts = restored.applied_discounts
                    logger.info(
                        f"Restored cart with {len(restored.items)} items "
                        f"({len(restored.dropped_item_ids)} dropped)"
                    )
            self._state.validation = self.validator.validate(
                self._state.items, self._state.applied_discounts
            )
            self._initialized = True

        return self

    async def dispose(self) -> None:
        """Detach listeners and refuse further mutations."""
        if self._disposed:
            return
        async with self._lock:
            self.events.clear()
            self._disposed = True

    async def __aenter__(self) -> "CartStore":
        return await self.init()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    def _ensure_active(self) -> None:
        if self._disposed:
            raise CartDisposedError()

    # ==================== Read surface ====================

    @property
    def items(self) -> Tuple[ResolvedLineItem, ...]:
        return tuple(self._state.items)

    @property
    def shipping_option(self) -> Optional[ShippingOption]:
        return self._state.shipping_option

    @property
    def applied_discounts(self) -> Tuple[AppliedDiscount, ...]:
        return tuple(self._state.applied_discounts)

    @property
    def validation(self) -> CartValidation:
        return self._state.validation

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def last_error(self) -> Optional[str]:
        return self._state.last_error

    @property
    def totals(self) -> CartTotals:
        return self.pricing.totals(
            self._state.items,
            self._state.shipping_option,
            self._state.applied_discounts,
        )

    @property
    def summary(self) -> CartSummary:
        items = tuple(self._state.items)
        has_out_of_stock = any(not item.in_stock for item in items)
        return CartSummary(
            item_count=len(items),
            total_items=sum(item.quantity for item in items),
            totals=self.totals,
            items=items,
            is_empty=not items,
            has_out_of_stock_items=has_out_of_stock,
            has_low_stock_items=any(item.low_stock for item in items),
            is_valid=not has_out_of_stock and self._state.validation.is_valid,
        )

    def get_item_quantity(self, product_id: str, variant_id: Optional[str] = None) -> int:
        item = self._state.find_by_key(product_id, variant_id)
        return item.quantity if item else 0

    def is_in_cart(self, product_id: str, variant_id: Optional[str] = None) -> bool:
        return self._state.find_by_key(product_id, variant_id) is not None

    def can_add_to_cart(
        self, product_id: str, quantity: int, variant_id: Optional[str] = None
    ) -> bool:
        """Whether add_item would pass the stock ceiling for a line already in the cart."""
        if not _is_int(quantity) or quantity < 1:
            return False
        item = self._state.find_by_key(product_id, variant_id)
        if item is None:
            return True
        return item.quantity + quantity <= item.max_quantity

    def subscribe(self, listener: CartListener):
        """Register an event listener; returns an unsubscribe callable."""
        return self.events.subscribe(listener)

    # ==================== Mutation plumbing ====================

    @asynccontextmanager
    async def _mutating(self):
        """
        Hold the store lock for one action.

        Hydrates first when init() has not run, so a stored cart is never
        overwritten by an unhydrated one. Events committed by the action are
        published after the lock is released.
        """
        self._ensure_active()
        if not self._initialized:
            await self.init()

        async with self._lock:
            # dispose() may have run while this call waited for the lock
            self._ensure_active()
            self._state.is_loading = True
            try:
                yield self._state
            finally:
                self._state.is_loading = False
                committed, self._committed = self._committed, []

        for mutation in committed:
            await self.pipeline.publish(mutation)

    async def _commit(self, event_type: Optional[CartEventType], data: Optional[dict] = None) -> Mutation:
        mutation = await self.pipeline.run(
            Mutation(state=self._state, event_type=event_type, data=data or {})
        )
        self._committed.append(mutation)
        return mutation

    def _fail(self, error: CartError) -> CartError:
        self._state.last_error = error.message
        logger.info(f"Cart operation rejected: {error.message}")
        return error

    def _replace_item(self, updated: ResolvedLineItem) -> None:
        self._state.items = [
            updated if item.id == updated.id else item for item in self._state.items
        ]

    # ==================== Item actions ====================

    async def add_item(
        self,
        product_id: str,
        quantity: int = 1,
        variant_id: Optional[str] = None,
    ) -> ResolvedLineItem:
        """
        Add a product (or variant) to the cart.

        Adding a product/variant that is already in the cart increases the
        existing line's quantity.

        Raises:
            InvalidQuantityError: quantity is not a positive integer
            ProductUnavailableError: catalog does not offer the product/variant
            QuantityExceedsStockError: resulting quantity is above max_quantity
        """
        async with self._mutating() as state:
            state.last_error = None
            if not _is_int(quantity) or quantity < 1:
                raise self._fail(InvalidQuantityError())

            existing = state.find_by_key(product_id, variant_id)
            if existing is not None:
                new_quantity = existing.quantity + quantity
                if new_quantity > existing.max_quantity:
                    raise self._fail(
                        QuantityExceedsStockError(new_quantity, existing.max_quantity, existing.id)
                    )
                item = existing.with_quantity(new_quantity)
                self._replace_item(item)
            else:
                try:
                    entry = await self.catalog.resolve(product_id, variant_id)
                except Exception as e:
                    state.last_error = str(e)
                    logger.error(
                        f"Catalog lookup failed for {sanitize_id_for_logging(product_id)}: {e}"
                    )
                    raise
                if entry is None or not entry.is_purchasable:
                    raise self._fail(
                        ProductUnavailableError(product_id=product_id, variant_id=variant_id)
                    )

                now = utcnow()
                pending = PendingLineItem(
                    id=self._id_factory(),
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    added_at=now,
                    updated_at=now,
                )
                item = ResolvedLineItem.from_pending(
                    pending, entry, self.settings.max_quantity_per_item
                )
                if item.quantity > item.max_quantity:
                    raise self._fail(QuantityExceedsStockError(quantity, item.max_quantity))
                state.items.append(item)

            await self._commit(
                CartEventType.ITEM_ADDED,
                {
                    "item_id": item.id,
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "quantity": quantity,
                },
            )
            return item

    async def remove_item(self, item_id: str) -> bool:
        """Remove a line. Unknown ids are a no-op and return False."""
        async with self._mutating():
            return await self._remove_locked(item_id)

    async def _remove_locked(self, item_id: str) -> bool:
        item = self._state.find_item(item_id)
        if item is None:
            logger.debug(f"Remove ignored, no item {sanitize_id_for_logging(item_id)}")
            return False

        self._state.items = [i for i in self._state.items if i.id != item_id]
        await self._commit(
            CartEventType.ITEM_REMOVED,
            {"item_id": item_id, "product_id": item.product_id, "variant_id": item.variant_id},
        )
        return True

    async def update_quantity(self, item_id: str, quantity: int) -> Optional[ResolvedLineItem]:
        """
        Set a line's quantity. Zero or less removes the line.

        Returns:
            The updated item, or None when the line was removed

        Raises:
            InvalidQuantityError: quantity is not an integer
            ItemNotFoundError: no line with this id
            QuantityExceedsStockError: quantity is above max_quantity
        """
        async with self._mutating() as state:
            state.last_error = None
            if not _is_int(quantity):
                raise self._fail(InvalidQuantityError())

            if quantity <= 0:
                await self._remove_locked(item_id)
                return None

            item = state.find_item(item_id)
            if item is None:
                raise self._fail(ItemNotFoundError(item_id=item_id))
            if quantity > item.max_quantity:
                raise self._fail(QuantityExceedsStockError(quantity, item.max_quantity, item_id))

            updated = item.with_quantity(quantity)
            self._replace_item(updated)
            await self._commit(
                CartEventType.QUANTITY_UPDATED,
                {"item_id": item_id, "quantity": quantity},
            )
            return updated

    async def clear_cart(self) -> None:
        """Empty items, shipping selection and discounts in one step."""
        async with self._mutating() as state:
            state.items = []
            state.shipping_option = None
            state.applied_discounts = []
            state.last_error = None
            await self._commit(CartEventType.CART_CLEARED, {})

    async def refresh_cart(self) -> CartValidation:
        """
        Re-resolve every line through the catalog and revalidate.

        Keeps the previous price on lines whose price moved so the validator
        can warn about it. Lines the catalog no longer knows are kept but
        flagged unavailable.
        """
        async with self._mutating() as state:
            refreshed = []
            for item in state.items:
                entry = await self.catalog.resolve(item.product_id, item.variant_id)
                if entry is None:
                    refreshed.append(replace(item, product_available=False))
                    continue
                refreshed.append(
                    ResolvedLineItem.from_pending(
                        item.to_pending(),
                        entry,
                        self.settings.max_quantity_per_item,
                        previous_unit_price=item.unit_price,
                    )
                )
            state.items = refreshed
            await self._commit(None)
            return state.validation

    async def validate_cart(self) -> CartValidation:
        self._ensure_active()
        async with self._lock:
            self._state.validation = self.validator.validate(
                self._state.items, self._state.applied_discounts
            )
            return self._state.validation

    # ==================== Options ====================

    def _reject_discount(self, message: str, code: str) -> bool:
        self._state.last_error = message
        logger.info(
            f"Discount code {sanitize_string_for_logging(code, 20)} rejected: {message}"
        )
        return False

    async def apply_discount_code(self, code: str) -> bool:
        """
        Validate a code and apply it against the current subtotal.

        Never raises. Returns False and sets last_error when the code is
        unknown, inactive, expired, already applied, or the subtotal is below
        its minimum order amount.
        """
        async with self._mutating() as state:
            normalized = (code or "").strip().upper()
            if not normalized:
                return self._reject_discount(ERROR_DISCOUNT_REQUIRED, normalized)
            if state.find_discount(normalized) is not None:
                return self._reject_discount(ERROR_DISCOUNT_ALREADY_APPLIED, normalized)

            try:
                discount_code = await self.discounts.lookup(normalized)
            except Exception as e:
                logger.error(f"Discount lookup failed: {e}")
                return self._reject_discount(ERROR_DISCOUNT_UNAVAILABLE, normalized)

            if discount_code is None or not discount_code.is_active:
                return self._reject_discount(ERROR_DISCOUNT_INVALID, normalized)
            if discount_code.is_expired():
                return self._reject_discount(ERROR_DISCOUNT_EXPIRED, normalized)

            subtotal = self.pricing.subtotal(state.items)
            minimum = discount_code.minimum_amount or ZERO
            if subtotal < minimum:
                return self._reject_discount(
                    ERROR_DISCOUNT_MINIMUM.format(
                        amount=format_money(minimum, self.settings.currency)
                    ),
                    normalized,
                )

            amount = self.pricing.discount_amount(discount_code, subtotal)
            applied = AppliedDiscount(
                code=normalized,
                discount=amount,
                type=discount_code.type,
                value=discount_code.value,
                description=discount_code.describe(self.settings.currency),
                expires_at=discount_code.expires_at,
            )
            state.applied_discounts = [*state.applied_discounts, applied]
            state.last_error = None

            await self._commit(
                CartEventType.DISCOUNT_APPLIED,
                {
                    "code": normalized,
                    "type": discount_code.type.value,
                    "value": to_float(discount_code.value),
                    "discount": to_float(amount),
                },
            )
            return True

    async def remove_discount(self, code: str) -> bool:
        async with self._mutating() as state:
            normalized = (code or "").strip().upper()
            if state.find_discount(normalized) is None:
                return False
            state.applied_discounts = [
                d for d in state.applied_discounts if d.code != normalized
            ]
            await self._commit(CartEventType.DISCOUNT_REMOVED, {"code": normalized})
            return True

    async def set_shipping_option(self, option: Optional[ShippingOption]) -> None:
        """Replace the shipping selection (None clears it)."""
        async with self._mutating() as state:
            state.shipping_option = option
            await self._commit(None, {"shipping_option_id": option.id if option else None})

    # ==================== UI visibility ====================

    def open_cart(self) -> None:
        self._state.is_open = True

    def close_cart(self) -> None:
        self._state.is_open = False

    def toggle_cart(self) -> None:
        self._state.is_open = not self._state.is_open

    # ==================== Checkout hand-off ====================

    def begin_checkout(self) -> CartSummary:
        """
        Hand the cart to the checkout flow.

        Closes the cart panel but keeps its contents.

        Raises:
            CheckoutBlockedError: cart is empty, invalid, or has out-of-stock items
        """
        summary = self.summary
        if not summary.can_checkout:
            self._state.last_error = ERROR_CHECKOUT_BLOCKED
            raise CheckoutBlockedError(
                errors=[issue.message for issue in self._state.validation.errors],
                is_empty=summary.is_empty,
            )
        self.close_cart()
        return summary


async def create_cart_store(
    session_id: str,
    catalog: CatalogLookup,
    discounts: DiscountLookup,
    settings: Optional[CartSettings] = None,
    storage: Optional[KeyValueStorage] = None,
) -> CartStore:
    """
    Build and initialize the cart store for a browsing session.

    Storage defaults to the backend named by settings (Upstash Redis or
    process memory), keyed per session.
    """
    settings = settings or CartSettings.from_env()
    if storage is None:
        if settings.storage_backend == STORAGE_BACKEND_REDIS:
            storage = RedisStorage(ttl=settings.storage_ttl_seconds)
        else:
            storage = MemoryStorage()

    persistence = CartPersistence(storage, RedisKeys.cart_key(session_id))
    store = CartStore(catalog, discounts, persistence=persistence, settings=settings)
    return await store.init()
