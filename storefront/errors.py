"""
Cart errors.

User-facing messages live here as constants so the store, the validator and
the UI layer render the same wording.
"""

# Item errors
ERROR_QUANTITY_EXCEEDS_STOCK = "Quantity exceeds available stock"
ERROR_INVALID_QUANTITY = "Quantity must be a positive integer"
ERROR_ITEM_NOT_FOUND = "Item not found in cart"
ERROR_PRODUCT_UNAVAILABLE = "Product is no longer available"

# Discount errors
ERROR_DISCOUNT_REQUIRED = "Discount code is required"
ERROR_DISCOUNT_INVALID = "Invalid discount code"
ERROR_DISCOUNT_EXPIRED = "Discount code has expired"
ERROR_DISCOUNT_ALREADY_APPLIED = "Discount code is already applied"
ERROR_DISCOUNT_UNAVAILABLE = "Discount service unavailable"
ERROR_DISCOUNT_MINIMUM = "Minimum order of {amount} required"

# Store errors
ERROR_CHECKOUT_BLOCKED = "Cart cannot proceed to checkout"
ERROR_CART_DISPOSED = "Cart store has been disposed"


class CartError(ValueError):
    """Base class for operational cart failures raised to the caller."""

    default_message = "Cart operation failed"

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class InvalidQuantityError(CartError):
    default_message = ERROR_INVALID_QUANTITY


class QuantityExceedsStockError(CartError):
    """Requested quantity is above the item's stock ceiling."""

    default_message = ERROR_QUANTITY_EXCEEDS_STOCK

    def __init__(self, requested: int, max_quantity: int, item_id: str | None = None):
        super().__init__(
            ERROR_QUANTITY_EXCEEDS_STOCK,
            requested=requested,
            max_quantity=max_quantity,
            item_id=item_id,
        )
        self.requested = requested
        self.max_quantity = max_quantity


class ItemNotFoundError(CartError):
    default_message = ERROR_ITEM_NOT_FOUND


class ProductUnavailableError(CartError):
    default_message = ERROR_PRODUCT_UNAVAILABLE


class CheckoutBlockedError(CartError):
    default_message = ERROR_CHECKOUT_BLOCKED


class CartDisposedError(CartError):
    default_message = ERROR_CART_DISPOSED
