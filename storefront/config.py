"""Cart configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from storefront.money import to_decimal


STORAGE_BACKEND_MEMORY = "memory"
STORAGE_BACKEND_REDIS = "redis"


def _env_decimal(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    """Read a decimal variable. Non-numeric values raise instead of becoming zero."""
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"{name} must be a finite number, got {raw!r}")
    return value


@dataclass(frozen=True)
class CartSettings:
    """
    Cart-wide pricing and storage settings.

    Defaults mirror the storefront's cart provider: USD, 8% flat tax,
    5.99 default shipping and at most 99 units per line.
    """
    currency: str = "USD"
    tax_rate: Decimal = Decimal("0.08")
    default_shipping_cost: Decimal = Decimal("5.99")
    max_quantity_per_item: int = 99
    storage_backend: str = STORAGE_BACKEND_MEMORY
    storage_ttl_seconds: int = 86400  # 24 hours
    discount_expiry_warning_hours: int = 24

    def __post_init__(self):
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "tax_rate", to_decimal(self.tax_rate))
        object.__setattr__(
            self, "default_shipping_cost", to_decimal(self.default_shipping_cost)
        )
        if self.tax_rate < 0:
            raise ValueError("tax_rate must be non-negative")
        if self.default_shipping_cost < 0:
            raise ValueError("default_shipping_cost must be non-negative")
        if self.max_quantity_per_item < 1:
            raise ValueError("max_quantity_per_item must be at least 1")
        if self.storage_backend not in (STORAGE_BACKEND_MEMORY, STORAGE_BACKEND_REDIS):
            raise ValueError(f"Unknown storage backend: {self.storage_backend}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CartSettings":
        """
        Build settings from CART_* environment variables.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            currency=env.get("CART_CURRENCY", defaults.currency).upper(),
            tax_rate=_env_decimal(env, "CART_TAX_RATE", defaults.tax_rate),
            default_shipping_cost=_env_decimal(
                env, "CART_DEFAULT_SHIPPING_COST", defaults.default_shipping_cost
            ),
            max_quantity_per_item=int(
                env.get("CART_MAX_QUANTITY", defaults.max_quantity_per_item)
            ),
            storage_backend=env.get("CART_STORAGE_BACKEND", defaults.storage_backend).lower(),
            storage_ttl_seconds=int(env.get("CART_STORAGE_TTL", defaults.storage_ttl_seconds)),
            discount_expiry_warning_hours=int(
                env.get(
                    "CART_DISCOUNT_EXPIRY_WARNING_HOURS",
                    defaults.discount_expiry_warning_hours,
                )
            ),
        )
