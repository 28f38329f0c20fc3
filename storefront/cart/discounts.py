"""Discount code lookup."""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Protocol

from pydantic import BaseModel, Field, field_validator

from storefront.db import get_supabase_sync
from storefront.logging import get_logger
from storefront.money import format_money, to_decimal
from .models import DiscountType, ensure_utc

logger = get_logger(__name__)


class DiscountCode(BaseModel):
    """Redeemable discount as returned by a DiscountLookup."""
    code: str
    type: DiscountType
    value: Decimal = Field(ge=0)
    minimum_amount: Optional[Decimal] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("expires_at")
    @classmethod
    def _expires_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return ensure_utc(now or datetime.now(timezone.utc)) > self.expires_at

    def describe(self, currency: str = "USD") -> str:
        if self.type == DiscountType.PERCENTAGE:
            return f"{self.value.normalize():f}% discount"
        return f"{format_money(self.value, currency)} off"


class DiscountLookup(Protocol):
    async def lookup(self, code: str) -> Optional[DiscountCode]:
        ...


class InMemoryDiscounts:
    """Dictionary-backed discount codes, keyed upper-case."""

    def __init__(self, codes: Optional[list] = None):
        self._codes: Dict[str, DiscountCode] = {}
        for code in codes or []:
            self.add(code)

    def add(self, code: DiscountCode) -> None:
        self._codes[code.code.upper()] = code

    async def lookup(self, code: str) -> Optional[DiscountCode]:
        return self._codes.get(code.upper())


class SupabaseDiscounts:
    """
    Discount codes from the `promo_codes` table.

    A row with `discount_amount` set is a fixed discount, otherwise
    `discount_percent` is used. `min_order_amount` and `valid_until`
    map to the minimum order threshold and the expiry.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_sync()
        return self._client

    async def lookup(self, code: str) -> Optional[DiscountCode]:
        result = await asyncio.to_thread(
            lambda: self.client.table("promo_codes").select("*").eq(
                "code", code.upper()
            ).execute()
        )
        if not result.data:
            return None

        row = result.data[0]
        if row.get("discount_amount") is not None:
            discount_type = DiscountType.FIXED
            value = to_decimal(row["discount_amount"])
        else:
            discount_type = DiscountType.PERCENTAGE
            value = to_decimal(row.get("discount_percent", 0))

        expires_at = None
        if row.get("valid_until"):
            expires_at = datetime.fromisoformat(row["valid_until"].replace("Z", "+00:00"))

        minimum = row.get("min_order_amount")
        return DiscountCode(
            code=row["code"].upper(),
            type=discount_type,
            value=value,
            minimum_amount=to_decimal(minimum) if minimum is not None else None,
            expires_at=expires_at,
            is_active=bool(row.get("is_active", True)),
        )
