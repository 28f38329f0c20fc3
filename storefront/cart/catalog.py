"""Catalog lookup: the cart's source of price and stock facts."""
import asyncio
from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple

from pydantic import BaseModel, Field

from storefront.db import get_supabase_sync
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.money import to_decimal

logger = get_logger(__name__)


class CatalogEntry(BaseModel):
    """Current catalog facts for one product or product variant."""
    product_id: str
    name: str
    unit_price: Decimal = Field(ge=0)
    max_quantity: int = Field(ge=0)
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    in_stock: bool = True
    low_stock: bool = False
    product_available: bool = True
    variant_available: bool = True

    @property
    def is_purchasable(self) -> bool:
        return self.product_available and self.variant_available


class CatalogLookup(Protocol):
    """Anything that can resolve a product (and optional variant)."""

    async def resolve(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[CatalogEntry]:
        ...


class InMemoryCatalog:
    """Dictionary-backed catalog for tests and local runs."""

    def __init__(self, entries: Optional[list] = None):
        self._entries: Dict[Tuple[str, Optional[str]], CatalogEntry] = {}
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: CatalogEntry) -> None:
        self._entries[(entry.product_id, entry.variant_id)] = entry

    def update(self, product_id: str, variant_id: Optional[str] = None, **changes) -> CatalogEntry:
        """Change facts for an existing entry, e.g. price or stock."""
        key = (product_id, variant_id)
        entry = self._entries[key].model_copy(update=changes)
        self._entries[key] = entry
        return entry

    def remove(self, product_id: str, variant_id: Optional[str] = None) -> None:
        self._entries.pop((product_id, variant_id), None)

    async def resolve(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[CatalogEntry]:
        return self._entries.get((product_id, variant_id))


class SupabaseCatalog:
    """
    Catalog backed by the shop's Supabase tables.

    Reads `products` (price, status, stock_count) and, for variants,
    `product_variants` (price override, stock_quantity, is_active).
    """

    def __init__(self, client=None, low_stock_threshold: int = 5):
        self._client = client
        self.low_stock_threshold = low_stock_threshold

    @property
    def client(self):
        """Supabase client (lazy initialization)."""
        if self._client is None:
            self._client = get_supabase_sync()
        return self._client

    async def _fetch_one(self, table: str, **filters) -> Optional[dict]:
        def query():
            builder = self.client.table(table).select("*")
            for column, value in filters.items():
                builder = builder.eq(column, value)
            return builder.execute()

        result = await asyncio.to_thread(query)
        return result.data[0] if result.data else None

    async def resolve(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[CatalogEntry]:
        product = await self._fetch_one("products", id=product_id)
        if product is None:
            logger.info(f"Catalog miss for product {sanitize_id_for_logging(product_id)}")
            return None

        price = to_decimal(product.get("price"))
        stock = int(product.get("stock_count") or 0)
        variant_name = None
        variant_available = True

        if variant_id:
            variant = await self._fetch_one(
                "product_variants", id=variant_id, product_id=product_id
            )
            if variant is None:
                variant_available = False
                stock = 0
            else:
                if variant.get("price") is not None:
                    price = to_decimal(variant["price"])
                stock = int(variant.get("stock_quantity") or 0)
                variant_name = variant.get("name")
                variant_available = bool(variant.get("is_active", True))

        return CatalogEntry(
            product_id=product_id,
            name=product.get("name", ""),
            unit_price=price,
            max_quantity=stock,
            variant_id=variant_id,
            variant_name=variant_name,
            in_stock=stock > 0,
            low_stock=0 < stock <= self.low_stock_threshold,
            product_available=product.get("status", "active") == "active",
            variant_available=variant_available,
        )
