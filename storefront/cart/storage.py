"""
Cart persistence.

Stores only what is needed to rebuild a cart (item identity, quantity,
timestamps, shipping and discounts) under a schema version. Prices and stock
are never trusted from storage: restored items are re-resolved through the
catalog.

Persistence is a best-effort cache. Every failure is logged, reported to the
registered failure hooks and swallowed; the in-memory store stays the source
of truth for the session.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from storefront.db import get_redis, TTL
from storefront.logging import cart_log_extra, get_logger, sanitize_id_for_logging
from .catalog import CatalogLookup
from .models import (
    AppliedDiscount,
    CartState,
    PendingLineItem,
    ResolvedLineItem,
    ShippingOption,
)

logger = get_logger(__name__)

CART_SCHEMA_VERSION = "1.0.0"


# ============================================
# Storage backends
# ============================================

class KeyValueStorage(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage. Last writer wins."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class RedisStorage:
    """Upstash Redis storage with a TTL so abandoned carts expire."""

    def __init__(self, redis=None, ttl: int = TTL.CART):
        self._redis = redis
        self.ttl = ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(key, value, ex=self.ttl)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)


# ============================================
# Stored payload
# ============================================

class StoredLineItem(BaseModel):
    id: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(gt=0)
    added_at: datetime
    updated_at: datetime

    def to_pending(self) -> PendingLineItem:
        return PendingLineItem(
            id=self.id,
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            added_at=self.added_at,
            updated_at=self.updated_at,
        )


class CartSnapshot(BaseModel):
    """Serialized cart, as written to storage."""
    version: str
    last_updated: datetime
    items: List[StoredLineItem] = []
    shipping_option: Optional[ShippingOption] = None
    applied_discounts: List[AppliedDiscount] = []

    @classmethod
    def from_state(cls, state: CartState, version: str = CART_SCHEMA_VERSION) -> "CartSnapshot":
        return cls(
            version=version,
            last_updated=datetime.now(timezone.utc),
            items=[
                StoredLineItem(
                    id=item.id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                    added_at=item.added_at,
                    updated_at=item.updated_at,
                )
                for item in state.items
            ],
            shipping_option=state.shipping_option,
            applied_discounts=list(state.applied_discounts),
        )


@dataclass
class RestoredCart:
    items: List[ResolvedLineItem] = field(default_factory=list)
    shipping_option: Optional[ShippingOption] = None
    applied_discounts: List[AppliedDiscount] = field(default_factory=list)
    dropped_item_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PersistenceFailure:
    operation: str  # "load", "save" or "delete"
    key: str
    error: Exception


PersistenceFailureHook = Callable[[PersistenceFailure], None]


# ============================================
# Adapter
# ============================================

class CartPersistence:
    """
    Save and restore one cart under a fixed storage key.

    Usage:
        persistence = CartPersistence(MemoryStorage(), "shopping-cart:abc")
        await persistence.save(state)
        restored = await persistence.restore(catalog)
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str,
        version: str = CART_SCHEMA_VERSION,
    ):
        self.storage = storage
        self.key = key
        self.version = version
        self._failure_hooks: List[PersistenceFailureHook] = []

    def add_failure_hook(self, hook: PersistenceFailureHook) -> None:
        """Observe swallowed persistence failures (metrics, alerts)."""
        self._failure_hooks.append(hook)

    def _report_failure(self, operation: str, error: Exception) -> None:
        extra = cart_log_extra(self.key, operation, error)
        logger.error(
            f"Cart persistence {operation} failed for {extra['cart_key']}: {error}",
            extra=extra,
        )
        failure = PersistenceFailure(operation=operation, key=self.key, error=error)
        for hook in self._failure_hooks:
            try:
                hook(failure)
            except Exception:
                logger.exception("Persistence failure hook raised")

    async def save(self, state: CartState) -> bool:
        """Write the minimal cart snapshot. Returns False on failure."""
        try:
            snapshot = CartSnapshot.from_state(state, version=self.version)
            await self.storage.set(self.key, snapshot.model_dump_json())
            return True
        except Exception as e:
            self._report_failure("save", e)
            return False

    async def clear(self) -> bool:
        try:
            await self.storage.delete(self.key)
            return True
        except Exception as e:
            self._report_failure("delete", e)
            return False

    async def load(self) -> Optional[CartSnapshot]:
        """
        Read the stored snapshot.

        Returns:
            The snapshot, or None when nothing is stored, the version does
            not match, or the payload is corrupt. Incompatible and corrupt
            payloads are deleted.
        """
        try:
            raw = await self.storage.get(self.key)
        except Exception as e:
            self._report_failure("load", e)
            return None

        if not raw:
            return None

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupted cart data at {sanitize_id_for_logging(self.key)}: {e}")
            await self.clear()
            return None

        if not isinstance(data, dict) or data.get("version") != self.version:
            stored_version = data.get("version") if isinstance(data, dict) else None
            logger.warning(
                f"Discarding cart with schema version {stored_version!r}, expected {self.version!r}"
            )
            await self.clear()
            return None

        try:
            return CartSnapshot.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Corrupted cart data at {sanitize_id_for_logging(self.key)}: {e}")
            await self.clear()
            return None

    async def restore(
        self,
        catalog: CatalogLookup,
        max_quantity_cap: Optional[int] = None,
    ) -> Optional[RestoredCart]:
        """
        Load the snapshot and re-resolve every item through the catalog.

        Items the catalog no longer knows are dropped. A catalog failure
        abandons the restore and the caller starts with an empty cart.
        """
        snapshot = await self.load()
        if snapshot is None:
            return None

        restored = RestoredCart(
            shipping_option=snapshot.shipping_option,
            applied_discounts=list(snapshot.applied_discounts),
        )
        seen = set()
        try:
            for stored in snapshot.items:
                pending = stored.to_pending()
                if pending.key in seen:
                    restored.dropped_item_ids.append(pending.id)
                    continue
                entry = await catalog.resolve(pending.product_id, pending.variant_id)
                if entry is None:
                    logger.warning(
                        f"Dropping restored item {sanitize_id_for_logging(pending.id)}: "
                        f"product {sanitize_id_for_logging(pending.product_id)} not in catalog"
                    )
                    restored.dropped_item_ids.append(pending.id)
                    continue
                seen.add(pending.key)
                restored.items.append(
                    ResolvedLineItem.from_pending(pending, entry, max_quantity_cap)
                )
        except Exception as e:
            self._report_failure("load", e)
            return None

        return restored
