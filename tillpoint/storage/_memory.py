"""
Memory gateway — in-process orders over a MemoryCatalog.

Transactions are serialised with an asyncio.Lock. Each write records an
undo in a Ledger; an exception inside the transaction replays the undos
in reverse, so no partial stock, usage or order change survives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from tillpoint.catalog import MemoryCatalog
from tillpoint.domain import Order
from tillpoint.errors import DiscountRejected, DiscountRejection, InsufficientStock, NotFound
from tillpoint.inventory import Ledger, StockKey

logger = logging.getLogger(__name__)


class MemoryUnitOfWork:
    def __init__(
        self,
        catalog: MemoryCatalog,
        orders: dict[str, Order],
        ledger: Ledger,
    ) -> None:
        self._catalog = catalog
        self._orders = orders
        self.ledger = ledger

    async def get_order(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def find_order_by_payment_reference(self, reference: str) -> Order | None:
        for order in self._orders.values():
            if order.payment_reference == reference:
                return order
        return None

    async def available(self, key: StockKey) -> int:
        product = await self._catalog.get_product(key.product_id)
        if product is None:
            raise NotFound("Product", key.product_id)
        if key.variant_id is None:
            return product.inventory or 0
        variant = product.variant(key.variant_id)
        if variant is None:
            raise NotFound("Variant", key.variant_id)
        return variant.inventory

    async def adjust_stock(self, key: StockKey, delta: int) -> None:
        before = await self._catalog.get_product(key.product_id)
        if before is None:
            raise NotFound("Product", key.product_id)

        current = await self.available(key)
        if current + delta < 0:
            variant = before.variant(key.variant_id) if key.variant_id else None
            raise InsufficientStock(before.label_for(variant), current, -delta)
        if key.variant_id is None:
            self._catalog.set_product_inventory(key.product_id, current + delta)
        else:
            self._catalog.set_variant_inventory(key.product_id, key.variant_id, current + delta)

        async def undo() -> None:
            self._catalog.put_product(before)

        self.ledger.record(undo)

    async def claim_discount(self, discount_id: str) -> None:
        before = await self._catalog.get_discount(discount_id)
        if before is None:
            raise NotFound("Discount", discount_id)
        if before.usage_limit is not None and before.usage_count >= before.usage_limit:
            raise DiscountRejected(DiscountRejection.USAGE_EXHAUSTED, before.code)

        self._catalog.set_usage_count(discount_id, before.usage_count + 1)

        async def undo() -> None:
            self._catalog.put_discount(before)

        self.ledger.record(undo)

    async def save_order(self, order: Order) -> None:
        before = self._orders.get(order.id)
        self._orders[order.id] = order

        async def undo() -> None:
            if before is None:
                self._orders.pop(order.id, None)
            else:
                self._orders[order.id] = before

        self.ledger.record(undo)


class MemoryGateway:
    """
    In-memory order gateway.

    Note: single-process only; shares stock with the given MemoryCatalog.
    """

    def __init__(self, catalog: MemoryCatalog) -> None:
        self.catalog = catalog
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryUnitOfWork]:
        async with self._lock:
            uow = MemoryUnitOfWork(self.catalog, self._orders, Ledger())
            try:
                yield uow
            except BaseException:
                report = await uow.ledger.rollback()
                if not report.complete:
                    logger.error(
                        "rollback incomplete: %d undo(s) failed", report.undos_failed
                    )
                raise
            uow.ledger.commit()

    async def get_order(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def list_orders(self) -> list[Order]:
        return sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)


__all__ = ("MemoryUnitOfWork", "MemoryGateway")
