"""
Storage protocols — order persistence with one transactional boundary.

A Gateway hands out units of work. Everything done through one unit of
work (stock writes, discount usage, the order row) commits together or
not at all.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from tillpoint.domain import Order
from tillpoint.inventory import StockKey


class UnitOfWork(Protocol):
    """
    Transaction-scoped reads and writes.

    Example:
        async with gateway.transaction() as uow:
            existing = await uow.get_order(order_id)
            await apply_stock_transition(uow, lines, transition)
            await uow.save_order(updated)
    """

    async def get_order(self, order_id: str) -> Order | None:
        ...

    async def find_order_by_payment_reference(self, reference: str) -> Order | None:
        ...

    async def available(self, key: StockKey) -> int:
        ...

    async def adjust_stock(self, key: StockKey, delta: int) -> None:
        """
        Add `delta` to one stock unit; variant writes resync the parent.

        Raises:
            NotFound: unknown product or variant
            InsufficientStock: the unit would drop below zero
        """
        ...

    async def claim_discount(self, discount_id: str) -> None:
        """
        Increment usage_count if still under usage_limit (compare-and-swap).

        Raises:
            NotFound: unknown discount
            DiscountRejected: USAGE_EXHAUSTED when the limit was reached
        """
        ...

    async def save_order(self, order: Order) -> None:
        """Insert or replace the order and its items."""
        ...


class Gateway(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[UnitOfWork]:
        """Open a unit of work. Commits on normal exit, rolls back on error."""
        ...

    async def get_order(self, order_id: str) -> Order | None:
        ...

    async def list_orders(self) -> list[Order]:
        """Newest first."""
        ...


__all__ = ("UnitOfWork", "Gateway")
