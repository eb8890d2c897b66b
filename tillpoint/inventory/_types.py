"""
Inventory types — stock keys, requests and status transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol

from tillpoint.domain import OrderStatus

# ═══════════════════════════════════════════════════════════════════════════════
# Stock Transition
# ═══════════════════════════════════════════════════════════════════════════════


class StockTransition(Enum):
    """
    Inventory effect of an order status change.

        DEDUCT:  entering {SHIPPED, DELIVERED} from outside it
        RESTORE: leaving {SHIPPED, DELIVERED}
        NONE:    anything else, including SHIPPED → DELIVERED
    """

    DEDUCT = auto()
    RESTORE = auto()
    NONE = auto()


def classify_transition(old: OrderStatus | None, new: OrderStatus) -> StockTransition:
    """`old=None` is a brand-new order; it counts as not fulfilled."""
    was = old is not None and old.is_fulfilled
    now = new.is_fulfilled
    if now and not was:
        return StockTransition.DEDUCT
    if was and not now:
        return StockTransition.RESTORE
    return StockTransition.NONE


# ═══════════════════════════════════════════════════════════════════════════════
# Stock Key / Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class StockKey:
    """The unit stock is tracked on: a variant, or a variant-less product."""

    product_id: str
    variant_id: str | None = None


@dataclass(frozen=True, slots=True)
class StockRequest:
    key: StockKey
    quantity: int
    label: str


# ═══════════════════════════════════════════════════════════════════════════════
# Stock Writer — what a unit of work must offer
# ═══════════════════════════════════════════════════════════════════════════════


class StockWriter(Protocol):
    async def available(self, key: StockKey) -> int:
        """Current stock, read inside the transaction."""
        ...

    async def adjust_stock(self, key: StockKey, delta: int) -> None:
        """
        Add `delta` (negative to deduct). For a variant key the parent
        product's inventory is resynchronised to the sum of its variants
        as part of the same write.
        """
        ...


__all__ = (
    "StockTransition",
    "classify_transition",
    "StockKey",
    "StockRequest",
    "StockWriter",
)
