"""
Order service inputs — drafts for new orders, patches for edits.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from tillpoint.domain import Customer, OrderStatus
from tillpoint.pricing import LineRequest, OrderCandidate

# ═══════════════════════════════════════════════════════════════════════════════
# Unset marker
# ═══════════════════════════════════════════════════════════════════════════════


class Unset(Enum):
    """Field not supplied. Distinct from None, which clears."""

    UNSET = "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = Unset.UNSET

type Patch[T] = T | Unset
"""Either a new value or UNSET (keep the current one)."""


# ═══════════════════════════════════════════════════════════════════════════════
# Draft
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderDraft:
    """
    A new order as submitted by the storefront, admin or cashier.

    `cashier_id` marks a point-of-sale checkout: customer fields become
    optional and the order may be created directly in a fulfilled status.
    """

    items: tuple[LineRequest, ...]
    customer: Customer | None = None
    cashier_id: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    shipping_option_id: str | None = None
    discount_id: str | None = None
    discount_code: str | None = None
    claimed_subtotal: Decimal | None = None
    claimed_shipping_cost: Decimal | None = None
    claimed_total: Decimal | None = None
    payment_reference: str | None = None

    def candidate(self) -> OrderCandidate:
        return OrderCandidate(
            items=self.items,
            shipping_option_id=self.shipping_option_id,
            discount_id=self.discount_id,
            discount_code=self.discount_code,
            claimed_subtotal=self.claimed_subtotal,
            claimed_shipping_cost=self.claimed_shipping_cost,
            claimed_total=self.claimed_total,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Patch
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderPatch:
    """
    Partial update. UNSET keeps the stored value; None clears optional ones.

    An empty `items` tuple counts as UNSET: the order keeps its lines and
    their snapshot prices.

    Example:
        OrderPatch(status=OrderStatus.SHIPPED)
        OrderPatch(discount_id=None, claimed_total=Decimal("1700"))
    """

    items: Patch[tuple[LineRequest, ...]] = UNSET
    customer: Patch[Customer | None] = UNSET
    status: Patch[OrderStatus] = UNSET
    shipping_option_id: Patch[str | None] = UNSET
    discount_id: Patch[str | None] = UNSET
    claimed_subtotal: Decimal | None = None
    claimed_shipping_cost: Decimal | None = None
    claimed_total: Decimal | None = None
    payment_reference: Patch[str | None] = UNSET


__all__ = ("Unset", "UNSET", "Patch", "OrderDraft", "OrderPatch")
