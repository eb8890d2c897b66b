"""
Pricing types — inputs and outputs of the pricing engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from tillpoint.domain import Discount, Product, ProductVariant, ShippingOption
from tillpoint.errors import DiscountRejection

# ═══════════════════════════════════════════════════════════════════════════════
# Lines
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineRequest:
    """One requested line: product, optional variant, quantity."""

    product_id: str
    quantity: int
    variant_id: str | None = None


@dataclass(frozen=True, slots=True)
class ResolvedLine:
    """
    A line priced against the catalog.

    `available` is the stock seen at resolution time. It is advisory:
    stock is re-read inside the write transaction.
    """

    product: Product
    variant: ProductVariant | None
    quantity: int
    unit_price: Decimal
    available: int

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def variant_id(self) -> str | None:
        return self.variant.id if self.variant is not None else None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def label(self) -> str:
        return self.product.label_for(self.variant)


# ═══════════════════════════════════════════════════════════════════════════════
# Discount Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class DiscountOutcome:
    """Result of evaluating one discount against one order."""

    applicable: bool
    discount_amount: Decimal
    base: Decimal
    reason: DiscountRejection | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Candidate / Totals
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderCandidate:
    """
    What a caller submits for pricing.

    `claimed_*` values are what the client computed; when present they must
    equal the engine's numbers exactly.
    """

    items: tuple[LineRequest, ...]
    shipping_option_id: str | None = None
    discount_id: str | None = None
    discount_code: str | None = None
    claimed_subtotal: Decimal | None = None
    claimed_shipping_cost: Decimal | None = None
    claimed_total: Decimal | None = None


@dataclass(frozen=True, slots=True)
class OrderTotals:
    """Authoritative pricing of an order."""

    lines: tuple[ResolvedLine, ...]
    subtotal: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal
    discount: Discount | None = None
    shipping_option: ShippingOption | None = None


__all__ = (
    "LineRequest",
    "ResolvedLine",
    "DiscountOutcome",
    "OrderCandidate",
    "OrderTotals",
)
