"""
Order total calculator — one pricing path for carts, checkout and order edits.

    totals = await compute_order(catalog, candidate, now=utc_now())

Steps:
    1. validate + resolve every line, sum the subtotal
    2. resolve shipping (must be ACTIVE)
    3. evaluate the discount, if any
    4. compare every claimed figure with the computed one

Read-only. Equal inputs against an unchanged catalog give equal totals.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from tillpoint._types import ZERO
from tillpoint.catalog import Catalog
from tillpoint.domain import Discount, ShippingOption, ShippingStatus
from tillpoint.errors import NotFound, ValidationError, mismatch
from tillpoint.pricing._discount import check_discount
from tillpoint.pricing._resolve import resolve_line
from tillpoint.pricing._types import (
    LineRequest,
    OrderCandidate,
    OrderTotals,
    ResolvedLine,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Lines
# ═══════════════════════════════════════════════════════════════════════════════


def validate_line(line: LineRequest) -> None:
    if not line.product_id or line.quantity <= 0:
        raise ValidationError(
            "INVALID_ITEM",
            f"Invalid item format: product={line.product_id!r} quantity={line.quantity}",
        )


async def resolve_lines(
    catalog: Catalog,
    items: Sequence[LineRequest],
) -> tuple[ResolvedLine, ...]:
    if not items:
        raise ValidationError("EMPTY_ORDER", "Order must include at least one item")
    for line in items:
        validate_line(line)
    return tuple([await resolve_line(catalog, line) for line in items])


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


async def resolve_shipping(
    catalog: Catalog,
    option_id: str | None,
    claimed_cost: Decimal | None,
) -> tuple[ShippingOption | None, Decimal]:
    if not option_id:
        if claimed_cost is not None and claimed_cost != ZERO:
            raise ValidationError(
                "SHIPPING_WITHOUT_OPTION",
                "Shipping cost provided without shipping option",
            )
        return None, ZERO

    option = await catalog.get_shipping_option(option_id)
    if option is None:
        raise NotFound("ShippingOption", option_id)
    if option.status is not ShippingStatus.ACTIVE:
        raise ValidationError(
            "SHIPPING_INACTIVE",
            f"Shipping option {option.name} is not active",
        )
    if claimed_cost is not None and claimed_cost != option.price:
        raise mismatch("SHIPPING_MISMATCH", "shipping cost", claimed_cost, option.price)
    return option, option.price


# ═══════════════════════════════════════════════════════════════════════════════
# Discount
# ═══════════════════════════════════════════════════════════════════════════════


async def resolve_discount(
    catalog: Catalog,
    discount_id: str | None,
    discount_code: str | None,
) -> Discount | None:
    if discount_id:
        discount = await catalog.get_discount(discount_id)
        if discount is None:
            raise NotFound("Discount", discount_id)
        return discount
    if discount_code and discount_code.strip():
        discount = await catalog.find_discount_by_code(discount_code)
        if discount is None:
            raise NotFound("Discount", discount_code)
        return discount
    return None


def order_total(subtotal: Decimal, shipping_cost: Decimal, discount_amount: Decimal) -> Decimal:
    return max(ZERO, subtotal + shipping_cost - discount_amount)


# ═══════════════════════════════════════════════════════════════════════════════
# compute_order()
# ═══════════════════════════════════════════════════════════════════════════════


async def compute_order(
    catalog: Catalog,
    candidate: OrderCandidate,
    *,
    now: datetime,
    applied_discount_id: str | None = None,
    lines: Sequence[ResolvedLine] | None = None,
) -> OrderTotals:
    """
    Compute authoritative totals for a candidate order.

    Args:
        catalog: product/discount/shipping lookups
        candidate: lines, shipping option, discount and claimed figures
        now: evaluation time for the discount window
        applied_discount_id: discount already attached to the order being
            edited; its usage limit is not re-checked
        lines: pre-resolved lines (order edits that keep their items pass
            snapshot lines here instead of re-resolving)

    Raises:
        NotFound, ValidationError, DiscountRejected
    """
    if lines is None:
        lines = await resolve_lines(catalog, candidate.items)
    subtotal = sum((line.subtotal for line in lines), ZERO)

    if candidate.claimed_subtotal is not None and candidate.claimed_subtotal != subtotal:
        raise mismatch("SUBTOTAL_MISMATCH", "subtotal", candidate.claimed_subtotal, subtotal)

    option, shipping_cost = await resolve_shipping(
        catalog,
        candidate.shipping_option_id,
        candidate.claimed_shipping_cost,
    )

    discount = await resolve_discount(catalog, candidate.discount_id, candidate.discount_code)
    discount_amount = ZERO
    if discount is not None:
        outcome = check_discount(
            discount,
            subtotal,
            lines,
            shipping_cost,
            now,
            already_applied=discount.id == applied_discount_id,
        )
        discount_amount = outcome.discount_amount

    total = order_total(subtotal, shipping_cost, discount_amount)
    if candidate.claimed_total is not None and candidate.claimed_total != total:
        raise mismatch("TOTAL_MISMATCH", "total", candidate.claimed_total, total)

    return OrderTotals(
        lines=tuple(lines),
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        discount_amount=discount_amount,
        total=total,
        discount=discount,
        shipping_option=option,
    )


__all__ = (
    "validate_line",
    "resolve_lines",
    "resolve_shipping",
    "resolve_discount",
    "order_total",
    "compute_order",
)
