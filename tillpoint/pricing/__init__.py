"""
Pricing — line resolution, discount evaluation and order totals.

    from tillpoint import pricing as P

    candidate = P.OrderCandidate(
        items=(P.LineRequest("p1", quantity=3),),
        shipping_option_id="standard",
        discount_code="SAVE10",
        claimed_total=Decimal("1550"),
    )
    totals = await P.compute_order(catalog, candidate, now=utc_now())
"""

from tillpoint.pricing._types import (
    LineRequest,
    ResolvedLine,
    DiscountOutcome,
    OrderCandidate,
    OrderTotals,
)
from tillpoint.pricing._resolve import resolve_line
from tillpoint.pricing._discount import (
    terms_valid,
    applicable_subtotal,
    evaluate_discount,
    check_discount,
)
from tillpoint.pricing._totals import (
    validate_line,
    resolve_lines,
    resolve_shipping,
    resolve_discount,
    order_total,
    compute_order,
)

__all__ = (
    "LineRequest",
    "ResolvedLine",
    "DiscountOutcome",
    "OrderCandidate",
    "OrderTotals",
    "resolve_line",
    "terms_valid",
    "applicable_subtotal",
    "evaluate_discount",
    "check_discount",
    "validate_line",
    "resolve_lines",
    "resolve_shipping",
    "resolve_discount",
    "order_total",
    "compute_order",
)
