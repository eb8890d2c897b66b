"""
Discount evaluator — eligibility and amount for one discount.

Checks run in a fixed order and stop at the first failure:

    terms → active → usage → started → not expired → minimum → scope

The amount is computed against the applicable base: the whole subtotal
for a global discount, or the subtotal of matching lines for a scoped one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from tillpoint._types import ZERO, as_utc
from tillpoint.domain import Discount, DiscountType
from tillpoint.errors import DiscountRejected, DiscountRejection
from tillpoint.pricing._types import DiscountOutcome, ResolvedLine

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


# ═══════════════════════════════════════════════════════════════════════════════
# Terms
# ═══════════════════════════════════════════════════════════════════════════════


def terms_valid(discount_type: DiscountType, value: Decimal) -> bool:
    """Percentage must be within [1, 100]; fixed amount must be positive."""
    match discount_type:
        case DiscountType.PERCENTAGE:
            return Decimal(1) <= value <= HUNDRED
        case DiscountType.FIXED_AMOUNT:
            return value > ZERO
        case DiscountType.FREE_SHIPPING:
            return True


def applicable_subtotal(discount: Discount, lines: Sequence[ResolvedLine]) -> Decimal:
    return sum(
        (line.subtotal for line in lines if discount.covers(line.product_id, line.variant_id)),
        ZERO,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# evaluate_discount()
# ═══════════════════════════════════════════════════════════════════════════════


def evaluate_discount(
    discount: Discount,
    subtotal: Decimal,
    lines: Sequence[ResolvedLine],
    shipping_cost: Decimal,
    now: datetime,
    *,
    already_applied: bool = False,
) -> DiscountOutcome:
    """
    Decide whether `discount` applies and how much it takes off.

    Args:
        discount: the discount to evaluate
        subtotal: order subtotal (all lines)
        lines: resolved order lines
        shipping_cost: cost of the selected shipping option
        now: evaluation time
        already_applied: the order being priced already carries this
            discount, so its usage is counted and the limit check is skipped

    Returns:
        DiscountOutcome. On rejection `applicable` is False, the amount is 0
        and `reason` names the first failed check.

    Example:
        outcome = evaluate_discount(ten_percent, Decimal(1500), lines, Decimal(200), now)
        outcome.discount_amount  # Decimal("150")
    """
    reason = _first_failure(discount, subtotal, now, already_applied)
    if reason is not None:
        return DiscountOutcome(False, ZERO, ZERO, reason)

    if discount.is_scoped:
        base = applicable_subtotal(discount, lines)
        if base == ZERO:
            return DiscountOutcome(False, ZERO, ZERO, DiscountRejection.OUT_OF_SCOPE)
    else:
        base = subtotal

    match discount.type:
        case DiscountType.PERCENTAGE:
            amount = discount.value / HUNDRED * base
        case DiscountType.FIXED_AMOUNT:
            amount = min(discount.value, base)
        case DiscountType.FREE_SHIPPING:
            # Realised against shipping: the order keeps its shipping cost and
            # reports the same figure as discount.
            amount = shipping_cost if base > ZERO else ZERO

    return DiscountOutcome(True, amount, base)


def _first_failure(
    discount: Discount,
    subtotal: Decimal,
    now: datetime,
    already_applied: bool,
) -> DiscountRejection | None:
    if not terms_valid(discount.type, discount.value):
        return DiscountRejection.INVALID_TERMS
    if not discount.is_active:
        return DiscountRejection.INACTIVE
    if (
        not already_applied
        and discount.usage_limit is not None
        and discount.usage_count >= discount.usage_limit
    ):
        return DiscountRejection.USAGE_EXHAUSTED
    now = as_utc(now)
    if now < as_utc(discount.starts_at):
        return DiscountRejection.NOT_STARTED
    if discount.ends_at is not None and now > as_utc(discount.ends_at):
        return DiscountRejection.EXPIRED
    if discount.min_subtotal is not None and subtotal < discount.min_subtotal:
        return DiscountRejection.BELOW_MINIMUM
    return None


def check_discount(
    discount: Discount,
    subtotal: Decimal,
    lines: Sequence[ResolvedLine],
    shipping_cost: Decimal,
    now: datetime,
    *,
    already_applied: bool = False,
) -> DiscountOutcome:
    """Like evaluate_discount(), but raises DiscountRejected on rejection."""
    outcome = evaluate_discount(
        discount,
        subtotal,
        lines,
        shipping_cost,
        now,
        already_applied=already_applied,
    )
    if outcome.reason is not None:
        logger.warning(
            "discount %s rejected: %s", discount.code, outcome.reason.value
        )
        raise DiscountRejected(outcome.reason, discount.code)
    return outcome


__all__ = (
    "terms_valid",
    "applicable_subtotal",
    "evaluate_discount",
    "check_discount",
)
