from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tests.conftest import JAN_1, NOW
from tillpoint.domain import Discount, DiscountType, Product, ProductVariant
from tillpoint.errors import DiscountRejected, DiscountRejection
from tillpoint.pricing import ResolvedLine, check_discount, evaluate_discount, terms_valid

SHIRT = Product(
    id="shirt",
    title="Shirt",
    price=Decimal("1000"),
    variants=(
        ProductVariant(id="shirt-s", product_id="shirt", price=Decimal("1200"), inventory=5),
        ProductVariant(id="shirt-m", product_id="shirt", inventory=3),
    ),
)
WIDGET = Product(id="widget", title="Widget", price=Decimal("500"), inventory=10)


def line(product: Product, quantity: int, variant_id: str | None = None) -> ResolvedLine:
    variant = product.variant(variant_id) if variant_id else None
    price = variant.price if variant and variant.price is not None else product.price
    assert price is not None
    return ResolvedLine(product, variant, quantity, price, available=0)


def discount(type: DiscountType = DiscountType.PERCENTAGE, value: str = "10", **kwargs) -> Discount:
    kwargs.setdefault("starts_at", JAN_1)
    return Discount(id="d", code="CODE", type=type, value=Decimal(value), **kwargs)


LINES = (line(WIDGET, 2), line(SHIRT, 1, "shirt-s"))
SUBTOTAL = Decimal("2200")
SHIPPING = Decimal("200")


def evaluate(d: Discount, **kwargs):
    return evaluate_discount(d, SUBTOTAL, LINES, SHIPPING, NOW, **kwargs)


# ═══════════════════════════════════════════════════════════════════════════════
# Amounts
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("value", ["1", "10", "33", "99", "100"])
def test_percentage_stays_within_base(value):
    outcome = evaluate(discount(value=value))
    assert outcome.applicable
    assert Decimal(0) <= outcome.discount_amount <= outcome.base
    assert outcome.discount_amount == Decimal(value) / 100 * SUBTOTAL


@pytest.mark.parametrize("value", ["0", "0.5", "100.01", "150", "-5"])
def test_percentage_out_of_range_is_rejected(value):
    outcome = evaluate(discount(value=value))
    assert not outcome.applicable
    assert outcome.reason is DiscountRejection.INVALID_TERMS
    assert outcome.discount_amount == Decimal(0)


@pytest.mark.parametrize("value", ["1", "500", "2200", "5000"])
def test_fixed_amount_never_exceeds_base(value):
    outcome = evaluate(discount(DiscountType.FIXED_AMOUNT, value))
    assert outcome.discount_amount == min(Decimal(value), SUBTOTAL)


def test_fixed_amount_must_be_positive():
    assert evaluate(discount(DiscountType.FIXED_AMOUNT, "0")).reason is DiscountRejection.INVALID_TERMS
    assert not terms_valid(DiscountType.FIXED_AMOUNT, Decimal("-1"))


def test_scoped_fixed_amount_uses_matching_lines_only():
    outcome = evaluate(discount(DiscountType.FIXED_AMOUNT, "2000", variant_ids=frozenset({"shirt-s"})))
    assert outcome.base == Decimal("1200")
    assert outcome.discount_amount == Decimal("1200")


def test_product_scope_counts_every_variant_of_the_product():
    lines = (line(SHIRT, 1, "shirt-s"), line(SHIRT, 2, "shirt-m"), line(WIDGET, 1))
    outcome = evaluate_discount(
        discount(value="50", product_ids=frozenset({"shirt"})),
        Decimal("3700"),
        lines,
        SHIPPING,
        NOW,
    )
    assert outcome.base == Decimal("3200")
    assert outcome.discount_amount == Decimal("1600")


def test_scope_without_matching_line_is_rejected():
    outcome = evaluate(discount(variant_ids=frozenset({"shirt-m"})))
    assert outcome.reason is DiscountRejection.OUT_OF_SCOPE


def test_free_shipping_equals_shipping_cost():
    outcome = evaluate(discount(DiscountType.FREE_SHIPPING, "0"))
    assert outcome.discount_amount == SHIPPING


def test_free_shipping_without_shipping_is_zero():
    outcome = evaluate_discount(discount(DiscountType.FREE_SHIPPING, "0"), SUBTOTAL, LINES, Decimal(0), NOW)
    assert outcome.applicable
    assert outcome.discount_amount == Decimal(0)


# ═══════════════════════════════════════════════════════════════════════════════
# Eligibility
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    ("changes", "reason"),
    [
        ({"is_active": False}, DiscountRejection.INACTIVE),
        ({"usage_limit": 3, "usage_count": 3}, DiscountRejection.USAGE_EXHAUSTED),
        ({"starts_at": datetime(2025, 7, 1, tzinfo=timezone.utc)}, DiscountRejection.NOT_STARTED),
        ({"ends_at": datetime(2025, 6, 1, tzinfo=timezone.utc)}, DiscountRejection.EXPIRED),
        ({"min_subtotal": Decimal("2200.01")}, DiscountRejection.BELOW_MINIMUM),
    ],
)
def test_rejections(changes, reason):
    outcome = evaluate(replace(discount(), **changes))
    assert not outcome.applicable
    assert outcome.reason is reason


def test_checks_run_in_order():
    d = replace(discount(value="0"), is_active=False, ends_at=datetime(2025, 1, 2, tzinfo=timezone.utc))
    assert evaluate(d).reason is DiscountRejection.INVALID_TERMS
    assert evaluate(replace(d, value=Decimal("10"))).reason is DiscountRejection.INACTIVE


def test_minimum_subtotal_is_inclusive():
    assert evaluate(discount(min_subtotal=SUBTOTAL)).applicable


def test_window_bounds_are_inclusive():
    assert evaluate(discount(starts_at=NOW, ends_at=NOW)).applicable


def test_naive_window_is_read_as_utc():
    d = discount(starts_at=datetime(2025, 6, 15, 11, 0), ends_at=datetime(2025, 6, 15, 13, 0))
    assert evaluate(d).applicable


def test_already_applied_discount_skips_usage_limit():
    d = discount(usage_limit=1, usage_count=1)
    assert evaluate(d).reason is DiscountRejection.USAGE_EXHAUSTED
    assert evaluate(d, already_applied=True).applicable


def test_check_discount_raises():
    with pytest.raises(DiscountRejected) as exc:
        check_discount(discount(is_active=False), SUBTOTAL, LINES, SHIPPING, NOW)
    assert exc.value.reason is DiscountRejection.INACTIVE
    assert exc.value.discount_code == "CODE"
    assert exc.value.details() == {"reason": "inactive"}
