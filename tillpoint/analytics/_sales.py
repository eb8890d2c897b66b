"""
Sales analytics — dashboard figures computed from orders and products.

Only DELIVERED orders count as revenue. Revenue per line is the stored
item subtotal, i.e. the price the customer was actually charged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from tillpoint._types import ZERO, as_utc
from tillpoint.domain import Order, OrderStatus, Product

# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MonthlySales:
    month: str  # YYYY-MM
    revenue: Decimal
    orders: int


@dataclass(frozen=True, slots=True)
class VariantSales:
    variant_id: str
    name: str
    sold: int
    revenue: Decimal


@dataclass(frozen=True, slots=True)
class ProductSales:
    product_id: str
    title: str
    sold: int
    revenue: Decimal
    variants: tuple[VariantSales, ...] = ()


@dataclass(frozen=True, slots=True)
class TopProducts:
    by_revenue: tuple[ProductSales, ...]
    by_quantity: tuple[ProductSales, ...]


@dataclass(frozen=True, slots=True)
class CategorySales:
    name: str
    product_count: int
    revenue: Decimal
    units_sold: int

    @property
    def average_price(self) -> Decimal:
        if self.units_sold == 0:
            return ZERO
        return self.revenue / self.units_sold


class AlertKind(Enum):
    PRODUCT = "product"
    VARIANT = "variant"


@dataclass(frozen=True, slots=True)
class StockAlert:
    kind: AlertKind
    product_id: str
    product_title: str
    current_stock: int
    threshold: int
    variant_id: str | None = None
    variant_name: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _delivered(orders: Iterable[Order]) -> list[Order]:
    return [o for o in orders if o.status is OrderStatus.DELIVERED]


def _variant_name(variant_id: str, name: str | None) -> str:
    return name or f"Variant {variant_id[:8]}"


@dataclass(slots=True)
class _Tally:
    title: str
    sold: int = 0
    revenue: Decimal = ZERO
    variants: dict[str, _Tally] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# Reports
# ═══════════════════════════════════════════════════════════════════════════════


def sales_by_month(orders: Iterable[Order]) -> list[MonthlySales]:
    """
    Order count (all statuses) and DELIVERED revenue per calendar month (UTC).

    Months without any order are omitted; result is in ascending month order.
    """
    counts: dict[str, int] = {}
    revenue: dict[str, Decimal] = {}
    for order in orders:
        month = as_utc(order.created_at).strftime("%Y-%m")
        counts[month] = counts.get(month, 0) + 1
        if order.status is OrderStatus.DELIVERED:
            revenue[month] = revenue.get(month, ZERO) + order.total
    return [
        MonthlySales(month=m, revenue=revenue.get(m, ZERO), orders=counts[m])
        for m in sorted(counts)
    ]


def top_products(orders: Iterable[Order], products: Sequence[Product]) -> TopProducts:
    """Units and revenue per product from DELIVERED orders, with variant breakdown."""
    catalog = {p.id: p for p in products}
    tallies: dict[str, _Tally] = {}

    for order in _delivered(orders):
        for item in order.items:
            product = catalog.get(item.product_id)
            tally = tallies.get(item.product_id)
            if tally is None:
                title = product.title if product is not None else item.product_id
                tally = tallies[item.product_id] = _Tally(title)
            tally.sold += item.quantity
            tally.revenue += item.subtotal

            if item.variant_id:
                sub = tally.variants.get(item.variant_id)
                if sub is None:
                    variant = product.variant(item.variant_id) if product is not None else None
                    name = _variant_name(item.variant_id, variant.name if variant else None)
                    sub = tally.variants[item.variant_id] = _Tally(name)
                sub.sold += item.quantity
                sub.revenue += item.subtotal

    stats = [
        ProductSales(
            product_id=pid,
            title=t.title,
            sold=t.sold,
            revenue=t.revenue,
            variants=tuple(
                VariantSales(vid, v.title, v.sold, v.revenue)
                for vid, v in t.variants.items()
            ),
        )
        for pid, t in tallies.items()
    ]
    return TopProducts(
        by_revenue=tuple(sorted(stats, key=lambda s: s.revenue, reverse=True)),
        by_quantity=tuple(sorted(stats, key=lambda s: s.sold, reverse=True)),
    )


def category_performance(
    products: Sequence[Product],
    orders: Iterable[Order],
) -> list[CategorySales]:
    """
    Per-category product count, DELIVERED revenue and units, highest revenue first.

    Items whose product is no longer in the catalog are left out.
    """
    counts: dict[str, int] = {}
    category_of: dict[str, str] = {}
    for product in products:
        counts[product.category] = counts.get(product.category, 0) + 1
        category_of[product.id] = product.category

    revenue: dict[str, Decimal] = {}
    units: dict[str, int] = {}
    for order in _delivered(orders):
        for item in order.items:
            category = category_of.get(item.product_id)
            if category is None:
                continue
            revenue[category] = revenue.get(category, ZERO) + item.subtotal
            units[category] = units.get(category, 0) + item.quantity

    stats = [
        CategorySales(
            name=name,
            product_count=count,
            revenue=revenue.get(name, ZERO),
            units_sold=units.get(name, 0),
        )
        for name, count in counts.items()
    ]
    return sorted(stats, key=lambda s: s.revenue, reverse=True)


def low_stock_alerts(products: Iterable[Product], threshold: int = 10) -> list[StockAlert]:
    """Products and variants with stock strictly below `threshold`, lowest first."""
    alerts: list[StockAlert] = []
    for product in products:
        stock = product.inventory or 0
        if stock < threshold:
            alerts.append(
                StockAlert(AlertKind.PRODUCT, product.id, product.title, stock, threshold)
            )
        for variant in product.variants:
            if variant.inventory < threshold:
                alerts.append(
                    StockAlert(
                        AlertKind.VARIANT,
                        product.id,
                        product.title,
                        variant.inventory,
                        threshold,
                        variant_id=variant.id,
                        variant_name=_variant_name(variant.id, variant.name),
                    )
                )
    return sorted(alerts, key=lambda a: a.current_stock)


__all__ = (
    "MonthlySales",
    "VariantSales",
    "ProductSales",
    "TopProducts",
    "CategorySales",
    "AlertKind",
    "StockAlert",
    "sales_by_month",
    "top_products",
    "category_performance",
    "low_stock_alerts",
)
