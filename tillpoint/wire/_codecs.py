"""
Wire codecs — pydantic request/response models.

Requests implement `to_domain()`, responses `from_domain(...)`:

    draft = CreateOrderRequest.model_validate(body).to_domain()
    return OrderOut.from_domain(await service.create(draft))
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tillpoint.analytics import (
    AlertKind,
    CategorySales,
    MonthlySales,
    ProductSales,
    StockAlert,
)
from tillpoint.catalog import BarcodeMatch
from tillpoint.domain import (
    Customer,
    Discount,
    DiscountType,
    Order,
    OrderItem,
    OrderStatus,
    ProductVariant,
)
from tillpoint.orders import OrderDraft, OrderPatch
from tillpoint.pricing import LineRequest, OrderTotals, ResolvedLine

# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class LineIn(BaseModel):
    product_id: str
    quantity: int
    variant_id: str | None = None

    def to_domain(self) -> LineRequest:
        return LineRequest(self.product_id, self.quantity, self.variant_id)


class CustomerIn(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    def to_domain(self) -> Customer:
        return Customer(**self.model_dump())


class QuoteRequest(BaseModel):
    """Cart or checkout preview. `subtotal`/`shipping_cost`/`total` are the client's figures."""

    items: list[LineIn] = Field(default_factory=list)
    shipping_option_id: str | None = None
    discount_id: str | None = None
    discount_code: str | None = None
    subtotal: Decimal | None = None
    shipping_cost: Decimal | None = None
    total: Decimal | None = None

    def to_domain(self) -> OrderDraft:
        return OrderDraft(
            items=tuple(i.to_domain() for i in self.items),
            shipping_option_id=self.shipping_option_id,
            discount_id=self.discount_id,
            discount_code=self.discount_code,
            claimed_subtotal=self.subtotal,
            claimed_shipping_cost=self.shipping_cost,
            claimed_total=self.total,
        )


class CreateOrderRequest(QuoteRequest):
    customer: CustomerIn | None = None
    cashier_id: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    payment_reference: str | None = None

    def to_domain(self) -> OrderDraft:
        return OrderDraft(
            items=tuple(i.to_domain() for i in self.items),
            customer=self.customer.to_domain() if self.customer else None,
            cashier_id=self.cashier_id,
            status=self.status,
            shipping_option_id=self.shipping_option_id,
            discount_id=self.discount_id,
            discount_code=self.discount_code,
            claimed_subtotal=self.subtotal,
            claimed_shipping_cost=self.shipping_cost,
            claimed_total=self.total,
            payment_reference=self.payment_reference,
        )


class UpdateOrderRequest(BaseModel):
    """
    PATCH body. Fields absent from the JSON keep their stored value;
    `null` clears shipping_option_id, discount_id and customer.
    """

    items: list[LineIn] | None = None
    customer: CustomerIn | None = None
    status: OrderStatus | None = None
    shipping_option_id: str | None = None
    discount_id: str | None = None
    payment_reference: str | None = None
    subtotal: Decimal | None = None
    shipping_cost: Decimal | None = None
    total: Decimal | None = None

    def to_domain(self) -> OrderPatch:
        sent = self.model_fields_set
        changes: dict[str, object] = {}
        if self.items:
            changes["items"] = tuple(i.to_domain() for i in self.items)
        if "customer" in sent:
            changes["customer"] = self.customer.to_domain() if self.customer else None
        if self.status is not None:
            changes["status"] = self.status
        for name in ("shipping_option_id", "discount_id", "payment_reference"):
            if name in sent:
                changes[name] = getattr(self, name)
        return OrderPatch(
            claimed_subtotal=self.subtotal,
            claimed_shipping_cost=self.shipping_cost,
            claimed_total=self.total,
            **changes,  # type: ignore[arg-type]
        )


class StatusRequest(BaseModel):
    status: OrderStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class LineOut(BaseModel):
    product_id: str
    variant_id: str | None
    label: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    available: int

    @classmethod
    def from_domain(cls, line: ResolvedLine) -> LineOut:
        return cls(
            product_id=line.product_id,
            variant_id=line.variant_id,
            label=line.label,
            quantity=line.quantity,
            unit_price=line.unit_price,
            subtotal=line.subtotal,
            available=line.available,
        )


class TotalsOut(BaseModel):
    lines: list[LineOut]
    subtotal: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal
    discount_id: str | None = None
    discount_code: str | None = None
    shipping_option_id: str | None = None

    @classmethod
    def from_domain(cls, totals: OrderTotals) -> TotalsOut:
        return cls(
            lines=[LineOut.from_domain(line) for line in totals.lines],
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping_cost,
            discount_amount=totals.discount_amount,
            total=totals.total,
            discount_id=totals.discount.id if totals.discount else None,
            discount_code=totals.discount.code if totals.discount else None,
            shipping_option_id=totals.shipping_option.id if totals.shipping_option else None,
        )


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    variant_id: str | None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            id=item.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )


class OrderOut(BaseModel):
    id: str
    status: OrderStatus
    items: list[OrderItemOut]
    customer: CustomerIn | None
    cashier_id: str | None
    subtotal: Decimal
    shipping_option_id: str | None
    shipping_cost: Decimal
    discount_id: str | None
    discount_amount: Decimal
    total: Decimal
    payment_reference: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        c = order.customer
        return cls(
            id=order.id,
            status=order.status,
            items=[OrderItemOut.from_domain(i) for i in order.items],
            customer=CustomerIn(
                first_name=c.first_name,
                last_name=c.last_name,
                email=c.email,
                phone=c.phone,
                address=c.address,
                city=c.city,
                state=c.state,
                postal_code=c.postal_code,
                country=c.country,
            )
            if c is not None
            else None,
            cashier_id=order.cashier_id,
            subtotal=order.subtotal,
            shipping_option_id=order.shipping_option_id,
            shipping_cost=order.shipping_cost,
            discount_id=order.discount_id,
            discount_amount=order.discount_amount,
            total=order.total,
            payment_reference=order.payment_reference,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class VariantOut(BaseModel):
    id: str
    sku: str | None
    name: str | None
    price: Decimal | None
    inventory: int

    @classmethod
    def from_domain(cls, variant: ProductVariant) -> VariantOut:
        return cls(
            id=variant.id,
            sku=variant.sku,
            name=variant.name,
            price=variant.price,
            inventory=variant.inventory,
        )


class ProductOut(BaseModel):
    """Scanned product; `matched_variant` is set when the code was a variant SKU."""

    id: str
    title: str
    price: Decimal | None
    inventory: int | None
    category: str
    barcode: str | None
    variants: list[VariantOut]
    matched_variant: VariantOut | None = None

    @classmethod
    def from_domain(cls, match: BarcodeMatch) -> ProductOut:
        p = match.product
        return cls(
            id=p.id,
            title=p.title,
            price=p.price,
            inventory=p.inventory,
            category=p.category,
            barcode=p.barcode,
            variants=[VariantOut.from_domain(v) for v in p.variants],
            matched_variant=VariantOut.from_domain(match.variant) if match.variant else None,
        )


class DiscountOut(BaseModel):
    id: str
    code: str
    type: DiscountType
    value: Decimal
    description: str | None
    starts_at: datetime
    ends_at: datetime | None
    usage_limit: int | None
    usage_count: int
    min_subtotal: Decimal | None
    is_active: bool
    product_ids: list[str]
    variant_ids: list[str]

    @classmethod
    def from_domain(cls, discount: Discount) -> DiscountOut:
        return cls(
            id=discount.id,
            code=discount.code,
            type=discount.type,
            value=discount.value,
            description=discount.description,
            starts_at=discount.starts_at,
            ends_at=discount.ends_at,
            usage_limit=discount.usage_limit,
            usage_count=discount.usage_count,
            min_subtotal=discount.min_subtotal,
            is_active=discount.is_active,
            product_ids=sorted(discount.product_ids),
            variant_ids=sorted(discount.variant_ids),
        )


# ── analytics ────────────────────────────────────────────────────────────────


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class MonthlySalesOut(_FromAttributes):
    month: str
    revenue: Decimal
    orders: int

    @classmethod
    def from_domain(cls, row: MonthlySales) -> MonthlySalesOut:
        return cls.model_validate(row)


class VariantSalesOut(_FromAttributes):
    variant_id: str
    name: str
    sold: int
    revenue: Decimal


class ProductSalesOut(_FromAttributes):
    product_id: str
    title: str
    sold: int
    revenue: Decimal
    variants: list[VariantSalesOut]

    @classmethod
    def from_domain(cls, row: ProductSales) -> ProductSalesOut:
        return cls.model_validate(row)


class TopProductsOut(BaseModel):
    by_revenue: list[ProductSalesOut]
    by_quantity: list[ProductSalesOut]


class CategorySalesOut(_FromAttributes):
    name: str
    product_count: int
    revenue: Decimal
    units_sold: int
    average_price: Decimal

    @classmethod
    def from_domain(cls, row: CategorySales) -> CategorySalesOut:
        return cls.model_validate(row)


class StockAlertOut(_FromAttributes):
    kind: AlertKind
    product_id: str
    product_title: str
    current_stock: int
    threshold: int
    variant_id: str | None = None
    variant_name: str | None = None

    @classmethod
    def from_domain(cls, row: StockAlert) -> StockAlertOut:
        return cls.model_validate(row)


__all__ = (
    "LineIn",
    "CustomerIn",
    "QuoteRequest",
    "CreateOrderRequest",
    "UpdateOrderRequest",
    "StatusRequest",
    "LineOut",
    "TotalsOut",
    "OrderItemOut",
    "OrderOut",
    "VariantOut",
    "ProductOut",
    "DiscountOut",
    "MonthlySalesOut",
    "VariantSalesOut",
    "ProductSalesOut",
    "TopProductsOut",
    "CategorySalesOut",
    "StockAlertOut",
)
