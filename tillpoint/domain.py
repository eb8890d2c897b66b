"""
Domain — catalog, discount, shipping and order records.

Every record is an immutable value. Services build new records instead of
mutating existing ones; storage adapters convert rows to and from them.

Money is Decimal in a single currency unit. Quantities are int.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductVariant:
    id: str
    product_id: str
    inventory: int = 0
    sku: str | None = None
    name: str | None = None
    price: Decimal | None = None  # overrides product price


@dataclass(frozen=True, slots=True)
class Product:
    """
    A catalog product.

    Either the flat price/inventory pair is authoritative (no variants), or
    the variants are. With variants, `inventory` is a cache of their sum.
    """

    id: str
    title: str
    price: Decimal | None = None
    inventory: int | None = None
    category: str = ""
    subcategory: str | None = None
    description: str = ""
    tags: tuple[str, ...] = ()
    barcode: str | None = None
    variants: tuple[ProductVariant, ...] = ()

    @property
    def has_variants(self) -> bool:
        return len(self.variants) > 0

    def variant(self, variant_id: str) -> ProductVariant | None:
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None

    @property
    def variant_inventory(self) -> int:
        return sum(v.inventory for v in self.variants)

    def label_for(self, variant: ProductVariant | None = None) -> str:
        """Human name of one stock unit, used in stock errors."""
        if variant is not None:
            name = variant.name or variant.sku or variant.id
            return f"variant {name} of {self.title}"
        return f"product {self.title}"


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


@dataclass(frozen=True, slots=True)
class Discount:
    """
    A discount code.

    Empty `product_ids` and `variant_ids` make the discount global; otherwise
    it only applies to lines matching one of the listed ids.
    """

    id: str
    code: str
    type: DiscountType
    value: Decimal
    starts_at: datetime
    ends_at: datetime | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    min_subtotal: Decimal | None = None
    is_active: bool = True
    description: str | None = None
    product_ids: frozenset[str] = frozenset()
    variant_ids: frozenset[str] = frozenset()

    @property
    def is_scoped(self) -> bool:
        return bool(self.product_ids or self.variant_ids)

    def covers(self, product_id: str, variant_id: str | None) -> bool:
        """Whether a line with these ids counts toward the applicable subtotal."""
        if not self.is_scoped:
            return True
        if product_id in self.product_ids:
            return True
        return variant_id is not None and variant_id in self.variant_ids


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingStatus(Enum):
    ACTIVE = "ACTIVE"
    CONDITIONAL = "CONDITIONAL"  # soft-disabled, not selectable


@dataclass(frozen=True, slots=True)
class ShippingOption:
    id: str
    name: str
    price: Decimal
    delivery_time: str = ""
    status: ShippingStatus = ShippingStatus.ACTIVE


# ═══════════════════════════════════════════════════════════════════════════════
# Staff
# ═══════════════════════════════════════════════════════════════════════════════


class StaffRole(Enum):
    ADMIN = "ADMIN"
    CASHIER = "CASHIER"


@dataclass(frozen=True, slots=True)
class StaffMember:
    """A back-office user. Only cashiers ring up point-of-sale orders."""

    id: str
    name: str
    email: str = ""
    role: StaffRole = StaffRole.CASHIER

    @property
    def is_cashier(self) -> bool:
        return self.role is StaffRole.CASHIER


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_fulfilled(self) -> bool:
        return self in FULFILLED


FULFILLED: frozenset[OrderStatus] = frozenset(
    {OrderStatus.SHIPPED, OrderStatus.DELIVERED}
)


@dataclass(frozen=True, slots=True)
class Customer:
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    postal_code: str
    country: str

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in (
                "first_name",
                "last_name",
                "email",
                "phone",
                "address",
                "city",
                "state",
                "postal_code",
                "country",
            )
            if not getattr(self, name)
        ]


@dataclass(frozen=True, slots=True)
class OrderItem:
    id: str
    order_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal  # unit_price * quantity at pricing time
    variant_id: str | None = None


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    status: OrderStatus
    items: tuple[OrderItem, ...]
    subtotal: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal
    created_at: datetime
    updated_at: datetime
    customer: Customer | None = None
    cashier_id: str | None = None
    shipping_option_id: str | None = None
    discount_id: str | None = None
    payment_reference: str | None = None
