"""
Catalog — read-side lookup protocol.

The pricing engine never reaches into storage directly: it receives a
Catalog and asks it for products, discounts, shipping options and the
staff member ringing up a cashier order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Protocol

from tillpoint.domain import Discount, Product, ProductVariant, ShippingOption, StaffMember


@dataclass(frozen=True, slots=True)
class BarcodeMatch:
    """A scanned code resolved to a product, and to a variant when a SKU matched."""

    product: Product
    variant: ProductVariant | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Catalog(Protocol):
    """
    Lookups the engine consumes. All return None when the record is absent.

    Example — custom implementation:

        class ApiCatalog:
            async def get_product(self, product_id: str) -> Product | None:
                data = await client.get(f"/products/{product_id}")
                return to_product(data) if data else None
            ...
    """

    async def get_product(self, product_id: str) -> Product | None:
        """Product with its variants."""
        ...

    async def get_variant(self, product_id: str, variant_id: str) -> ProductVariant | None:
        """Variant, only if it belongs to `product_id`."""
        ...

    async def get_discount(self, discount_id: str) -> Discount | None:
        ...

    async def find_discount_by_code(self, code: str) -> Discount | None:
        """Case-insensitive code lookup."""
        ...

    async def get_shipping_option(self, option_id: str) -> ShippingOption | None:
        ...

    async def list_products(self) -> list[Product]:
        ...

    async def find_product_by_barcode(self, code: str) -> BarcodeMatch | None:
        """Product barcode first, then variant SKU."""
        ...

    async def get_staff_member(self, user_id: str) -> StaffMember | None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Catalog — for tests and demos
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCatalog:
    """
    In-memory catalog.

    Note: single-process only. Stock and usage writes go through
    `tillpoint.storage.MemoryGateway`, which shares this instance.
    """

    def __init__(
        self,
        products: Iterable[Product] = (),
        discounts: Iterable[Discount] = (),
        shipping_options: Iterable[ShippingOption] = (),
        staff: Iterable[StaffMember] = (),
    ) -> None:
        self._products: dict[str, Product] = {p.id: p for p in products}
        self._discounts: dict[str, Discount] = {d.id: d for d in discounts}
        self._shipping: dict[str, ShippingOption] = {s.id: s for s in shipping_options}
        self._staff: dict[str, StaffMember] = {m.id: m for m in staff}

    # ── reads ────────────────────────────────────────────────────────────────

    async def get_product(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    async def get_variant(self, product_id: str, variant_id: str) -> ProductVariant | None:
        product = self._products.get(product_id)
        if product is None:
            return None
        return product.variant(variant_id)

    async def get_discount(self, discount_id: str) -> Discount | None:
        return self._discounts.get(discount_id)

    async def find_discount_by_code(self, code: str) -> Discount | None:
        wanted = code.strip().lower()
        for discount in self._discounts.values():
            if discount.code.lower() == wanted:
                return discount
        return None

    async def get_shipping_option(self, option_id: str) -> ShippingOption | None:
        return self._shipping.get(option_id)

    async def list_products(self) -> list[Product]:
        return list(self._products.values())

    async def find_product_by_barcode(self, code: str) -> BarcodeMatch | None:
        for product in self._products.values():
            if product.barcode == code:
                return BarcodeMatch(product)
        for product in self._products.values():
            for variant in product.variants:
                if variant.sku == code:
                    return BarcodeMatch(product, variant)
        return None

    async def get_staff_member(self, user_id: str) -> StaffMember | None:
        return self._staff.get(user_id)

    # ── writes (used by MemoryGateway and seeding) ──────────────────────────

    def put_product(self, product: Product) -> None:
        self._products[product.id] = product

    def put_discount(self, discount: Discount) -> None:
        self._discounts[discount.id] = discount

    def put_shipping_option(self, option: ShippingOption) -> None:
        self._shipping[option.id] = option

    def put_staff_member(self, member: StaffMember) -> None:
        self._staff[member.id] = member

    def set_product_inventory(self, product_id: str, inventory: int) -> None:
        product = self._products[product_id]
        self._products[product_id] = replace(product, inventory=inventory)

    def set_variant_inventory(self, product_id: str, variant_id: str, inventory: int) -> None:
        """Write one variant and resync the parent sum in the same step."""
        product = self._products[product_id]
        variants = tuple(
            replace(v, inventory=inventory) if v.id == variant_id else v
            for v in product.variants
        )
        self._products[product_id] = replace(
            product,
            variants=variants,
            inventory=sum(v.inventory for v in variants),
        )

    def set_usage_count(self, discount_id: str, usage_count: int) -> None:
        discount = self._discounts[discount_id]
        self._discounts[discount_id] = replace(discount, usage_count=usage_count)


__all__ = ("BarcodeMatch", "Catalog", "MemoryCatalog")
