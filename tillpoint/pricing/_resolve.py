"""
Pricing resolver — unit price and stock for one line.
"""

from __future__ import annotations

from tillpoint.catalog import Catalog
from tillpoint.errors import NotFound, ValidationError
from tillpoint.pricing._types import LineRequest, ResolvedLine


async def resolve_line(catalog: Catalog, line: LineRequest) -> ResolvedLine:
    """
    Resolve price and available stock for a line.

    Variant price overrides product price. The variant must belong to the
    product, and a product with variants is only sold through one of them.
    Quantity is validated by the caller.

    Raises:
        NotFound: product or variant missing
        ValidationError: VARIANT_REQUIRED when the product has variants and
            none is named; INVALID_PRICE when neither variant nor product
            has a price
    """
    product = await catalog.get_product(line.product_id)
    if product is None:
        raise NotFound("Product", line.product_id)

    variant = None
    if line.variant_id:
        variant = product.variant(line.variant_id)
        if variant is None:
            raise NotFound("Variant", line.variant_id)
    elif product.has_variants:
        raise ValidationError(
            "VARIANT_REQUIRED",
            f"Product {product.id} has variants; choose one",
        )

    unit_price = variant.price if variant is not None and variant.price is not None else product.price
    if unit_price is None:
        raise ValidationError(
            "INVALID_PRICE",
            f"No valid price found for product {product.id}"
            + (f" variant {variant.id}" if variant is not None else ""),
        )

    if variant is not None:
        available = variant.inventory
    else:
        available = product.inventory if product.inventory is not None else 0

    return ResolvedLine(
        product=product,
        variant=variant,
        quantity=line.quantity,
        unit_price=unit_price,
        available=available,
    )


__all__ = ("resolve_line",)
