"""
SQLAlchemy integration — catalog and order gateway over one database.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///shop.db")

    catalog = SQLAlchemyCatalog(session_factory)
    gateway = SQLAlchemyGateway(session_factory)

    async with gateway.transaction() as uow:
        await uow.adjust_stock(StockKey("p1", "v1"), -2)
        await uow.save_order(order)

Stock and usage writes are single conditional UPDATE statements, so the
database, not the process, decides who wins a race.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, cast

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tillpoint._types import as_utc
from tillpoint.domain import (
    Customer,
    Discount,
    DiscountType,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductVariant,
    ShippingOption,
    ShippingStatus,
    StaffMember,
    StaffRole,
)
from tillpoint.errors import (
    DiscountRejected,
    DiscountRejection,
    InsufficientStock,
    NotFound,
    TransactionFailed,
)
from tillpoint.catalog import BarcodeMatch
from tillpoint.inventory import StockKey
from tillpoint.storage._tables import (
    DiscountTable,
    OrderItemTable,
    OrderTable,
    ProductTable,
    ShippingOptionTable,
    StaffTable,
    VariantTable,
    discount_products,
    discount_variants,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Row ↔ Domain
# ═══════════════════════════════════════════════════════════════════════════════


def to_variant(row: VariantTable) -> ProductVariant:
    return ProductVariant(
        id=row.id,
        product_id=row.product_id,
        inventory=row.inventory,
        sku=row.sku,
        name=row.name,
        price=row.price,
    )


def to_product(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        title=row.title,
        price=row.price,
        inventory=row.inventory,
        category=row.category,
        subcategory=row.subcategory,
        description=row.description,
        tags=tuple(row.tags or ()),
        barcode=row.barcode,
        variants=tuple(to_variant(v) for v in row.variants),
    )


def to_shipping_option(row: ShippingOptionTable) -> ShippingOption:
    return ShippingOption(
        id=row.id,
        name=row.name,
        price=row.price,
        delivery_time=row.delivery_time,
        status=ShippingStatus(row.status),
    )


def to_staff_member(row: StaffTable) -> StaffMember:
    return StaffMember(id=row.id, name=row.name, email=row.email, role=StaffRole(row.role))


def to_order(row: OrderTable) -> Order:
    customer = None
    if row.first_name is not None:
        customer = Customer(
            first_name=row.first_name,
            last_name=row.last_name or "",
            email=row.email or "",
            phone=row.phone or "",
            address=row.address or "",
            city=row.city or "",
            state=row.state or "",
            postal_code=row.postal_code or "",
            country=row.country or "",
        )
    return Order(
        id=row.id,
        status=OrderStatus(row.status),
        items=tuple(
            OrderItem(
                id=i.id,
                order_id=i.order_id,
                product_id=i.product_id,
                variant_id=i.variant_id,
                quantity=i.quantity,
                unit_price=i.unit_price,
                subtotal=i.subtotal,
            )
            for i in row.items
        ),
        subtotal=row.subtotal,
        shipping_cost=row.shipping_cost,
        discount_amount=row.discount_amount,
        total=row.total,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
        customer=customer,
        cashier_id=row.cashier_id,
        shipping_option_id=row.shipping_option_id,
        discount_id=row.discount_id,
        payment_reference=row.payment_reference,
    )


def _order_values(order: Order) -> dict[str, Any]:
    c = order.customer
    return {
        "status": order.status.value,
        "first_name": c.first_name if c else None,
        "last_name": c.last_name if c else None,
        "email": c.email if c else None,
        "phone": c.phone if c else None,
        "address": c.address if c else None,
        "city": c.city if c else None,
        "state": c.state if c else None,
        "postal_code": c.postal_code if c else None,
        "country": c.country if c else None,
        "cashier_id": order.cashier_id,
        "subtotal": order.subtotal,
        "shipping_option_id": order.shipping_option_id,
        "shipping_cost": order.shipping_cost,
        "discount_id": order.discount_id,
        "discount_amount": order.discount_amount,
        "total": order.total,
        "payment_reference": order.payment_reference,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _item_rows(order: Order) -> list[OrderItemTable]:
    return [
        OrderItemTable(
            id=item.id,
            order_id=order.id,
            position=position,
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )
        for position, item in enumerate(order.items)
    ]


async def _load_discount(session: AsyncSession, row: DiscountTable) -> Discount:
    product_ids = await session.scalars(
        select(discount_products.c.product_id).where(
            discount_products.c.discount_id == row.id
        )
    )
    variant_ids = await session.scalars(
        select(discount_variants.c.variant_id).where(
            discount_variants.c.discount_id == row.id
        )
    )
    return Discount(
        id=row.id,
        code=row.code,
        type=DiscountType(row.type),
        value=row.value,
        starts_at=as_utc(row.starts_at),
        ends_at=as_utc(row.ends_at) if row.ends_at is not None else None,
        usage_limit=row.usage_limit,
        usage_count=row.usage_count,
        min_subtotal=row.min_subtotal,
        is_active=row.is_active,
        description=row.description,
        product_ids=frozenset(product_ids),
        variant_ids=frozenset(variant_ids),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyCatalog:
    """Read-side catalog over the products, discounts and shipping tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_product(self, product_id: str) -> Product | None:
        async with self._session_factory() as session:
            row = await session.get(ProductTable, product_id)
            return to_product(row) if row is not None else None

    async def get_variant(self, product_id: str, variant_id: str) -> ProductVariant | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(VariantTable).where(
                    VariantTable.id == variant_id,
                    VariantTable.product_id == product_id,
                )
            )
            return to_variant(row) if row is not None else None

    async def get_discount(self, discount_id: str) -> Discount | None:
        async with self._session_factory() as session:
            row = await session.get(DiscountTable, discount_id)
            return await _load_discount(session, row) if row is not None else None

    async def find_discount_by_code(self, code: str) -> Discount | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(DiscountTable).where(
                    func.lower(DiscountTable.code) == code.strip().lower()
                )
            )
            return await _load_discount(session, row) if row is not None else None

    async def get_shipping_option(self, option_id: str) -> ShippingOption | None:
        async with self._session_factory() as session:
            row = await session.get(ShippingOptionTable, option_id)
            return to_shipping_option(row) if row is not None else None

    async def list_products(self) -> list[Product]:
        async with self._session_factory() as session:
            rows = await session.scalars(select(ProductTable).order_by(ProductTable.id))
            return [to_product(r) for r in rows]

    async def find_product_by_barcode(self, code: str) -> BarcodeMatch | None:
        async with self._session_factory() as session:
            row = await session.scalar(select(ProductTable).where(ProductTable.barcode == code))
            if row is not None:
                return BarcodeMatch(to_product(row))
            variant = await session.scalar(select(VariantTable).where(VariantTable.sku == code))
            if variant is None:
                return None
            parent = await session.scalars(
                select(ProductTable).where(ProductTable.id == variant.product_id)
            )
            product = to_product(parent.one())
            return BarcodeMatch(product, product.variant(variant.id))

    async def get_staff_member(self, user_id: str) -> StaffMember | None:
        async with self._session_factory() as session:
            row = await session.get(StaffTable, user_id)
            return to_staff_member(row) if row is not None else None

    # ── writes (seeding and admin) ──────────────────────────────────────────

    async def put_product(self, product: Product) -> None:
        """Insert or replace a product and its variants."""
        row = ProductTable(
            id=product.id,
            title=product.title,
            description=product.description,
            price=product.price,
            inventory=(
                product.variant_inventory if product.has_variants else product.inventory
            ),
            category=product.category,
            subcategory=product.subcategory,
            tags=list(product.tags),
            barcode=product.barcode,
            variants=[
                VariantTable(
                    id=v.id,
                    product_id=product.id,
                    sku=v.sku,
                    name=v.name,
                    price=v.price,
                    inventory=v.inventory,
                )
                for v in product.variants
            ],
        )
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(row)

    async def put_discount(self, discount: Discount) -> None:
        """Insert or replace a discount and its scope rows."""
        row = DiscountTable(
            id=discount.id,
            code=discount.code,
            description=discount.description,
            type=discount.type.value,
            value=discount.value,
            usage_limit=discount.usage_limit,
            usage_count=discount.usage_count,
            starts_at=discount.starts_at,
            ends_at=discount.ends_at,
            min_subtotal=discount.min_subtotal,
            is_active=discount.is_active,
        )
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(row)
                await session.flush()
                await session.execute(
                    delete(discount_products).where(
                        discount_products.c.discount_id == discount.id
                    )
                )
                await session.execute(
                    delete(discount_variants).where(
                        discount_variants.c.discount_id == discount.id
                    )
                )
                if discount.product_ids:
                    await session.execute(
                        insert(discount_products),
                        [
                            {"discount_id": discount.id, "product_id": pid}
                            for pid in sorted(discount.product_ids)
                        ],
                    )
                if discount.variant_ids:
                    await session.execute(
                        insert(discount_variants),
                        [
                            {"discount_id": discount.id, "variant_id": vid}
                            for vid in sorted(discount.variant_ids)
                        ],
                    )

    async def put_shipping_option(self, option: ShippingOption) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    ShippingOptionTable(
                        id=option.id,
                        name=option.name,
                        price=option.price,
                        delivery_time=option.delivery_time,
                        status=option.status.value,
                    )
                )

    async def put_staff_member(self, member: StaffMember) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    StaffTable(
                        id=member.id,
                        name=member.name,
                        email=member.email,
                        role=member.role.value,
                    )
                )


# ═══════════════════════════════════════════════════════════════════════════════
# Unit of Work
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyUnitOfWork:
    """Reads and writes bound to one session inside an open transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_order(self, order_id: str) -> Order | None:
        row = await self._session.get(OrderTable, order_id)
        return to_order(row) if row is not None else None

    async def find_order_by_payment_reference(self, reference: str) -> Order | None:
        row = await self._session.scalar(
            select(OrderTable).where(OrderTable.payment_reference == reference)
        )
        return to_order(row) if row is not None else None

    async def available(self, key: StockKey) -> int:
        if key.variant_id is None:
            found = (
                await self._session.execute(
                    select(ProductTable.inventory).where(ProductTable.id == key.product_id)
                )
            ).first()
            if found is None:
                raise NotFound("Product", key.product_id)
            return found[0] or 0

        found = (
            await self._session.execute(
                select(VariantTable.inventory).where(
                    VariantTable.id == key.variant_id,
                    VariantTable.product_id == key.product_id,
                )
            )
        ).first()
        if found is None:
            raise NotFound("Variant", key.variant_id)
        return found[0]

    async def adjust_stock(self, key: StockKey, delta: int) -> None:
        """
        Add `delta` to one stock unit. A decrement only applies while the
        unit still holds enough stock, so concurrent deductions cannot
        drive it below zero.

        Raises:
            NotFound: unknown product or variant
            InsufficientStock: decrement larger than the stock left
        """
        if key.variant_id is None:
            stock = func.coalesce(ProductTable.inventory, 0)
            stmt = (
                update(ProductTable)
                .where(ProductTable.id == key.product_id)
                .values(inventory=stock + delta)
                .execution_options(synchronize_session=False)
            )
            if delta < 0:
                stmt = stmt.where(stock >= -delta)
            cursor = cast(CursorResult[Any], await self._session.execute(stmt))
            if cursor.rowcount == 0:
                await self._stock_shortfall(key, -delta)
            return

        stmt = (
            update(VariantTable)
            .where(
                VariantTable.id == key.variant_id,
                VariantTable.product_id == key.product_id,
            )
            .values(inventory=VariantTable.inventory + delta)
            .execution_options(synchronize_session=False)
        )
        if delta < 0:
            stmt = stmt.where(VariantTable.inventory >= -delta)
        cursor = cast(CursorResult[Any], await self._session.execute(stmt))
        if cursor.rowcount == 0:
            await self._stock_shortfall(key, -delta)

        variant_sum = (
            select(func.coalesce(func.sum(VariantTable.inventory), 0))
            .where(VariantTable.product_id == key.product_id)
            .scalar_subquery()
        )
        await self._session.execute(
            update(ProductTable)
            .where(ProductTable.id == key.product_id)
            .values(inventory=variant_sum)
            .execution_options(synchronize_session=False)
        )

    async def _stock_shortfall(self, key: StockKey, required: int) -> None:
        """Explain a stock UPDATE that matched no row."""
        row = await self._session.get(ProductTable, key.product_id, populate_existing=True)
        if row is None:
            raise NotFound("Product", key.product_id)
        product = to_product(row)
        variant = None
        if key.variant_id is not None:
            variant = product.variant(key.variant_id)
            if variant is None:
                raise NotFound("Variant", key.variant_id)
        available = variant.inventory if variant is not None else (product.inventory or 0)
        label = product.label_for(variant)
        logger.warning(
            "stock for %s changed concurrently: available=%d required=%d",
            label,
            available,
            required,
        )
        raise InsufficientStock(label, available, required)

    async def claim_discount(self, discount_id: str) -> None:
        stmt = (
            update(DiscountTable)
            .where(
                DiscountTable.id == discount_id,
                or_(
                    DiscountTable.usage_limit.is_(None),
                    DiscountTable.usage_count < DiscountTable.usage_limit,
                ),
            )
            .values(usage_count=DiscountTable.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await self._session.execute(stmt))
        if cursor.rowcount > 0:
            return

        code = await self._session.scalar(
            select(DiscountTable.code).where(DiscountTable.id == discount_id)
        )
        if code is None:
            raise NotFound("Discount", discount_id)
        raise DiscountRejected(DiscountRejection.USAGE_EXHAUSTED, code)

    async def save_order(self, order: Order) -> None:
        values = _order_values(order)
        row = await self._session.get(OrderTable, order.id)
        if row is None:
            self._session.add(OrderTable(id=order.id, items=_item_rows(order), **values))
            await self._session.flush()
            return

        for name, value in values.items():
            setattr(row, name, value)
        if [i.id for i in row.items] != [i.id for i in order.items]:
            row.items.clear()
            await self._session.flush()
            row.items.extend(_item_rows(order))
        await self._session.flush()


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyGateway:
    """
    Order gateway. One transaction is one session with one BEGIN/COMMIT.

    Domain errors raised inside the block roll back and propagate unchanged;
    database errors roll back and surface as TransactionFailed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLAlchemyUnitOfWork]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield SQLAlchemyUnitOfWork(session)
        except SQLAlchemyError as e:
            logger.exception("order transaction failed")
            raise TransactionFailed(f"Order transaction failed: {e}", e) from e

    async def get_order(self, order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.get(OrderTable, order_id)
            return to_order(row) if row is not None else None

    async def list_orders(self) -> list[Order]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(OrderTable).order_by(OrderTable.created_at.desc())
            )
            return [to_order(r) for r in rows]


__all__ = (
    "to_product",
    "to_variant",
    "to_shipping_option",
    "to_staff_member",
    "to_order",
    "SQLAlchemyCatalog",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyGateway",
)
