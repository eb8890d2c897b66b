import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from decimal import Decimal

import pytest

from tillpoint._config import Settings
from tillpoint.domain import OrderStatus
from tillpoint.errors import (
    DiscountRejected,
    DiscountRejection,
    InsufficientStock,
    NotFound,
    TransactionFailed,
    ValidationError,
)
from tillpoint.orders import OrderDraft, OrderPatch, OrderService
from tillpoint.pricing import LineRequest

S = OrderStatus


def draft(customer, *items: LineRequest, **kwargs) -> OrderDraft:
    return OrderDraft(items=tuple(items), customer=customer, **kwargs)


async def stock(catalog, product_id: str, variant_id: str | None = None) -> int:
    product = await catalog.get_product(product_id)
    if variant_id is None:
        return product.inventory
    return product.variant(variant_id).inventory


# ═══════════════════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════════════════


async def test_create_prices_and_persists(service, catalog, customer, clock):
    order = await service.create(
        draft(
            customer,
            LineRequest("widget", 3),
            shipping_option_id="standard",
            discount_code="SAVE10",
            claimed_total=Decimal("1550"),
        )
    )

    assert order.status is S.PENDING
    assert order.subtotal == Decimal("1500")
    assert order.discount_amount == Decimal("150")
    assert order.total == Decimal("1550")
    assert order.discount_id == "d-save10"
    assert order.created_at == clock.now
    assert [(i.product_id, i.quantity, i.unit_price, i.subtotal) for i in order.items] == [
        ("widget", 3, Decimal("500"), Decimal("1500"))
    ]
    assert await service.get(order.id) == order
    assert (await catalog.get_discount("d-save10")).usage_count == 1
    assert await stock(catalog, "widget") == 10


async def test_quote_writes_nothing(service, catalog, customer):
    totals = await service.quote(draft(customer, LineRequest("widget", 1), discount_code="SAVE10"))
    assert totals.total == Decimal("450")
    assert await service.list() == []
    assert (await catalog.get_discount("d-save10")).usage_count == 0


async def test_customer_fields_required(service):
    with pytest.raises(ValidationError) as exc:
        await service.create(draft(None, LineRequest("widget", 1)))
    assert exc.value.code == "MISSING_CUSTOMER"


async def test_blank_customer_field_is_reported(service, customer):
    with pytest.raises(ValidationError) as exc:
        await service.create(draft(replace(customer, city=""), LineRequest("widget", 1)))
    assert exc.value.code == "MISSING_CUSTOMER"
    assert "city" in exc.value.message


async def test_cashier_checkout_delivered_deducts_stock(service, catalog):
    order = await service.create(
        draft(None, LineRequest("shirt", 2, "shirt-s"), cashier_id="cashier-1", status=S.DELIVERED)
    )
    assert order.status is S.DELIVERED
    assert order.customer is None
    assert await stock(catalog, "shirt", "shirt-s") == 3
    assert await stock(catalog, "shirt") == 6


async def test_only_cashier_may_skip_pending(service, customer):
    with pytest.raises(ValidationError) as exc:
        await service.create(draft(customer, LineRequest("widget", 1), status=S.SHIPPED))
    assert exc.value.code == "INVALID_STATUS"


async def test_mismatched_total_creates_nothing(service, catalog, customer):
    with pytest.raises(ValidationError) as exc:
        await service.create(
            draft(customer, LineRequest("widget", 2), discount_code="ONCE", claimed_total=Decimal("999"))
        )
    assert exc.value.code == "TOTAL_MISMATCH"
    assert await service.list() == []
    assert (await catalog.get_discount("d-once")).usage_count == 0


async def test_cashier_checkout_without_stock_is_rejected(service, catalog):
    with pytest.raises(InsufficientStock):
        await service.create(
            draft(None, LineRequest("lamp", 3), cashier_id="cashier-1", status=S.DELIVERED)
        )
    assert await service.list() == []
    assert await stock(catalog, "lamp") == 2


@pytest.mark.parametrize("cashier_id", ["nobody", "admin-1"])
async def test_cashier_must_be_a_known_cashier(service, catalog, cashier_id):
    with pytest.raises(ValidationError) as exc:
        await service.create(
            draft(None, LineRequest("widget", 1), cashier_id=cashier_id, status=S.DELIVERED)
        )
    assert exc.value.code == "INVALID_CASHIER"
    assert await service.list() == []
    assert await stock(catalog, "widget") == 10


async def test_product_with_variants_requires_a_variant(service, catalog):
    with pytest.raises(ValidationError) as exc:
        await service.create(
            draft(None, LineRequest("shirt", 2), cashier_id="cashier-1", status=S.DELIVERED)
        )
    assert exc.value.code == "VARIANT_REQUIRED"
    assert await stock(catalog, "shirt") == 8
    assert await stock(catalog, "shirt", "shirt-s") + await stock(catalog, "shirt", "shirt-m") == 8


async def test_payment_reference_is_unique(service, customer):
    await service.create(draft(customer, LineRequest("widget", 1), payment_reference="pay_1"))
    with pytest.raises(ValidationError) as exc:
        await service.create(draft(customer, LineRequest("widget", 1), payment_reference="pay_1"))
    assert exc.value.code == "PAYMENT_REFERENCE_USED"
    assert len(await service.list()) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Discount usage
# ═══════════════════════════════════════════════════════════════════════════════


async def test_usage_limit_is_enforced(service, catalog, customer):
    first = await service.create(draft(customer, LineRequest("widget", 1), discount_code="ONCE"))
    assert (await catalog.get_discount("d-once")).usage_count == 1

    with pytest.raises(DiscountRejected) as exc:
        await service.create(draft(customer, LineRequest("widget", 1), discount_code="ONCE"))
    assert exc.value.reason is DiscountRejection.USAGE_EXHAUSTED

    # Editing the order that holds the discount neither re-checks nor re-claims it.
    edited = await service.update(first.id, OrderPatch(items=(LineRequest("widget", 2),)))
    assert edited.discount_amount == Decimal("100")
    assert (await catalog.get_discount("d-once")).usage_count == 1


async def test_attaching_a_new_discount_claims_usage(service, catalog, customer):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    updated = await service.update(order.id, OrderPatch(discount_id="d-save10"))
    assert updated.discount_amount == Decimal("100")
    assert updated.total == Decimal("900")
    assert (await catalog.get_discount("d-save10")).usage_count == 1

    cleared = await service.update(order.id, OrderPatch(discount_id=None))
    assert cleared.discount_id is None
    assert cleared.total == Decimal("1000")
    assert (await catalog.get_discount("d-save10")).usage_count == 1


async def test_lost_usage_race_rolls_back_stock(catalog, gateway, customer, clock):
    class RacingGateway:
        """Another checkout claims the last use just before our transaction."""

        def __init__(self, inner):
            self.inner = inner

        @asynccontextmanager
        async def transaction(self):
            catalog.set_usage_count("d-once", 1)
            async with self.inner.transaction() as uow:
                yield uow

        async def get_order(self, order_id):
            return await self.inner.get_order(order_id)

        async def list_orders(self):
            return await self.inner.list_orders()

    service = OrderService(catalog, RacingGateway(gateway), clock=clock)
    with pytest.raises(DiscountRejected) as exc:
        await service.create(
            draft(
                None,
                LineRequest("widget", 4),
                discount_code="ONCE",
                cashier_id="cashier-1",
                status=S.DELIVERED,
            )
        )
    assert exc.value.reason is DiscountRejection.USAGE_EXHAUSTED
    assert await stock(catalog, "widget") == 10
    assert await service.list() == []


# ═══════════════════════════════════════════════════════════════════════════════
# Status transitions
# ═══════════════════════════════════════════════════════════════════════════════


async def test_ship_then_cancel_restores_stock(service, catalog, customer):
    order = await service.create(
        draft(customer, LineRequest("shirt", 2, "shirt-s"), LineRequest("widget", 3))
    )

    shipped = await service.apply_status_transition(order.id, S.SHIPPED)
    assert shipped.status is S.SHIPPED
    assert await stock(catalog, "shirt", "shirt-s") == 3
    assert await stock(catalog, "shirt") == 6
    assert await stock(catalog, "widget") == 7

    delivered = await service.apply_status_transition(order.id, S.DELIVERED)
    assert delivered.status is S.DELIVERED
    assert await stock(catalog, "widget") == 7

    await service.apply_status_transition(order.id, S.CANCELLED)
    assert await stock(catalog, "shirt", "shirt-s") == 5
    assert await stock(catalog, "shirt") == 8
    assert await stock(catalog, "widget") == 10


async def test_insufficient_stock_leaves_order_and_stock_unchanged(service, catalog, customer):
    order = await service.create(draft(customer, LineRequest("widget", 1), LineRequest("lamp", 3)))

    with pytest.raises(InsufficientStock):
        await service.apply_status_transition(order.id, S.SHIPPED)

    assert (await service.get(order.id)).status is S.PENDING
    assert await stock(catalog, "widget") == 10
    assert await stock(catalog, "lamp") == 2


async def test_status_graph_is_permissive(service, catalog, customer):
    order = await service.create(draft(customer, LineRequest("lamp", 1)))
    await service.apply_status_transition(order.id, S.DELIVERED)
    back = await service.apply_status_transition(order.id, S.PENDING)
    assert back.status is S.PENDING
    assert await stock(catalog, "lamp") == 2


async def test_status_change_does_not_reprice(service, catalog, customer, clock):
    order = await service.create(draft(customer, LineRequest("widget", 1), discount_code="SAVE10"))
    widget = await catalog.get_product("widget")
    catalog.put_product(replace(widget, price=Decimal("800")))
    clock.advance(days=365)

    shipped = await service.apply_status_transition(order.id, S.SHIPPED)
    assert shipped.total == order.total
    assert shipped.updated_at == clock.now


async def test_unknown_order(service):
    with pytest.raises(NotFound):
        await service.apply_status_transition("ord_missing", S.SHIPPED)
    with pytest.raises(NotFound):
        await service.update("ord_missing", OrderPatch())


# ═══════════════════════════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════════════════════════


async def test_update_keeps_snapshot_prices_when_items_unset(service, catalog, customer):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    widget = await catalog.get_product("widget")
    catalog.put_product(replace(widget, price=Decimal("650")))

    updated = await service.update(order.id, OrderPatch(shipping_option_id="standard"))
    assert updated.items == order.items
    assert updated.subtotal == Decimal("1000")
    assert updated.shipping_cost == Decimal("200")
    assert updated.total == Decimal("1200")

    cleared = await service.update(order.id, OrderPatch(shipping_option_id=None))
    assert cleared.shipping_option_id is None
    assert cleared.total == Decimal("1000")


async def test_update_replaces_items_at_current_prices(service, customer):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    updated = await service.update(
        order.id,
        OrderPatch(items=(LineRequest("shirt", 1, "shirt-s"),), claimed_total=Decimal("1200")),
    )
    assert [i.product_id for i in updated.items] == ["shirt"]
    assert updated.subtotal == Decimal("1200")
    assert updated.created_at == order.created_at


async def test_update_checks_claimed_total(service, customer):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    with pytest.raises(ValidationError) as exc:
        await service.update(order.id, OrderPatch(claimed_total=Decimal("1")))
    assert exc.value.code == "TOTAL_MISMATCH"
    assert (await service.get(order.id)) == order


async def test_update_with_status_deducts_final_items(service, catalog, customer):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    await service.update(order.id, OrderPatch(items=(LineRequest("lamp", 2),), status=S.SHIPPED))
    assert await stock(catalog, "widget") == 10
    assert await stock(catalog, "lamp") == 0


async def test_editing_items_of_shipped_order_moves_stock(service, catalog, customer):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    await service.apply_status_transition(order.id, S.SHIPPED)
    assert await stock(catalog, "widget") == 8

    await service.update(order.id, OrderPatch(items=(LineRequest("widget", 1), LineRequest("lamp", 1))))
    assert await stock(catalog, "widget") == 9
    assert await stock(catalog, "lamp") == 1

    await service.apply_status_transition(order.id, S.CANCELLED)
    assert await stock(catalog, "widget") == 10
    assert await stock(catalog, "lamp") == 2


async def test_payment_reference_is_write_once(service, customer):
    order = await service.create(draft(customer, LineRequest("widget", 1)))
    other = await service.create(draft(customer, LineRequest("widget", 1), payment_reference="pay_other"))

    with pytest.raises(ValidationError) as exc:
        await service.update(order.id, OrderPatch(payment_reference="pay_other"))
    assert exc.value.code == "PAYMENT_REFERENCE_USED"

    paid = await service.update(order.id, OrderPatch(payment_reference="pay_1"))
    assert paid.payment_reference == "pay_1"

    same = await service.update(order.id, OrderPatch(payment_reference="pay_1"))
    assert same.payment_reference == "pay_1"

    for value in ("pay_2", None):
        with pytest.raises(ValidationError) as exc:
            await service.update(order.id, OrderPatch(payment_reference=value))
        assert exc.value.code == "PAYMENT_REFERENCE_LOCKED"

    assert (await service.get(other.id)).payment_reference == "pay_other"


async def test_clearing_customer_requires_cashier(service, customer):
    order = await service.create(draft(customer, LineRequest("widget", 1)))
    with pytest.raises(ValidationError) as exc:
        await service.update(order.id, OrderPatch(customer=None))
    assert exc.value.code == "MISSING_CUSTOMER"


async def test_list_is_newest_first(service, customer, clock):
    first = await service.create(draft(customer, LineRequest("widget", 1)))
    clock.advance(minutes=5)
    second = await service.create(draft(customer, LineRequest("widget", 1)))
    assert [o.id for o in await service.list()] == [second.id, first.id]


class PricingHook:
    """Runs `hook` once, on the first product read made while pricing."""

    def __init__(self, inner, hook):
        self.inner = inner
        self.hook = hook

    async def get_product(self, product_id):
        hook, self.hook = self.hook, None
        if hook is not None:
            await hook()
        return await self.inner.get_product(product_id)

    def __getattr__(self, name):
        return getattr(self.inner, name)


async def test_customer_edit_does_not_undo_concurrent_ship(service, catalog, gateway, customer, clock):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    editor = OrderService(
        PricingHook(catalog, lambda: service.apply_status_transition(order.id, S.SHIPPED)),
        gateway,
        clock=clock,
    )

    updated = await editor.update(order.id, OrderPatch(customer=replace(customer, city="Abuja")))
    assert updated.status is S.SHIPPED
    assert updated.customer.city == "Abuja"
    assert await stock(catalog, "widget") == 8

    await service.apply_status_transition(order.id, S.CANCELLED)
    assert await stock(catalog, "widget") == 10


async def test_edit_priced_against_stale_items_is_refused(service, catalog, gateway, customer, clock):
    order = await service.create(draft(customer, LineRequest("widget", 2)))
    editor = OrderService(
        PricingHook(
            catalog,
            lambda: service.update(order.id, OrderPatch(items=(LineRequest("lamp", 1),))),
        ),
        gateway,
        clock=clock,
    )

    with pytest.raises(TransactionFailed):
        await editor.update(order.id, OrderPatch(customer=replace(customer, city="Abuja")))
    stored = await service.get(order.id)
    assert [i.product_id for i in stored.items] == ["lamp"]
    assert stored.customer == customer


# ═══════════════════════════════════════════════════════════════════════════════
# Timeout
# ═══════════════════════════════════════════════════════════════════════════════


async def test_slow_transaction_times_out_without_effects(catalog, gateway, customer, clock):
    class SlowGateway:
        def __init__(self, inner):
            self.inner = inner

        @asynccontextmanager
        async def transaction(self):
            async with self.inner.transaction() as uow:
                await asyncio.sleep(1)
                yield uow

        async def get_order(self, order_id):
            return await self.inner.get_order(order_id)

        async def list_orders(self):
            return await self.inner.list_orders()

    settings = Settings().with_transaction_timeout(seconds=0.01)
    service = OrderService(catalog, SlowGateway(gateway), settings, clock=clock)

    with pytest.raises(TransactionFailed):
        await service.create(draft(customer, LineRequest("widget", 1), discount_code="SAVE10"))
    assert await gateway.list_orders() == []
    assert (await catalog.get_discount("d-save10")).usage_count == 0
