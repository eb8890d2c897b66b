"""
Order Service — create, edit and transition orders.

    service = OrderService(catalog, gateway, Settings())

    order = await service.create(OrderDraft(items=(LineRequest("p1", 3),), customer=c))
    order = await service.apply_status_transition(order.id, OrderStatus.SHIPPED)

Pricing runs outside the transaction against the catalog; stock, discount
usage and the order row are written inside one Gateway transaction,
bounded by `Settings.transaction_timeout`.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import replace

from tillpoint._config import Settings
from tillpoint._types import Clock, utc_now
from tillpoint.catalog import Catalog
from tillpoint.domain import Customer, Order, OrderItem, OrderStatus
from tillpoint.errors import NotFound, TransactionFailed, ValidationError
from tillpoint.inventory import StockTransition, apply_stock_transition, classify_transition
from tillpoint.orders._types import OrderDraft, OrderPatch, Unset
from tillpoint.pricing import (
    LineRequest,
    OrderCandidate,
    OrderTotals,
    ResolvedLine,
    compute_order,
)
from tillpoint.storage import Gateway, UnitOfWork

logger = logging.getLogger(__name__)


def _order_id() -> str:
    return f"ord_{uuid.uuid4().hex[:12]}"


def _item_id() -> str:
    return f"item_{uuid.uuid4().hex[:12]}"


def _check_customer(customer: Customer | None, cashier_id: str | None) -> None:
    """Customer details are required unless a cashier rings the order up."""
    if cashier_id:
        return
    if customer is None:
        raise ValidationError("MISSING_CUSTOMER", "Customer details are required")
    missing = customer.missing_fields()
    if missing:
        raise ValidationError(
            "MISSING_CUSTOMER",
            f"Missing required fields: {', '.join(missing)}",
        )


def _items_from(order_id: str, lines: Sequence[ResolvedLine]) -> tuple[OrderItem, ...]:
    return tuple(
        OrderItem(
            id=_item_id(),
            order_id=order_id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            subtotal=line.subtotal,
        )
        for line in lines
    )


def _check_unchanged(before: Order, current: Order) -> None:
    """Pricing read `before` outside the transaction; `current` must still match it."""
    if (
        current.items != before.items
        or current.shipping_option_id != before.shipping_option_id
        or current.discount_id != before.discount_id
    ):
        raise TransactionFailed(f"Order {before.id} changed concurrently; retry")


# ═══════════════════════════════════════════════════════════════════════════════
# OrderService
# ═══════════════════════════════════════════════════════════════════════════════


class OrderService:
    def __init__(
        self,
        catalog: Catalog,
        gateway: Gateway,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._catalog = catalog
        self._gateway = gateway
        self._settings = settings or Settings()
        self._clock = clock

    # ── reads ────────────────────────────────────────────────────────────────

    async def get(self, order_id: str) -> Order:
        order = await self._gateway.get_order(order_id)
        if order is None:
            raise NotFound("Order", order_id)
        return order

    async def list(self) -> list[Order]:
        return await self._gateway.list_orders()

    async def quote(self, draft: OrderDraft) -> OrderTotals:
        """Price a cart or checkout without writing anything."""
        return await compute_order(self._catalog, draft.candidate(), now=self._clock())

    # ── create ───────────────────────────────────────────────────────────────

    async def create(self, draft: OrderDraft) -> Order:
        """
        Price and persist a new order.

        Raises:
            ValidationError: bad input, claimed figure mismatch, payment
                reference already used, missing customer, unknown or
                non-cashier cashier_id
            DiscountRejected: discount not applicable or usage exhausted
            NotFound: unknown product, variant, shipping option or discount
            InsufficientStock: cashier order created as fulfilled without stock
            TransactionFailed: storage error or timeout; nothing written
        """
        if draft.cashier_id:
            await self._check_cashier(draft.cashier_id)
        _check_customer(draft.customer, draft.cashier_id)
        if draft.status is not OrderStatus.PENDING and not draft.cashier_id:
            raise ValidationError(
                "INVALID_STATUS",
                "Only cashier checkouts may be created in a status other than PENDING",
            )

        totals = await compute_order(self._catalog, draft.candidate(), now=self._clock())

        now = self._clock()
        order_id = _order_id()
        order = Order(
            id=order_id,
            status=draft.status,
            items=_items_from(order_id, totals.lines),
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping_cost,
            discount_amount=totals.discount_amount,
            total=totals.total,
            created_at=now,
            updated_at=now,
            customer=draft.customer,
            cashier_id=draft.cashier_id,
            shipping_option_id=totals.shipping_option.id if totals.shipping_option else None,
            discount_id=totals.discount.id if totals.discount else None,
            payment_reference=draft.payment_reference,
        )

        async with self._write() as uow:
            if order.payment_reference:
                await self._check_reference_free(uow, order.id, order.payment_reference)
            await apply_stock_transition(
                uow, totals.lines, classify_transition(None, order.status)
            )
            if totals.discount is not None:
                await uow.claim_discount(totals.discount.id)
            await uow.save_order(order)

        logger.info(
            "order %s created: status=%s total=%s",
            order.id,
            order.status.value,
            order.total,
        )
        return order

    # ── update ───────────────────────────────────────────────────────────────

    async def update(self, order_id: str, patch: OrderPatch) -> Order:
        """
        Apply a partial edit, reprice, and run stock effects of a status change.

        Items left unset (or empty) keep their snapshot prices. A newly
        attached discount claims one usage; keeping the same discount does
        not. The payment reference may be set once and never changed.

        Fields the patch leaves unset keep the value stored when the
        transaction runs, so a concurrent status change is never undone.
        If the items, shipping option or discount changed since pricing,
        the edit is refused with TransactionFailed and can be retried.
        """
        existing = await self.get(order_id)

        if not isinstance(patch.customer, Unset):
            _check_customer(patch.customer, existing.cashier_id)

        shipping_option_id = (
            existing.shipping_option_id
            if isinstance(patch.shipping_option_id, Unset)
            else patch.shipping_option_id
        )
        discount_id = (
            existing.discount_id if isinstance(patch.discount_id, Unset) else patch.discount_id
        )

        replace_items = not isinstance(patch.items, Unset) and len(patch.items) > 0
        old_lines = await self._snapshot_lines(existing.items)
        if replace_items:
            requests = patch.items
            lines = None
        else:
            requests = tuple(
                LineRequest(i.product_id, i.quantity, i.variant_id) for i in existing.items
            )
            lines = old_lines

        candidate = OrderCandidate(
            items=requests,
            shipping_option_id=shipping_option_id,
            discount_id=discount_id,
            claimed_subtotal=patch.claimed_subtotal,
            claimed_shipping_cost=patch.claimed_shipping_cost,
            claimed_total=patch.claimed_total,
        )
        totals = await compute_order(
            self._catalog,
            candidate,
            now=self._clock(),
            applied_discount_id=existing.discount_id,
            lines=lines,
        )

        async with self._write() as uow:
            current = await uow.get_order(order_id)
            if current is None:
                raise NotFound("Order", order_id)
            _check_unchanged(existing, current)

            status = current.status if isinstance(patch.status, Unset) else patch.status
            customer = current.customer if isinstance(patch.customer, Unset) else patch.customer
            reference = current.payment_reference
            if not isinstance(patch.payment_reference, Unset):
                if current.payment_reference and patch.payment_reference != current.payment_reference:
                    raise ValidationError(
                        "PAYMENT_REFERENCE_LOCKED",
                        f"Order {order_id} already has a payment reference",
                    )
                reference = patch.payment_reference
            if reference and reference != current.payment_reference:
                await self._check_reference_free(uow, order_id, reference)

            await self._move_stock(
                uow,
                current.status,
                status,
                old_lines,
                totals.lines,
                items_changed=replace_items,
            )

            new_discount_id = totals.discount.id if totals.discount else None
            if new_discount_id is not None and new_discount_id != current.discount_id:
                await uow.claim_discount(new_discount_id)

            updated = replace(
                current,
                status=status,
                items=_items_from(order_id, totals.lines) if replace_items else current.items,
                subtotal=totals.subtotal,
                shipping_cost=totals.shipping_cost,
                discount_amount=totals.discount_amount,
                total=totals.total,
                customer=customer,
                shipping_option_id=(
                    totals.shipping_option.id if totals.shipping_option else None
                ),
                discount_id=new_discount_id,
                payment_reference=reference,
                updated_at=self._clock(),
            )
            await uow.save_order(updated)

        logger.info(
            "order %s updated: status=%s total=%s",
            order_id,
            updated.status.value,
            updated.total,
        )
        return updated

    # ── status ───────────────────────────────────────────────────────────────

    async def apply_status_transition(self, order_id: str, new_status: OrderStatus) -> Order:
        """
        Change only the status, with its stock effect. Totals are not repriced.

        Raises:
            NotFound: unknown order
            InsufficientStock: entering SHIPPED/DELIVERED without enough stock;
                status and every inventory stay unchanged
            TransactionFailed: the order's items changed concurrently
        """
        existing = await self.get(order_id)
        lines = await self._snapshot_lines(existing.items)

        async with self._write() as uow:
            current = await uow.get_order(order_id)
            if current is None:
                raise NotFound("Order", order_id)
            _check_unchanged(existing, current)
            await self._move_stock(uow, current.status, new_status, lines, lines)
            updated = replace(current, status=new_status, updated_at=self._clock())
            await uow.save_order(updated)

        logger.info(
            "order %s status %s -> %s",
            order_id,
            current.status.value,
            new_status.value,
        )
        return updated

    # ── internals ────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[UnitOfWork]:
        seconds = self._settings.transaction_timeout.total_seconds()
        try:
            async with asyncio.timeout(seconds):
                async with self._gateway.transaction() as uow:
                    yield uow
        except TimeoutError as e:
            logger.error("order transaction timed out after %ss", seconds)
            raise TransactionFailed(f"Order transaction timed out after {seconds}s", e) from e

    async def _move_stock(
        self,
        uow: UnitOfWork,
        old: OrderStatus,
        new: OrderStatus,
        old_lines: Sequence[ResolvedLine],
        new_lines: Sequence[ResolvedLine],
        *,
        items_changed: bool = False,
    ) -> None:
        """Restore what was deducted, deduct what is now fulfilled."""
        if old.is_fulfilled and new.is_fulfilled:
            if items_changed:
                await apply_stock_transition(uow, old_lines, StockTransition.RESTORE)
                await apply_stock_transition(uow, new_lines, StockTransition.DEDUCT)
            return

        match classify_transition(old, new):
            case StockTransition.DEDUCT:
                await apply_stock_transition(uow, new_lines, StockTransition.DEDUCT)
            case StockTransition.RESTORE:
                await apply_stock_transition(uow, old_lines, StockTransition.RESTORE)
            case StockTransition.NONE:
                pass

    async def _snapshot_lines(self, items: Sequence[OrderItem]) -> tuple[ResolvedLine, ...]:
        """Lines for stored items, priced at their snapshot unit price."""
        lines = []
        for item in items:
            product = await self._catalog.get_product(item.product_id)
            if product is None:
                raise NotFound("Product", item.product_id)
            variant = None
            if item.variant_id:
                variant = product.variant(item.variant_id)
                if variant is None:
                    raise NotFound("Variant", item.variant_id)
            elif product.has_variants:
                raise ValidationError(
                    "VARIANT_REQUIRED",
                    f"Product {product.id} has variants; order item {item.id} names none",
                )
            available = (
                variant.inventory if variant is not None else (product.inventory or 0)
            )
            lines.append(
                ResolvedLine(
                    product=product,
                    variant=variant,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    available=available,
                )
            )
        return tuple(lines)

    async def _check_cashier(self, cashier_id: str) -> None:
        member = await self._catalog.get_staff_member(cashier_id)
        if member is None or not member.is_cashier:
            raise ValidationError("INVALID_CASHIER", f"Invalid cashier: {cashier_id}")

    async def _check_reference_free(self, uow: UnitOfWork, order_id: str, reference: str) -> None:
        other = await uow.find_order_by_payment_reference(reference)
        if other is not None and other.id != order_id:
            raise ValidationError(
                "PAYMENT_REFERENCE_USED",
                f"Payment reference {reference} is already used by another order",
            )


__all__ = ("OrderService",)
