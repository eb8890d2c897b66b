"""
Orders — create, edit and move orders through their statuses.

    from tillpoint import orders as O

    service = O.OrderService(catalog, gateway, settings)
    order = await service.create(O.OrderDraft(items=..., customer=...))
    order = await service.update(order.id, O.OrderPatch(status=OrderStatus.SHIPPED))
"""

from tillpoint.orders._types import Unset, UNSET, Patch, OrderDraft, OrderPatch
from tillpoint.orders._service import OrderService

__all__ = (
    "Unset",
    "UNSET",
    "Patch",
    "OrderDraft",
    "OrderPatch",
    "OrderService",
)
