"""
Inventory — stock effects of order status changes.

    from tillpoint import inventory as I

    transition = I.classify_transition(OrderStatus.PENDING, OrderStatus.SHIPPED)
    await I.apply_stock_transition(unit_of_work, lines, transition)

Entering {SHIPPED, DELIVERED} deducts stock (all-or-nothing), leaving it
restores stock. Variant writes keep the parent product's inventory equal
to the sum of its variants.
"""

from tillpoint.inventory._types import (
    StockTransition,
    classify_transition,
    StockKey,
    StockRequest,
    StockWriter,
)
from tillpoint.inventory._ledger import Undo, RollbackReport, Ledger
from tillpoint.inventory._transition import (
    StockLine,
    stock_requests,
    check_availability,
    apply_stock_transition,
)

__all__ = (
    "StockTransition",
    "classify_transition",
    "StockKey",
    "StockRequest",
    "StockWriter",
    "Undo",
    "RollbackReport",
    "Ledger",
    "StockLine",
    "stock_requests",
    "check_availability",
    "apply_stock_transition",
)
