"""
Stock transition — deduct or restore inventory for an order's lines.

DEDUCT checks every stock unit first and only writes when all of them
have enough; a shortage on any line leaves every unit untouched.
RESTORE puts the quantities back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from tillpoint.errors import InsufficientStock
from tillpoint.inventory._types import (
    StockKey,
    StockRequest,
    StockTransition,
    StockWriter,
)

logger = logging.getLogger(__name__)


class StockLine(Protocol):
    """Anything with ids, a quantity and a display label (e.g. ResolvedLine)."""

    @property
    def product_id(self) -> str: ...
    @property
    def variant_id(self) -> str | None: ...
    @property
    def quantity(self) -> int: ...
    @property
    def label(self) -> str: ...


def stock_requests(lines: Iterable[StockLine]) -> list[StockRequest]:
    """One request per stock unit; repeated lines for the same unit are summed."""
    merged: dict[StockKey, StockRequest] = {}
    for line in lines:
        key = StockKey(line.product_id, line.variant_id)
        existing = merged.get(key)
        if existing is None:
            merged[key] = StockRequest(key, line.quantity, line.label)
        else:
            merged[key] = StockRequest(key, existing.quantity + line.quantity, existing.label)
    return list(merged.values())


async def check_availability(writer: StockWriter, requests: Sequence[StockRequest]) -> None:
    """
    Raises:
        InsufficientStock: for the first unit short of its requested quantity
    """
    for request in requests:
        available = await writer.available(request.key)
        if available < request.quantity:
            logger.warning(
                "insufficient stock for %s: available=%d required=%d",
                request.label,
                available,
                request.quantity,
            )
            raise InsufficientStock(request.label, available, request.quantity)


async def apply_stock_transition(
    writer: StockWriter,
    lines: Iterable[StockLine],
    transition: StockTransition,
) -> list[StockRequest]:
    """
    Apply `transition` to every line's stock unit.

    Must run inside the same unit of work as the order write, so the
    availability read and the writes see the same stock.

    Returns:
        The stock requests that were applied (empty for NONE).

    Raises:
        InsufficientStock: DEDUCT with any unit short; nothing written
    """
    if transition is StockTransition.NONE:
        return []

    requests = stock_requests(lines)
    if transition is StockTransition.DEDUCT:
        await check_availability(writer, requests)
        sign = -1
    else:
        sign = 1

    for request in requests:
        await writer.adjust_stock(request.key, sign * request.quantity)

    logger.info(
        "stock %s applied to %d unit(s)",
        transition.name.lower(),
        len(requests),
    )
    return requests


__all__ = (
    "StockLine",
    "stock_requests",
    "check_availability",
    "apply_stock_transition",
)
