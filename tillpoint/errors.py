"""
Errors raised by the pricing, inventory and order layers.

Every error carries a machine-readable `code` and a human `message`.
Validation errors are raised before any write; only `TransactionFailed`
can follow a partially executed (and rolled back) unit of work.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any


class TillpointError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def details(self) -> dict[str, Any]:
        """Extra fields for transport layers."""
        return {}


# ═══════════════════════════════════════════════════════════════════════════════
# NotFound
# ═══════════════════════════════════════════════════════════════════════════════


class NotFound(TillpointError):
    def __init__(self, entity: str, id: str) -> None:
        super().__init__("NOT_FOUND", f"{entity} {id} not found")
        self.entity = entity
        self.id = id

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "id": self.id}


# ═══════════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════════


class ValidationError(TillpointError):
    """
    Codes:
        INVALID_ITEM, EMPTY_ORDER, INVALID_PRICE, MISSING_CUSTOMER,
        SHIPPING_INACTIVE, SHIPPING_WITHOUT_OPTION, SHIPPING_MISMATCH,
        SUBTOTAL_MISMATCH, TOTAL_MISMATCH, PAYMENT_REFERENCE_USED,
        PAYMENT_REFERENCE_LOCKED, INVALID_STATUS, VARIANT_REQUIRED,
        INVALID_CASHIER, DISCOUNT_REJECTED
    """


class DiscountRejection(Enum):
    INVALID_TERMS = "invalid_terms"
    INACTIVE = "inactive"
    USAGE_EXHAUSTED = "usage_exhausted"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    BELOW_MINIMUM = "below_minimum"
    OUT_OF_SCOPE = "out_of_scope"


_REJECTION_MESSAGES: dict[DiscountRejection, str] = {
    DiscountRejection.INVALID_TERMS: "Discount value is out of range for its type",
    DiscountRejection.INACTIVE: "Discount is not active",
    DiscountRejection.USAGE_EXHAUSTED: "Discount has reached its usage limit",
    DiscountRejection.NOT_STARTED: "Discount is not yet valid",
    DiscountRejection.EXPIRED: "Discount has expired",
    DiscountRejection.BELOW_MINIMUM: "Order subtotal below minimum for discount",
    DiscountRejection.OUT_OF_SCOPE: "Discount not applicable to order items",
}


class DiscountRejected(ValidationError):
    def __init__(self, reason: DiscountRejection, code: str | None = None) -> None:
        message = _REJECTION_MESSAGES[reason]
        if code is not None:
            message = f"{message}: {code}"
        super().__init__("DISCOUNT_REJECTED", message)
        self.reason = reason
        self.discount_code = code

    def details(self) -> dict[str, Any]:
        return {"reason": self.reason.value}


# ═══════════════════════════════════════════════════════════════════════════════
# Stock
# ═══════════════════════════════════════════════════════════════════════════════


class InsufficientStock(TillpointError):
    def __init__(self, item: str, available: int, required: int) -> None:
        super().__init__(
            "INSUFFICIENT_STOCK",
            f"Insufficient inventory for {item}. Available: {available}, required: {required}",
        )
        self.item = item
        self.available = available
        self.required = required

    def details(self) -> dict[str, Any]:
        return {"item": self.item, "available": self.available, "required": self.required}


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction
# ═══════════════════════════════════════════════════════════════════════════════


class TransactionFailed(TillpointError):
    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__("TRANSACTION_FAILED", message)
        self.cause = cause


def mismatch(code: str, label: str, claimed: Decimal, calculated: Decimal) -> ValidationError:
    return ValidationError(
        code,
        f"Provided {label} {claimed} does not match calculated {label} {calculated}",
    )


__all__ = (
    "TillpointError",
    "NotFound",
    "ValidationError",
    "DiscountRejection",
    "DiscountRejected",
    "InsufficientStock",
    "TransactionFailed",
    "mismatch",
)
