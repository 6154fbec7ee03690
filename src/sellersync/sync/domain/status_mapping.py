"""Provider status vocabularies mapped onto internal status enums.

Each table maps a normalized (stripped, upper-cased) provider string to an
internal status. Unknown or missing strings fall back to the table default
instead of failing the record.
"""

from enum import Enum
from typing import Generic, Mapping, Optional, TypeVar

from .entities import FulfillmentStatus, InvoiceStatus, OrderStatus, PaymentStatus

S = TypeVar("S", bound=Enum)


class StatusTable(Generic[S]):
    """Case-insensitive lookup table with an explicit default entry."""

    def __init__(self, entries: Mapping[str, S], default: S):
        self._entries = {self.normalize(key): value for key, value in entries.items()}
        self.default = default

    @staticmethod
    def normalize(raw: str) -> str:
        return raw.strip().upper()

    def parse(self, raw: Optional[str]) -> S:
        if not raw:
            return self.default
        return self._entries.get(self.normalize(raw), self.default)

    def __contains__(self, raw: str) -> bool:
        return self.normalize(raw) in self._entries


ORDER_STATUSES = StatusTable(
    {
        "ACTIVE": OrderStatus.ACTIVE,
        "COMPLETED": OrderStatus.COMPLETED,
        # eBay reports the order-level state through the fulfillment status
        "FULFILLED": OrderStatus.COMPLETED,
        "CANCELLED": OrderStatus.CANCELLED,
        "CANCELED": OrderStatus.CANCELLED,
        "INACTIVE": OrderStatus.INACTIVE,
    },
    default=OrderStatus.ACTIVE,
)

PAYMENT_STATUSES = StatusTable(
    {
        "PENDING": PaymentStatus.PENDING,
        "FAILED": PaymentStatus.FAILED,
        "PAID": PaymentStatus.PAID,
        "PARTIALLY_REFUNDED": PaymentStatus.PARTIALLY_REFUNDED,
        "FULLY_REFUNDED": PaymentStatus.FULLY_REFUNDED,
    },
    default=PaymentStatus.PENDING,
)

FULFILLMENT_STATUSES = StatusTable(
    {
        "NOT_STARTED": FulfillmentStatus.NOT_STARTED,
        "IN_PROGRESS": FulfillmentStatus.IN_PROGRESS,
        "FULFILLED": FulfillmentStatus.FULFILLED,
    },
    default=FulfillmentStatus.NOT_STARTED,
)

INVOICE_STATUSES = StatusTable(
    {
        "DRAFT": InvoiceStatus.DRAFT,
        "SENT": InvoiceStatus.SENT,
        "VIEWED": InvoiceStatus.VIEWED,
        "PARTIAL": InvoiceStatus.PARTIAL,
        "PARTIALLY_PAID": InvoiceStatus.PARTIAL,
        "PAID": InvoiceStatus.PAID,
        "OVERDUE": InvoiceStatus.OVERDUE,
        "VOIDED": InvoiceStatus.VOIDED,
        "VOID": InvoiceStatus.VOIDED,
    },
    default=InvoiceStatus.DRAFT,
)
