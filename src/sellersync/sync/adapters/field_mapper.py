"""Field mappers for transforming provider API payloads into fetched records.

Mapping is lenient: missing optional fields fall back to defaults and a
missing required value is left as None for the reconciler to reject.
A payload that cannot be mapped at all is returned as an UnmappedRecord
by map_each, so one malformed record never fails a whole fetch.
"""

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, TypeVar

from ..domain.entities import (
    AccountIdentity,
    ExternalInvoice,
    ExternalInvoiceItem,
    ExternalLineItem,
    ExternalOrder,
    ExternalPayment,
    TokenGrant,
    UnmappedRecord,
)
from ..domain.money import DEFAULT_CURRENCY, Money

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse_timestamp(iso_string: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp (may end with 'Z') or a bare date.

    Naive values are taken as UTC. Unparseable input returns None.
    """
    if not iso_string:
        return None
    try:
        parsed = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(iso_string[:10]), time.min)
        except ValueError:
            logger.debug(f"Unparseable timestamp {iso_string!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.debug(f"Unparseable amount {value!r}, using 0")
        return Decimal("0")


def _parse_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def map_each(
    map_one: Callable[[dict[str, Any]], T],
    raw_records: list[dict[str, Any]],
    id_key: str,
) -> list[T | UnmappedRecord]:
    """Map provider payloads one at a time.

    A payload whose mapping raises is kept as an UnmappedRecord carrying
    its provider id and the error, in its original position.
    """
    mapped: list[T | UnmappedRecord] = []
    for raw in raw_records:
        try:
            mapped.append(map_one(raw))
        except (AttributeError, TypeError, ValueError) as e:
            raw = raw if isinstance(raw, dict) else {}
            external_id = str(raw.get(id_key) or "unknown")
            logger.warning(f"Could not map {id_key} {external_id}: {e}")
            mapped.append(UnmappedRecord(external_id=external_id, error=str(e), raw_data=raw))
    return mapped


def token_grant_from_response(data: dict[str, Any]) -> TokenGrant:
    """OAuth token endpoint response -> TokenGrant."""
    return TokenGrant(
        access_token=data.get("access_token") or "",
        expires_in=_parse_int(data.get("expires_in"), 7200),
        refresh_token=data.get("refresh_token") or None,
        refresh_token_expires_in=(
            _parse_int(data.get("refresh_token_expires_in"), 0) or None
        ),
        scope=data.get("scope") or None,
    )


class EbayOrderMapper:
    """Maps eBay Fulfillment API order payloads to ExternalOrder.

    eBay money objects look like {"value": "12.50", "currency": "USD"}.
    Amounts without a currency take the order total's currency.
    """

    def map_to_entity(self, raw: dict[str, Any]) -> ExternalOrder:
        pricing = raw.get("pricingSummary") or {}
        buyer = raw.get("buyer") or {}

        total = self._money(pricing.get("total"), DEFAULT_CURRENCY)
        currency = total.currency

        return ExternalOrder(
            external_id=raw.get("orderId") or "",
            legacy_order_id=raw.get("legacyOrderId"),
            order_date=_parse_timestamp(raw.get("creationDate")),
            buyer_username=buyer.get("username") or "Unknown",
            line_items=[self._line_item(li) for li in raw.get("lineItems") or []],
            # eBay has no separate order status; the fulfillment status stands in
            order_status=raw.get("orderFulfillmentStatus"),
            payment_status=raw.get("orderPaymentStatus"),
            fulfillment_status=raw.get("orderFulfillmentStatus"),
            total=total,
            delivery_cost=self._optional_money(pricing.get("deliveryCost"), currency),
            final_value_fee=self._optional_money(pricing.get("fee"), currency),
            raw_data=raw,
        )

    def map_identity(self, raw: dict[str, Any]) -> AccountIdentity:
        """Identity API user -> AccountIdentity."""
        return AccountIdentity(
            account_id=raw.get("userId") or "",
            display_name=raw.get("username") or "",
        )

    def _line_item(self, raw: dict[str, Any]) -> ExternalLineItem:
        return ExternalLineItem(
            line_item_id=raw.get("lineItemId"),
            item_id=raw.get("legacyItemId"),
            title=raw.get("title"),
            sku=raw.get("sku") or None,
            quantity=_parse_int(raw.get("quantity"), 1),
        )

    @staticmethod
    def _money(raw: Optional[dict[str, Any]], default_currency: str) -> Money:
        raw = raw or {}
        return Money(_parse_amount(raw.get("value")), raw.get("currency") or default_currency)

    def _optional_money(self, raw: Optional[dict[str, Any]], default_currency: str) -> Money | None:
        if raw is None:
            return None
        return self._money(raw, default_currency)


class WaveInvoiceMapper:
    """Maps Wave GraphQL invoice nodes to ExternalInvoice.

    Wave money objects look like {"value": "12.50", "currency": {"code": "USD"}}.
    """

    def map_to_entity(self, raw: dict[str, Any]) -> ExternalInvoice:
        customer = raw.get("customer") or {}
        total = self._money(raw.get("total"), DEFAULT_CURRENCY)
        currency = total.currency

        return ExternalInvoice(
            external_id=raw.get("id") or "",
            invoice_number=raw.get("invoiceNumber") or "",
            status=raw.get("status") or "DRAFT",
            invoice_date=_parse_timestamp(raw.get("invoiceDate")),
            due_date=_parse_timestamp(raw.get("dueDate")),
            customer_id=customer.get("id"),
            customer_name=customer.get("name") or "Unknown",
            total=total,
            amount_due=self._money(raw.get("amountDue"), currency),
            amount_paid=self._money(raw.get("amountPaid"), currency),
            memo=raw.get("memo"),
            view_url=raw.get("viewUrl"),
            items=[self._item(item, currency) for item in raw.get("items") or []],
            payments=[
                payment
                for payment in (
                    self._payment(p, currency) for p in raw.get("payments") or []
                )
                if payment is not None
            ],
            raw_data=raw,
        )

    def map_business(self, raw: dict[str, Any]) -> AccountIdentity:
        return AccountIdentity(
            account_id=raw.get("id") or "",
            display_name=raw.get("name") or "",
        )

    def _item(self, raw: dict[str, Any], currency: str) -> ExternalInvoiceItem:
        return ExternalInvoiceItem(
            description=raw.get("description"),
            quantity=_parse_int(raw.get("quantity"), 1),
            unit_price=self._money(raw.get("unitPrice"), currency),
            total=self._money(raw.get("total"), currency),
        )

    def _payment(self, raw: dict[str, Any], currency: str) -> ExternalPayment | None:
        payment_date = _parse_timestamp(raw.get("paymentDate") or raw.get("date"))
        if payment_date is None:
            logger.warning(f"Skipping Wave payment {raw.get('id')} without a payment date")
            return None
        return ExternalPayment(
            external_id=raw.get("id") or "",
            payment_date=payment_date,
            amount=self._money(raw.get("amount"), currency),
            payment_method=raw.get("paymentMethod"),
            notes=raw.get("memo"),
        )

    @staticmethod
    def _money(raw: Optional[dict[str, Any]], default_currency: str) -> Money:
        raw = raw or {}
        code = (raw.get("currency") or {}).get("code")
        return Money(_parse_amount(raw.get("value")), code or default_currency)
