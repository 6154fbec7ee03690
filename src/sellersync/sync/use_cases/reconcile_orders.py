"""Order reconciliation - create, update or skip one fetched eBay order.

Matching order:
1. Live local order with the same provider order id (then legacy id)
   -> update in place
2. Tombstoned (soft-deleted) order with that id -> skip, never resurrect
3. Otherwise create it and try to link it to an inventory item:
   eBay SKU first, then the internal SKU
"""

import logging
from datetime import datetime

from ...api.exceptions import RecordReconciliationError
from ..domain.entities import (
    ExternalOrder,
    MarketplaceOrder,
    ReconcileAction,
    ReconcileOutcome,
    utc_now,
)
from ..domain.money import Money
from ..domain.ports import IInventoryLookup, IOrderRepository, IRecordReconciler
from ..domain.status_mapping import (
    FULFILLMENT_STATUSES,
    ORDER_STATUSES,
    PAYMENT_STATUSES,
)

logger = logging.getLogger(__name__)


def ensure_single_currency(external_id: str, *amounts: Money | None) -> None:
    """Raise RecordReconciliationError if the record mixes currencies."""
    currencies = {amount.currency for amount in amounts if amount is not None}
    if len(currencies) > 1:
        raise RecordReconciliationError(
            f"Record mixes currencies: {', '.join(sorted(currencies))}",
            external_id=external_id,
        )


class OrderReconciler(IRecordReconciler):
    """Reconciles fetched eBay orders into MarketplaceOrder rows."""

    def __init__(self, order_repo: IOrderRepository, inventory: IInventoryLookup):
        self.orders = order_repo
        self.inventory = inventory

    async def reconcile(self, record: ExternalOrder, user_id: str) -> ReconcileOutcome:
        self._validate(record)
        now = utc_now()

        existing = await self.orders.get_by_external_id(record.external_id, user_id)
        if existing is None and record.legacy_order_id:
            existing = await self.orders.get_by_legacy_id(record.legacy_order_id, user_id)

        if existing is not None:
            linked = await self._update(existing, record, now)
            return ReconcileOutcome(ReconcileAction.UPDATED, linked=linked)

        if await self.orders.was_tombstoned(record.external_id, user_id):
            logger.debug(f"Skipping deleted order {record.external_id} for user {user_id}")
            return ReconcileOutcome(ReconcileAction.SKIPPED)

        order = self._create(record, user_id, now)
        linked = await self._link_inventory(order, now)
        await self.orders.add(order)
        return ReconcileOutcome(ReconcileAction.CREATED, linked=linked)

    def _validate(self, record: ExternalOrder) -> None:
        if not record.external_id or not record.external_id.strip():
            raise RecordReconciliationError("Order has no order id")
        if record.order_date is None:
            raise RecordReconciliationError(
                "Order has no creation date",
                external_id=record.external_id,
            )
        ensure_single_currency(
            record.external_id,
            record.total,
            record.delivery_cost,
            record.final_value_fee,
            record.payment_processing_fee,
            record.additional_fees,
        )
        for item in record.line_items:
            if item.quantity < 0:
                raise RecordReconciliationError(
                    f"Line item {item.line_item_id} has negative quantity {item.quantity}",
                    external_id=record.external_id,
                )

    def _create(self, record: ExternalOrder, user_id: str, now: datetime) -> MarketplaceOrder:
        # Only the first line item is kept
        first = record.line_items[0] if record.line_items else None
        currency = record.total.currency

        return MarketplaceOrder(
            user_id=user_id,
            external_id=record.external_id,
            legacy_order_id=record.legacy_order_id,
            order_date=record.order_date,
            buyer_username=record.buyer_username or "Unknown",
            item_title=(first.title if first and first.title else "Unknown Item"),
            item_id=first.item_id if first else None,
            sku=first.sku if first else None,
            quantity=first.quantity if first else 1,
            gross_sale=record.total,
            shipping_paid=record.delivery_cost or Money.zero(currency),
            final_value_fee=record.final_value_fee or Money.zero(currency),
            payment_processing_fee=record.payment_processing_fee or Money.zero(currency),
            additional_fees=record.additional_fees or Money.zero(currency),
            status=ORDER_STATUSES.parse(record.order_status),
            payment_status=PAYMENT_STATUSES.parse(record.payment_status),
            fulfillment_status=FULFILLMENT_STATUSES.parse(record.fulfillment_status),
            last_synced_at=now,
            created_at=now,
            updated_at=now,
        )

    async def _update(self, order: MarketplaceOrder, record: ExternalOrder, now: datetime) -> bool:
        if order.currency != record.total.currency:
            raise RecordReconciliationError(
                f"Order currency changed from {order.currency} to {record.total.currency}",
                external_id=record.external_id,
            )

        order.status = ORDER_STATUSES.parse(record.order_status)
        order.payment_status = PAYMENT_STATUSES.parse(record.payment_status)
        order.fulfillment_status = FULFILLMENT_STATUSES.parse(record.fulfillment_status)
        order.gross_sale = record.total
        if record.delivery_cost is not None:
            order.shipping_paid = record.delivery_cost
        if record.final_value_fee is not None:
            order.final_value_fee = record.final_value_fee
        if record.payment_processing_fee is not None:
            order.payment_processing_fee = record.payment_processing_fee
        if record.additional_fees is not None:
            order.additional_fees = record.additional_fees
        order.last_synced_at = now
        order.updated_at = now

        linked = False
        if not order.is_linked:
            linked = await self._link_inventory(order, now)

        await self.orders.update(order)
        return linked

    async def _link_inventory(self, order: MarketplaceOrder, now: datetime) -> bool:
        """Link by eBay SKU, falling back to the internal SKU.

        Returns:
            True if a link was set
        """
        if not order.sku:
            return False

        item = await self.inventory.find_by_provider_sku(order.sku)
        if item is None:
            item = await self.inventory.find_by_internal_sku(order.sku)
        if item is None:
            return False

        order.link_to_inventory(item.id, now)
        if not item.is_sold:
            item.mark_as_sold(now)
            await self.inventory.update(item)

        logger.debug(f"Linked order {order.external_id} to inventory item {item.id}")
        return True
