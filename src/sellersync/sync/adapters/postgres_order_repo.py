"""PostgreSQL repository adapters for marketplace orders and inventory items.

Orders are soft-deleted by the application (deleted_at set). Live lookups
ignore soft-deleted rows; was_tombstoned() finds them so a sync never
re-creates an order the seller deleted.
"""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID

from ...api.database import database_connection
from ..domain.entities import (
    FulfillmentStatus,
    InventoryItem,
    InventoryStatus,
    MarketplaceOrder,
    OrderStatus,
    PaymentStatus,
)
from ..domain.money import Money
from ..domain.ports import IInventoryLookup, IOrderRepository, IUnitOfWork

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)


def money_from_row(amount: Optional[Decimal], currency: str) -> Money | None:
    if amount is None:
        return None
    return Money(amount, currency)


def amount_of(money: Money | None) -> Decimal | None:
    return money.amount if money is not None else None


_ORDER_COLUMNS = """
    id, user_id, external_id, legacy_order_id, order_date, buyer_username,
    item_title, item_id, sku, quantity, currency,
    gross_sale, shipping_paid, shipping_actual,
    final_value_fee, payment_processing_fee, additional_fees,
    status, payment_status, fulfillment_status,
    inventory_item_id, notes, last_synced_at, created_at, updated_at
"""


class PostgresOrderRepository(IOrderRepository):
    """PostgreSQL implementation of IOrderRepository.

    All money columns of an order share the row's currency column.
    """

    def __init__(self, pool: "asyncpg.Pool", unit_of_work: IUnitOfWork):
        self.pool = pool
        self.unit_of_work = unit_of_work

    async def _fetch_one(self, where: str, *args) -> Optional[MarketplaceOrder]:
        async with database_connection(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {_ORDER_COLUMNS} FROM marketplace_orders WHERE {where}",
                *args,
            )
        return self._row_to_entity(row) if row else None

    async def get_by_id(self, order_id: UUID) -> Optional[MarketplaceOrder]:
        return await self._fetch_one("id = $1 AND deleted_at IS NULL", order_id)

    async def get_by_external_id(self, external_id: str, user_id: str) -> Optional[MarketplaceOrder]:
        return await self._fetch_one(
            "external_id = $1 AND user_id = $2 AND deleted_at IS NULL",
            external_id,
            user_id,
        )

    async def get_by_legacy_id(self, legacy_id: str, user_id: str) -> Optional[MarketplaceOrder]:
        return await self._fetch_one(
            "legacy_order_id = $1 AND user_id = $2 AND deleted_at IS NULL",
            legacy_id,
            user_id,
        )

    async def was_tombstoned(self, external_id: str, user_id: str) -> bool:
        async with database_connection(self.pool) as conn:
            return await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM marketplace_orders
                    WHERE external_id = $1 AND user_id = $2 AND deleted_at IS NOT NULL
                )
                """,
                external_id,
                user_id,
            )

    async def add(self, order: MarketplaceOrder) -> None:
        async def write(conn):
            await conn.execute(
                f"""
                INSERT INTO marketplace_orders ({_ORDER_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13,
                        $14, $15, $16, $17, $18, $19, $20, $21, $22, $23, $24, $25)
                """,
                *self._entity_to_record(order),
            )

        self.unit_of_work.register(("order", order.id, "insert"), write)

    async def update(self, order: MarketplaceOrder) -> None:
        async def write(conn):
            await conn.execute(
                """
                UPDATE marketplace_orders SET
                    gross_sale = $2,
                    shipping_paid = $3,
                    shipping_actual = $4,
                    final_value_fee = $5,
                    payment_processing_fee = $6,
                    additional_fees = $7,
                    status = $8,
                    payment_status = $9,
                    fulfillment_status = $10,
                    inventory_item_id = $11,
                    notes = $12,
                    last_synced_at = $13,
                    updated_at = $14
                WHERE id = $1
                """,
                order.id,
                order.gross_sale.amount,
                amount_of(order.shipping_paid),
                amount_of(order.shipping_actual),
                amount_of(order.final_value_fee),
                amount_of(order.payment_processing_fee),
                amount_of(order.additional_fees),
                order.status.value,
                order.payment_status.value,
                order.fulfillment_status.value,
                order.inventory_item_id,
                order.notes,
                order.last_synced_at,
                order.updated_at,
            )

        if self.unit_of_work.is_pending(("order", order.id, "insert")):
            return
        self.unit_of_work.register(("order", order.id), write)

    @staticmethod
    def _entity_to_record(order: MarketplaceOrder) -> tuple[Any, ...]:
        """Tuple ordering matches _ORDER_COLUMNS."""
        return (
            order.id,
            order.user_id,
            order.external_id,
            order.legacy_order_id,
            order.order_date,
            order.buyer_username,
            order.item_title,
            order.item_id,
            order.sku,
            order.quantity,
            order.currency,
            order.gross_sale.amount,
            amount_of(order.shipping_paid),
            amount_of(order.shipping_actual),
            amount_of(order.final_value_fee),
            amount_of(order.payment_processing_fee),
            amount_of(order.additional_fees),
            order.status.value,
            order.payment_status.value,
            order.fulfillment_status.value,
            order.inventory_item_id,
            order.notes,
            order.last_synced_at,
            order.created_at,
            order.updated_at,
        )

    @staticmethod
    def _row_to_entity(row) -> MarketplaceOrder:
        currency = row["currency"]
        return MarketplaceOrder(
            id=row["id"],
            user_id=row["user_id"],
            external_id=row["external_id"],
            legacy_order_id=row["legacy_order_id"],
            order_date=row["order_date"],
            buyer_username=row["buyer_username"],
            item_title=row["item_title"],
            item_id=row["item_id"],
            sku=row["sku"],
            quantity=row["quantity"],
            gross_sale=Money(row["gross_sale"], currency),
            shipping_paid=money_from_row(row["shipping_paid"], currency),
            shipping_actual=money_from_row(row["shipping_actual"], currency),
            final_value_fee=money_from_row(row["final_value_fee"], currency),
            payment_processing_fee=money_from_row(row["payment_processing_fee"], currency),
            additional_fees=money_from_row(row["additional_fees"], currency),
            status=OrderStatus(row["status"]),
            payment_status=PaymentStatus(row["payment_status"]),
            fulfillment_status=FulfillmentStatus(row["fulfillment_status"]),
            inventory_item_id=row["inventory_item_id"],
            notes=row["notes"],
            last_synced_at=row["last_synced_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class PostgresInventoryRepository(IInventoryLookup):
    """PostgreSQL implementation of IInventoryLookup.

    SKU lookups only see live (not soft-deleted) items. When several items
    share a SKU the most recently updated one wins.
    """

    _COLUMNS = "id, title, internal_sku, ebay_sku, cogs, cogs_currency, status, sold_at, updated_at"

    def __init__(self, pool: "asyncpg.Pool", unit_of_work: IUnitOfWork):
        self.pool = pool
        self.unit_of_work = unit_of_work

    async def _find(self, where: str, value: Any) -> Optional[InventoryItem]:
        async with database_connection(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {self._COLUMNS} FROM inventory_items "
                f"WHERE {where} AND deleted_at IS NULL "
                "ORDER BY updated_at DESC NULLS LAST LIMIT 1",
                value,
            )
        return self._row_to_entity(row) if row else None

    async def find_by_provider_sku(self, sku: str) -> Optional[InventoryItem]:
        return await self._find("ebay_sku = $1", sku)

    async def find_by_internal_sku(self, sku: str) -> Optional[InventoryItem]:
        return await self._find("internal_sku = $1", sku)

    async def get_by_id(self, item_id: UUID) -> Optional[InventoryItem]:
        return await self._find("id = $1", item_id)

    async def update(self, item: InventoryItem) -> None:
        async def write(conn):
            await conn.execute(
                "UPDATE inventory_items SET status = $2, sold_at = $3, updated_at = $4 WHERE id = $1",
                item.id,
                item.status.value,
                item.sold_at,
                item.updated_at,
            )

        self.unit_of_work.register(("inventory_item", item.id), write)

    @staticmethod
    def _row_to_entity(row) -> InventoryItem:
        return InventoryItem(
            id=row["id"],
            title=row["title"],
            internal_sku=row["internal_sku"],
            ebay_sku=row["ebay_sku"],
            cogs=Money(row["cogs"], row["cogs_currency"]),
            status=InventoryStatus(row["status"]),
            sold_at=row["sold_at"],
            updated_at=row["updated_at"],
        )
