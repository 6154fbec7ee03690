"""Manual order adjustments made by the seller after a sync.

- LinkOrderToInventoryUseCase: link an order to an inventory item by hand
- UpdateShippingCostUseCase: record what shipping actually cost
"""

import logging
from decimal import Decimal
from uuid import UUID

from ...api.exceptions import NotFoundError
from ..domain.entities import MarketplaceOrder
from ..domain.money import Money
from ..domain.ports import IInventoryLookup, IOrderRepository, IUnitOfWork

logger = logging.getLogger(__name__)


async def _load_owned_order(
    order_repo: IOrderRepository,
    order_id: UUID,
    user_id: str,
) -> MarketplaceOrder:
    order = await order_repo.get_by_id(order_id)
    if order is None:
        raise NotFoundError("Order", str(order_id))
    if order.user_id != user_id:
        raise PermissionError("You do not have permission to modify this order.")
    return order


class LinkOrderToInventoryUseCase:
    """Links an order to an inventory item and marks the item sold."""

    def __init__(
        self,
        order_repo: IOrderRepository,
        inventory: IInventoryLookup,
        unit_of_work: IUnitOfWork,
    ):
        self.orders = order_repo
        self.inventory = inventory
        self.unit_of_work = unit_of_work

    async def execute(self, user_id: str, order_id: UUID, inventory_item_id: UUID) -> MarketplaceOrder:
        """Set (or replace) the order's inventory link.

        Raises:
            NotFoundError: Unknown order or inventory item
            PermissionError: Order belongs to another user
        """
        order = await _load_owned_order(self.orders, order_id, user_id)

        item = await self.inventory.get_by_id(inventory_item_id)
        if item is None:
            raise NotFoundError("Inventory item", str(inventory_item_id))

        order.link_to_inventory(item.id)
        await self.orders.update(order)

        if not item.is_sold:
            item.mark_as_sold()
            await self.inventory.update(item)

        await self.unit_of_work.commit()
        logger.info(f"Linked order {order.external_id} to inventory item {item.id}")
        return order


class UpdateShippingCostUseCase:
    """Stores the actual shipping cost used by the profit calculation."""

    def __init__(self, order_repo: IOrderRepository, unit_of_work: IUnitOfWork):
        self.orders = order_repo
        self.unit_of_work = unit_of_work

    async def execute(
        self,
        user_id: str,
        order_id: UUID,
        amount: Decimal,
        currency: str = "USD",
    ) -> MarketplaceOrder:
        order = await _load_owned_order(self.orders, order_id, user_id)
        shipping = Money(amount, currency)
        if shipping.currency != order.currency:
            raise ValueError(
                f"Shipping cost currency {shipping.currency} does not match order currency {order.currency}"
            )

        order.update_shipping_cost(shipping)
        await self.orders.update(order)
        await self.unit_of_work.commit()
        return order
