"""Order item modification — commands and handler (PENDING orders only)."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from shared.domain import persist

from ordering.domain import ordering
from ordering.order.order import Order, OrderItem

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class AddOrderItem:
    order_id = Identifier(required=True)
    item = Text(required=True)  # JSON: item dict


@ordering.command(part_of="Order")
class RemoveOrderItem:
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class OrderItemsHandler:
    @handle(AddOrderItem)
    def add_item(self, command):
        item_data = json.loads(command.item) if isinstance(command.item, str) else command.item
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        persist(repo, order.add_item(OrderItem.from_data(item_data)))
        logger.info("Item added to order", order_id=str(order.id), product_id=item_data.get("product_id"))
        return str(order.id)

    @handle(RemoveOrderItem)
    def remove_item(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        persist(repo, order.remove_item(command.product_id))
        logger.info("Item removed from order", order_id=str(order.id), product_id=command.product_id)
        return str(order.id)
