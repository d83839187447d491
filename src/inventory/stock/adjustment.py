"""Stock initialization and adjustment — commands and handler.

``InventoryItem.adjust`` is the single place where an increment /
decrement / set request becomes a new ``InventoryItem``; ``set`` is
translated into the increment or decrement that reaches the target. The
HTTP use case and the ``inventory.updated`` coordinator both issue
``AdjustStock``, which stages ``inventory.stock_changed`` in the same
unit of work as the new stock level.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.events.envelope import EventEnvelope
from shared.events.inventory import INVENTORY_STOCK_CHANGED, StockOperation
from shared.messaging.outbox import enqueue

from inventory.domain import OutboxMessage, inventory
from inventory.stock.events import stock_changed
from inventory.stock.stock import InventoryItem

logger = structlog.get_logger(__name__)


@inventory.command(part_of="InventoryItem")
class InitializeStock:
    product_id = Identifier(required=True)
    quantity = Integer(default=0, min_value=0)


@inventory.command(part_of="InventoryItem")
class AdjustStock:
    product_id = Identifier(required=True)
    operation = String(required=True, max_length=20)
    quantity = Integer(required=True)
    reason = String(max_length=500)
    correlation_id = String(max_length=255)


@inventory.command_handler(part_of=InventoryItem)
class StockHandler:
    @handle(InitializeStock)
    def initialize_stock(self, command):
        repo = current_domain.repository_for(InventoryItem)
        if repo.find_by_product_id(command.product_id) is not None:
            raise ValidationError({"product_id": [f"Inventory for {command.product_id} already exists"]})

        item = InventoryItem.create(product_id=command.product_id, quantity=command.quantity or 0)
        repo.add(item)
        logger.info("Inventory initialized", product_id=item.product_id, quantity=item.quantity)
        return item.product_id

    @handle(AdjustStock)
    def adjust_stock(self, command):
        try:
            operation = StockOperation(command.operation)
        except ValueError:
            raise ValidationError({"operation": [f"Unknown stock operation: {command.operation}"]}) from None

        repo = current_domain.repository_for(InventoryItem)
        item = repo.get_by_product_id(command.product_id)
        updated = item.adjust(operation, command.quantity)
        if updated is item:
            logger.info("Stock already at requested level", product_id=item.product_id, quantity=item.quantity)
            return item.product_id

        change = stock_changed(item, updated)
        persist(repo, updated)
        logger.info(
            "Stock adjusted",
            product_id=item.product_id,
            operation=operation.value,
            previous=change.previous_quantity,
            quantity=change.quantity,
            reason=command.reason,
        )
        enqueue(
            OutboxMessage,
            EventEnvelope.create(
                INVENTORY_STOCK_CHANGED,
                updated.product_id,
                change,
                correlation_id=command.correlation_id,
            ),
        )
        return updated.product_id
