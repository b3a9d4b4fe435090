"""Line changes on an open order: commands, handlers and services.

The order total moves by exactly the line amount. When the order holds its
stock, the variant's stock moves the opposite way in the same transaction.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from backoffice.catalogue.variant import ProductVariant
from backoffice.domain import backoffice
from backoffice.exceptions import (
    CrossWorkspaceOrderError,
    InsufficientStockError,
    StockShortfall,
    ValidationError,
    VariantNotFoundError,
)
from backoffice.order.order import Order
from backoffice.pricing.engine import price_line
from backoffice.stock.ledger import adjust_stock
from backoffice.transaction import load, run_in_transaction
from backoffice.workspace.permissions import Action, check_permission

logger = structlog.get_logger(__name__)


@backoffice.command(part_of="Order")
class AddOrderItem:
    order_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    changed_by = Identifier()


@backoffice.command(part_of="Order")
class RemoveOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    changed_by = Identifier()


@backoffice.command_handler(part_of=Order)
class ModifyOrderHandler:
    @handle(AddOrderItem)
    def add_item(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        variant = current_domain.repository_for(ProductVariant).find_many([command.variant_id]).get(
            str(command.variant_id)
        )
        if variant is None:
            raise VariantNotFoundError([str(command.variant_id)])
        if str(variant.workspace_id) != str(order.workspace_id):
            raise CrossWorkspaceOrderError("Variant belongs to a different workspace than the order")

        if variant.sellable_stock < command.quantity:
            raise InsufficientStockError(
                [StockShortfall(str(variant.id), variant.sku, command.quantity, variant.sellable_stock)]
            )
        if order.stock_committed:
            adjust_stock(variant.id, -command.quantity)

        item = order.add_line(price_line(variant, command.quantity))
        repo.add(order)
        return str(item.id)

    @handle(RemoveOrderItem)
    def remove_item(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        item = order.remove_line(command.item_id)
        if order.stock_committed:
            adjust_stock(item.variant_id, item.quantity)

        repo.add(order)
        return str(item.id)


def _open_order(order_id, acting_user_id):
    order = load(Order, order_id)
    check_permission(order.workspace_id, acting_user_id, Action.UPDATE_ORDER)
    order.ensure_open()
    return order


def add_order_item(order_id, variant_id, quantity, acting_user_id) -> dict:
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be positive")
    _open_order(order_id, acting_user_id)

    item_id = run_in_transaction(
        AddOrderItem(order_id=order_id, variant_id=variant_id, quantity=quantity, changed_by=acting_user_id)
    )

    order = load(Order, order_id)
    logger.info("order_item_added", order_id=str(order_id), item_id=item_id, total_amount=order.total_amount)
    return {
        "order_id": str(order.id),
        "item_id": item_id,
        "total_amount": order.total_amount,
        "message": "Item added to order",
    }


def remove_order_item(order_id, item_id, acting_user_id) -> dict:
    order = _open_order(order_id, acting_user_id)
    order.item(item_id)

    run_in_transaction(RemoveOrderItem(order_id=order_id, item_id=item_id, changed_by=acting_user_id))

    order = load(Order, order_id)
    logger.info("order_item_removed", order_id=str(order_id), item_id=str(item_id), total_amount=order.total_amount)
    return {
        "order_id": str(order.id),
        "item_id": str(item_id),
        "total_amount": order.total_amount,
        "message": "Item removed from order",
    }
