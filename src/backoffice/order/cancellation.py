"""Order cancellation: command, handler and service."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from backoffice.domain import backoffice
from backoffice.notification.ordering_events import announce_order_cancelled
from backoffice.order.order import Order, OrderStatus
from backoffice.stock.ledger import increment_many
from backoffice.transaction import load, run_in_transaction
from backoffice.workspace.permissions import Action, check_permission

logger = structlog.get_logger(__name__)


@backoffice.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    cancelled_by = Identifier()
    note = String(max_length=500)


def cancel_and_restore(order, cancelled_by=None, note=None):
    """Cancel ``order`` and put back any stock it holds, in the caller's unit of work."""
    to_restore = order.cancel(cancelled_by=cancelled_by, note=note)
    if to_restore:
        increment_many(to_restore)
    return to_restore


@backoffice.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        cancel_and_restore(order, cancelled_by=command.cancelled_by, note=command.note)
        repo.add(order)
        return order.status


def cancel_order(order_id, acting_user_id, note=None) -> dict:
    """Cancel an order, restoring its stock, then tell the customer and the managers."""
    order = load(Order, order_id)
    check_permission(order.workspace_id, acting_user_id, Action.CANCEL_ORDER)
    order.ensure_can_transition(OrderStatus.CANCELLED)

    run_in_transaction(CancelOrder(order_id=order_id, cancelled_by=acting_user_id, note=note))

    order = load(Order, order_id)
    logger.info("order_cancelled", order_id=str(order_id), cancelled_by=acting_user_id)
    announce_order_cancelled(order)
    return {"message": "Order cancelled successfully", "status": order.status}
