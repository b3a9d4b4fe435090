"""Order status updates: command, handler and services.

A PENDING order that does not hold stock yet takes it when it moves to
PROCESSING. Moving to CANCELLED behaves exactly like cancelling.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from backoffice.domain import backoffice
from backoffice.exceptions import BackofficeError, NotFoundError, ValidationError
from backoffice.notification.ordering_events import announce_order_cancelled
from backoffice.order.cancellation import cancel_and_restore
from backoffice.order.order import Order, OrderStatus
from backoffice.stock.ledger import decrement_many
from backoffice.transaction import load, run_in_transaction
from backoffice.workspace.permissions import Action, check_permission

logger = structlog.get_logger(__name__)


@backoffice.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    changed_by = Identifier()
    note = String(max_length=500)


@backoffice.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        new_status = OrderStatus(command.status)

        if new_status is OrderStatus.CANCELLED:
            cancel_and_restore(order, cancelled_by=command.changed_by, note=command.note)
        else:
            takes_stock = new_status is OrderStatus.PROCESSING and not order.stock_committed
            order.transition_to(new_status, changed_by=command.changed_by, note=command.note)
            if takes_stock:
                decrement_many(order.stock_lines())
                order.mark_stock_committed()

        repo.add(order)
        return order.status


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value.upper() if isinstance(value, str) else value)
    except ValueError:
        raise ValidationError(f"Unknown order status {value}") from None


def update_status(order_id, new_status, acting_user_id, note=None) -> dict:
    new_status = parse_status(new_status)
    order = load(Order, order_id)
    action = Action.CANCEL_ORDER if new_status is OrderStatus.CANCELLED else Action.UPDATE_ORDER_STATUS
    check_permission(order.workspace_id, acting_user_id, action)
    order.ensure_can_transition(new_status)

    run_in_transaction(
        UpdateOrderStatus(order_id=order_id, status=new_status.value, changed_by=acting_user_id, note=note)
    )

    order = load(Order, order_id)
    logger.info("order_status_updated", order_id=str(order_id), status=order.status, changed_by=acting_user_id)
    if new_status is OrderStatus.CANCELLED:
        announce_order_cancelled(order)
    return {"order_id": str(order.id), "status": order.status, "message": f"Order status updated to {order.status}"}


def bulk_update_status(order_ids, new_status, acting_user_id, note=None, workspace_id=None) -> list[dict]:
    """Apply :func:`update_status` to each order independently.

    One order failing does not stop the others; its outcome carries the error.
    With ``workspace_id`` set, orders of other workspaces are reported as not found.
    """
    new_status = parse_status(new_status)
    outcomes = []
    for order_id in order_ids:
        try:
            if workspace_id is not None and str(load(Order, order_id).workspace_id) != str(workspace_id):
                raise NotFoundError(f"Order {order_id} not found in workspace {workspace_id}")
            result = update_status(order_id, new_status, acting_user_id, note=note)
            outcomes.append({"order_id": str(order_id), "updated": True, "status": result["status"]})
        except BackofficeError as exc:
            outcomes.append({"order_id": str(order_id), "updated": False, "error": exc.message})
    return outcomes
