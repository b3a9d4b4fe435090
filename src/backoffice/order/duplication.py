"""Clone and reorder: new orders built from an existing one.

Both run the full builder again, so stock is re-checked and items are
re-priced at current variant prices.
"""

from backoffice.exceptions import PermissionDeniedError
from backoffice.order.builder import OrderRequest, RequestedItem, create_order
from backoffice.order.order import INITIAL_STATUSES, Order, OrderStatus
from backoffice.transaction import load
from backoffice.workspace.permissions import Action, check_permission
from backoffice.workspace.workspace import MemberRole


def _request_from(order, user_id, status) -> OrderRequest:
    return OrderRequest(
        user_id=str(user_id),
        items=[RequestedItem(str(item.variant_id), item.quantity) for item in order.items],
        payment_method=order.payment_method,
        status=status,
        shipping_address_id=order.shipping_address_id,
        billing_address_id=order.billing_address_id,
        notes=order.notes,
    )


def _clone_status(order) -> OrderStatus:
    status = OrderStatus(order.status)
    if status in INITIAL_STATUSES:
        return status
    # Cancelling releases stock, so only a delivered order still holds it
    return OrderStatus.PROCESSING if order.stock_committed else OrderStatus.PENDING


def clone_order(order_id, acting_user_id):
    """Copy an order for its original customer, keeping payment method, addresses and status.

    A paid original yields a PROCESSING copy, so the copy commits its stock
    straight away.
    """
    original = load(Order, order_id)
    check_permission(original.workspace_id, acting_user_id, Action.VIEW_ORDERS)
    return create_order(
        _request_from(original, original.user_id, _clone_status(original)),
        acting_user_id,
        history_note=f"Cloned from order {original.id}",
    )


def reorder(order_id, acting_user_id):
    """Place the same items again for the acting user, as a PENDING order."""
    original = load(Order, order_id)
    role = check_permission(original.workspace_id, acting_user_id, Action.VIEW_ORDERS)
    if role is MemberRole.CUSTOMER and str(original.user_id) != str(acting_user_id):
        raise PermissionDeniedError("Customers can only reorder their own orders")
    return create_order(
        _request_from(original, acting_user_id, OrderStatus.PENDING),
        acting_user_id,
        history_note=f"Reordered from order {original.id}",
    )
