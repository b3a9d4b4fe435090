"""Administrative order edits: details, delivery partner, customer notices, deletion."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from backoffice.customer.address import Address
from backoffice.customer.user import User
from backoffice.domain import backoffice
from backoffice.exceptions import InvalidAddressError, NotFoundError, ValidationError
from backoffice.notification.fanout import describe
from backoffice.notification.ordering_events import announce_order_notice
from backoffice.order.order import Order, OrderStatus
from backoffice.stock.ledger import increment_many
from backoffice.transaction import load, run_in_transaction
from backoffice.workspace.permissions import Action, check_permission

logger = structlog.get_logger(__name__)


@backoffice.command(part_of="Order")
class UpdateOrderDetails:
    order_id = Identifier(required=True)
    notes = String(max_length=2000)
    shipping_address_id = Identifier()
    billing_address_id = Identifier()
    payment_method = String(max_length=20)


@backoffice.command(part_of="Order")
class AssignDeliveryPartner:
    order_id = Identifier(required=True)
    delivery_partner_id = Identifier(required=True)
    assigned_by = Identifier()


@backoffice.command(part_of="Order")
class DeleteOrder:
    order_id = Identifier(required=True)


@backoffice.command_handler(part_of=Order)
class AdministerOrderHandler:
    @handle(UpdateOrderDetails)
    def update_details(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        applied = order.update_details(
            notes=command.notes,
            shipping_address_id=command.shipping_address_id,
            billing_address_id=command.billing_address_id,
            payment_method=command.payment_method,
        )
        repo.add(order)
        return applied

    @handle(AssignDeliveryPartner)
    def assign_delivery_partner(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.assign_delivery_partner(command.delivery_partner_id, assigned_by=command.assigned_by)
        repo.add(order)

    @handle(DeleteOrder)
    def delete_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        # A live order gives its stock back; a delivered one keeps it sold
        if order.stock_committed and order.current_status is not OrderStatus.DELIVERED:
            increment_many(order.stock_lines())
        repo._dao.delete(order)


def update_order(
    order_id,
    acting_user_id,
    notes=None,
    shipping_address_id=None,
    billing_address_id=None,
    payment_method=None,
) -> dict:
    """Edit an order's notes, addresses or payment method.

    Notes can be edited at any time; the other fields only while the order is open.
    """
    order = load(Order, order_id)
    check_permission(order.workspace_id, acting_user_id, Action.UPDATE_ORDER)
    if any(value is not None for value in (shipping_address_id, billing_address_id, payment_method)):
        order.ensure_open()

    addresses = current_domain.repository_for(Address)
    for label, address_id in (("Shipping", shipping_address_id), ("Billing", billing_address_id)):
        if address_id and not addresses._dao.query.filter(id=address_id).all().items:
            raise InvalidAddressError(f"{label} address {address_id} does not exist")

    applied = run_in_transaction(
        UpdateOrderDetails(
            order_id=order_id,
            notes=notes,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            payment_method=payment_method,
        )
    )
    logger.info("order_updated", order_id=str(order_id), fields=sorted(applied or {}))
    return {"order_id": str(order_id), "updated": sorted(applied or {}), "message": "Order updated successfully"}


def assign_delivery_partner(order_id, partner_user_id, acting_user_id) -> dict:
    order = load(Order, order_id)
    check_permission(order.workspace_id, acting_user_id, Action.ASSIGN_DELIVERY)
    if not partner_user_id:
        raise ValidationError("A delivery partner is required")
    if not current_domain.repository_for(User).exists(partner_user_id):
        raise NotFoundError(f"Delivery partner {partner_user_id} not found")
    order.ensure_open()

    run_in_transaction(
        AssignDeliveryPartner(order_id=order_id, delivery_partner_id=partner_user_id, assigned_by=acting_user_id)
    )
    logger.info("delivery_partner_assigned", order_id=str(order_id), delivery_partner_id=partner_user_id)
    return {
        "order_id": str(order_id),
        "delivery_partner_id": partner_user_id,
        "message": f"Assigned to delivery partner: {partner_user_id}",
    }


def notify_order_status(order_id, message, acting_user_id) -> dict:
    """Send a free-text update about the order to its customer."""
    if not message or not message.strip():
        raise ValidationError("A message is required")
    order = load(Order, order_id)
    check_permission(order.workspace_id, acting_user_id, Action.NOTIFY_ORDER)

    result = announce_order_notice(order, message.strip())
    return {"order_id": str(order_id), "message": "Notification sent", **describe(result)}


def delete_order(order_id, acting_user_id) -> dict:
    order = load(Order, order_id)
    check_permission(order.workspace_id, acting_user_id, Action.DELETE_ORDER)

    run_in_transaction(DeleteOrder(order_id=order_id))
    logger.info("order_deleted", order_id=str(order_id), deleted_by=acting_user_id)
    return {"order_id": str(order_id), "message": "Order deleted successfully"}
