"""Order placement: the single transaction that materialises an order.

Inline addresses, the order with its items and first history entry, and the
stock decrement are all written by one handler invocation, so they commit or
roll back together.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from backoffice.catalogue.variant import ProductVariant
from backoffice.customer.address import Address
from backoffice.domain import backoffice
from backoffice.exceptions import VariantNotFoundError
from backoffice.order.order import Order
from backoffice.pricing.engine import price_items
from backoffice.stock.ledger import StockLine, decrement_many

logger = structlog.get_logger(__name__)


@backoffice.command(part_of="Order")
class PlaceOrder:
    """Commit a validated order request."""

    workspace_id = Identifier(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {variant_id, quantity}
    status = String(required=True, max_length=20)
    payment_method = String(required=True, max_length=20)
    commit_stock = Boolean(default=False)
    shipping_address_id = Identifier()
    billing_address_id = Identifier()
    shipping_address = Text()  # JSON: inline address, created in this transaction
    billing_address = Text()  # JSON: inline address, created in this transaction
    notes = String(max_length=2000)
    idempotency_key = String(max_length=255)
    payment_session_id = String(max_length=255)
    changed_by = Identifier()
    history_note = String(max_length=500)


def place_order_command(*, items, shipping_address=None, billing_address=None, **fields) -> PlaceOrder:
    same_inline = shipping_address is not None and billing_address is shipping_address
    return PlaceOrder(
        items=json.dumps([{"variant_id": str(item.variant_id), "quantity": item.quantity} for item in items]),
        shipping_address=json.dumps(shipping_address.to_dict()) if shipping_address else None,
        # The same inline address for both roles is stored once
        billing_address=None if same_inline or billing_address is None else json.dumps(billing_address.to_dict()),
        **fields,
    )


@backoffice.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        orders = current_domain.repository_for(Order)
        if command.idempotency_key:
            existing = orders.find_by_idempotency_key(command.idempotency_key)
            if existing is not None:
                return str(existing.id)

        lines = [StockLine(str(item["variant_id"]), int(item["quantity"])) for item in json.loads(command.items)]

        variants = current_domain.repository_for(ProductVariant).find_many(line.variant_id for line in lines)
        missing = [line.variant_id for line in lines if line.variant_id not in variants]
        if missing:
            raise VariantNotFoundError(missing)
        priced = price_items(lines, variants)

        shipping_address_id = command.shipping_address_id
        billing_address_id = command.billing_address_id
        addresses = current_domain.repository_for(Address)
        if command.shipping_address:
            shipping = Address(user_id=command.user_id, **json.loads(command.shipping_address))
            addresses.add(shipping)
            shipping_address_id = str(shipping.id)
            if not billing_address_id and not command.billing_address:
                billing_address_id = shipping_address_id
        if command.billing_address:
            billing = Address(user_id=command.user_id, **json.loads(command.billing_address))
            addresses.add(billing)
            billing_address_id = str(billing.id)

        if command.commit_stock:
            decrement_many(lines)

        order = Order.place(
            workspace_id=command.workspace_id,
            user_id=command.user_id,
            priced=priced,
            status=command.status,
            payment_method=command.payment_method,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            notes=command.notes,
            stock_committed=bool(command.commit_stock),
            idempotency_key=command.idempotency_key,
            payment_session_id=command.payment_session_id,
            changed_by=command.changed_by,
            note=command.history_note,
        )
        orders.add(order)

        logger.debug("order_committed", order_id=str(order.id), lines=len(lines))
        return str(order.id)
