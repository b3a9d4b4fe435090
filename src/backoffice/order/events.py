"""Domain events for the Order aggregate.

They are persisted with the order in the same unit of work and describe
what happened. Notification delivery is driven explicitly after commit, not
by subscribing to these events.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from backoffice.domain import backoffice


@backoffice.event(part_of="Order")
class OrderPlaced:
    """An order was committed together with its lines and first history entry."""

    __version__ = 1

    order_id = Identifier(required=True)
    workspace_id = Identifier(required=True)
    user_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String(required=True)
    total_amount = Float(required=True)
    item_count = Integer(required=True)
    stock_committed = Boolean(default=False)
    placed_at = DateTime(required=True)


@backoffice.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    workspace_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_by = Identifier()
    changed_at = DateTime(required=True)


@backoffice.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled. ``stock_restored`` is true when its stock went back to the shelf."""

    __version__ = 1

    order_id = Identifier(required=True)
    workspace_id = Identifier(required=True)
    previous_status = String(required=True)
    cancelled_by = Identifier()
    stock_restored = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@backoffice.event(part_of="Order")
class OrderItemAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    price = Float(required=True)
    new_total = Float(required=True)


@backoffice.event(part_of="Order")
class OrderItemRemoved:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_total = Float(required=True)


@backoffice.event(part_of="Order")
class OrderDetailsUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    changes = Text(required=True)  # JSON: {field: new value}


@backoffice.event(part_of="Order")
class DeliveryPartnerAssigned:
    __version__ = 1

    order_id = Identifier(required=True)
    delivery_partner_id = String(required=True)
    assigned_by = Identifier()
