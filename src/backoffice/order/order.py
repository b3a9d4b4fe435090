"""Order aggregate: the heart of the back-office.

An order owns its line items and its status history. Both are entities of
the aggregate, so they are written in the same unit of work as the order.

Lifecycle::

    PENDING → PROCESSING → DELIVERED
    PENDING | PROCESSING → CANCELLED

DELIVERED and CANCELLED are terminal: no further status changes, no line
changes. Every status change appends exactly one history entry.

``stock_committed`` records whether the order currently holds stock. CASH
orders and orders created as PROCESSING take stock at creation; an order
moving PENDING → PROCESSING takes it then if it does not hold it yet.
Cancellation returns whatever the order holds.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from backoffice.domain import backoffice
from backoffice.exceptions import InvalidTransitionError, NotFoundError
from backoffice.order.events import (
    DeliveryPartnerAssigned,
    OrderCancelled,
    OrderDetailsUpdated,
    OrderItemAdded,
    OrderItemRemoved,
    OrderPlaced,
    OrderStatusChanged,
)
from backoffice.pricing.engine import apply_delta, to_decimal
from backoffice.stock.ledger import StockLine


class OrderStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(Enum):
    CASH = "CASH"
    ONLINE = "ONLINE"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

INITIAL_STATUSES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


def _aware(moment):
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@backoffice.entity(part_of="Order")
class OrderItem:
    """A line of an order. ``price`` is the unit price snapshot taken when the line was written."""

    variant_id = Identifier(required=True)
    sku = String(max_length=50)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)


@backoffice.entity(part_of="Order")
class OrderStatusHistory:
    status = String(choices=OrderStatus, required=True)
    note = String(max_length=500)
    changed_by = Identifier()
    created_at = DateTime(required=True)


@backoffice.aggregate
class Order:
    workspace_id = Identifier(required=True)
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH.value)
    total_amount = Float(default=0.0)
    notes = String(max_length=2000)
    shipping_address_id = Identifier()
    billing_address_id = Identifier()
    idempotency_key = String(max_length=255)
    payment_session_id = String(max_length=255)
    delivery_partner_id = String(max_length=255)
    stock_committed = Boolean(default=False)
    items = HasMany(OrderItem)
    history = HasMany(OrderStatusHistory)
    placed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_cannot_be_negative(self):
        if self.total_amount is not None and self.total_amount < 0:
            raise ValidationError({"total_amount": ["Order total cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        *,
        workspace_id,
        user_id,
        priced,
        status=OrderStatus.PENDING,
        payment_method=PaymentMethod.CASH,
        shipping_address_id=None,
        billing_address_id=None,
        notes=None,
        stock_committed=False,
        idempotency_key=None,
        payment_session_id=None,
        changed_by=None,
        note=None,
        order_id=None,
    ):
        """Create an order from a priced request.

        Args:
            priced: A :class:`~backoffice.pricing.engine.PricedOrder`; its lines
                become the order items and its total the order total.
            status: PENDING or PROCESSING.
            note: Text for the first history entry.
        """
        status = OrderStatus(status)
        if status not in INITIAL_STATUSES:
            raise ValidationError({"status": [f"An order cannot be created as {status.value}"]})

        now = datetime.now(UTC)
        fields = dict(
            workspace_id=workspace_id,
            user_id=user_id,
            status=status.value,
            payment_method=PaymentMethod(payment_method).value,
            total_amount=float(priced.total),
            notes=notes,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            stock_committed=stock_committed,
            idempotency_key=idempotency_key,
            payment_session_id=payment_session_id,
            placed_at=now,
            created_at=now,
            updated_at=now,
        )
        if order_id:
            fields["id"] = order_id
        order = cls(**fields)

        for line in priced.lines:
            order.add_items(
                OrderItem(
                    variant_id=line.variant_id,
                    sku=line.sku,
                    title=line.title,
                    quantity=line.quantity,
                    price=float(line.unit_price),
                )
            )
        order._record_history(status, note or "Order placed", changed_by, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                workspace_id=str(workspace_id),
                user_id=str(user_id),
                status=status.value,
                payment_method=order.payment_method,
                total_amount=order.total_amount,
                item_count=len(priced.lines),
                stock_committed=stock_committed,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries on state
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self.current_status]

    def can_transition_to(self, new_status) -> bool:
        return OrderStatus(new_status) in _VALID_TRANSITIONS[self.current_status]

    def stock_lines(self) -> list[StockLine]:
        return [StockLine(str(item.variant_id), item.quantity) for item in self.items]

    def sorted_history(self) -> list:
        return sorted(self.history, key=lambda entry: _aware(entry.created_at))

    def item(self, item_id):
        found = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if found is None:
            raise NotFoundError(f"Item {item_id} not found on order {self.id}")
        return found

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def ensure_can_transition(self, new_status):
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot transition order {self.id} from {self.status} to {OrderStatus(new_status).value}",
                current_status=self.status,
                requested_status=OrderStatus(new_status).value,
            )

    def ensure_open(self):
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Order {self.id} is {self.status} and can no longer be modified",
                current_status=self.status,
            )

    def _next_history_timestamp(self, now):
        # History must stay strictly ordered even for same-instant writes
        latest = max((_aware(entry.created_at) for entry in self.history), default=None)
        if latest is not None and now <= latest:
            return latest + timedelta(microseconds=1)
        return now

    def _record_history(self, status, note, changed_by, now=None):
        now = now or datetime.now(UTC)
        self.add_history(
            OrderStatusHistory(
                status=OrderStatus(status).value,
                note=note,
                changed_by=changed_by,
                created_at=self._next_history_timestamp(now),
            )
        )

    def transition_to(self, new_status, changed_by=None, note=None):
        """Move to ``new_status`` (not CANCELLED; use :meth:`cancel`) and record it."""
        new_status = OrderStatus(new_status)
        if new_status is OrderStatus.CANCELLED:
            return self.cancel(cancelled_by=changed_by, note=note)

        self.ensure_can_transition(new_status)
        previous = self.status
        now = datetime.now(UTC)

        self.status = new_status.value
        self.updated_at = now
        self._record_history(new_status, note or f"Status changed to {new_status.value}", changed_by, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                workspace_id=str(self.workspace_id),
                previous_status=previous,
                new_status=new_status.value,
                changed_by=changed_by,
                changed_at=now,
            )
        )
        return []

    def mark_stock_committed(self):
        self.stock_committed = True

    def cancel(self, cancelled_by=None, note=None) -> list[StockLine]:
        """Cancel the order. Returns the stock lines the caller must put back."""
        self.ensure_can_transition(OrderStatus.CANCELLED)
        previous = self.status
        now = datetime.now(UTC)

        to_restore = self.stock_lines() if self.stock_committed else []
        self.status = OrderStatus.CANCELLED.value
        self.stock_committed = False
        self.updated_at = now
        self._record_history(OrderStatus.CANCELLED, note or "Order cancelled", cancelled_by, now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                workspace_id=str(self.workspace_id),
                previous_status=previous,
                cancelled_by=cancelled_by,
                stock_restored=bool(to_restore),
                cancelled_at=now,
            )
        )
        return to_restore

    # -------------------------------------------------------------------
    # Line changes
    # -------------------------------------------------------------------
    def add_line(self, priced_line) -> OrderItem:
        """Append a priced line and shift the total by exactly its amount."""
        self.ensure_open()
        item = OrderItem(
            variant_id=priced_line.variant_id,
            sku=priced_line.sku,
            title=priced_line.title,
            quantity=priced_line.quantity,
            price=float(priced_line.unit_price),
        )
        self.add_items(item)
        self.total_amount = float(apply_delta(self.total_amount, priced_line.line_total))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderItemAdded(
                order_id=str(self.id),
                item_id=str(item.id),
                variant_id=str(item.variant_id),
                quantity=item.quantity,
                price=item.price,
                new_total=self.total_amount,
            )
        )
        return item

    def remove_line(self, item_id) -> OrderItem:
        self.ensure_open()
        item = self.item(item_id)
        if len(self.items) == 1:
            raise ValidationError({"items": ["An order keeps at least one item; cancel the order instead"]})
        self.remove_items(item)
        line_total = to_decimal(item.price) * item.quantity
        self.total_amount = float(apply_delta(self.total_amount, -line_total))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderItemRemoved(
                order_id=str(self.id),
                item_id=str(item.id),
                variant_id=str(item.variant_id),
                quantity=item.quantity,
                new_total=self.total_amount,
            )
        )
        return item

    # -------------------------------------------------------------------
    # Administrative edits
    # -------------------------------------------------------------------
    def update_details(self, **changes):
        """Change addresses, payment method or notes. ``None`` values are ignored.

        Notes stay editable on closed orders; everything else does not.
        """
        allowed = {"shipping_address_id", "billing_address_id", "payment_method", "notes"}
        applied = {}
        for field_name, value in changes.items():
            if field_name not in allowed:
                raise ValidationError({field_name: ["Field cannot be updated"]})
            if value is None:
                continue
            if field_name != "notes":
                self.ensure_open()
            if field_name == "payment_method":
                try:
                    value = PaymentMethod(value).value
                except ValueError:
                    raise ValidationError({"payment_method": [f"Unknown payment method {value}"]}) from None
            setattr(self, field_name, value)
            applied[field_name] = value

        if applied:
            self.updated_at = datetime.now(UTC)
            self.raise_(OrderDetailsUpdated(order_id=str(self.id), changes=json.dumps(applied)))
        return applied

    def assign_delivery_partner(self, partner, assigned_by=None):
        self.ensure_open()
        self.delivery_partner_id = partner
        self.updated_at = datetime.now(UTC)
        self._record_history(self.current_status, f"Assigned to delivery partner: {partner}", assigned_by)
        self.raise_(
            DeliveryPartnerAssigned(
                order_id=str(self.id),
                delivery_partner_id=partner,
                assigned_by=assigned_by,
            )
        )


@backoffice.repository(part_of=Order)
class OrderRepository:
    def find_by_idempotency_key(self, key):
        if not key:
            return None
        found = self._dao.query.filter(idempotency_key=key).all().items
        return found[0] if found else None
