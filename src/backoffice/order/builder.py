"""Order aggregate builder: turns a validated request into a committed order.

Validation runs first and in a fixed order, before any transaction opens:

1. the ordering user exists
2. every variant exists (one batch lookup)
3. all variants belong to one workspace, which becomes the order's workspace
4. addresses are either existing ids or complete inline addresses
5. stock covers every line (all shortfalls are reported together)
6. the order is priced from current variant prices

The commit itself is a single :class:`~backoffice.order.placement.PlaceOrder`
command. Notifications go out only after it has committed.
"""

from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from backoffice.catalogue.variant import ProductVariant
from backoffice.customer.address import Address, AddressInput
from backoffice.customer.user import User
from backoffice.exceptions import (
    CrossWorkspaceOrderError,
    InsufficientStockError,
    InvalidAddressError,
    NotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from backoffice.notification.ordering_events import announce_order_placed
from backoffice.order.order import INITIAL_STATUSES, Order, OrderStatus, PaymentMethod
from backoffice.order.placement import place_order_command
from backoffice.pricing.engine import PricedOrder, price_items, to_decimal
from backoffice.stock.ledger import StockLine, shortfalls
from backoffice.transaction import run_in_transaction
from backoffice.workspace.permissions import Action, check_permission

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RequestedItem:
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class OrderRequest:
    """Typed order input. Built by the API schemas or by lifecycle operations."""

    user_id: str
    items: tuple[RequestedItem, ...]
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: OrderStatus = OrderStatus.PENDING
    shipping_address_id: str | None = None
    shipping_address: AddressInput | None = None
    billing_address_id: str | None = None
    billing_address: AddressInput | None = None
    notes: str | None = None
    idempotency_key: str | None = None
    payment_session_id: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        try:
            object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))
            object.__setattr__(self, "status", OrderStatus(self.status))
        except ValueError as exc:
            raise ValidationError(str(exc)) from None

        if not self.user_id:
            raise ValidationError("user_id is required")
        if not self.items:
            raise ValidationError("An order needs at least one item")
        bad = [item.variant_id for item in self.items if item.quantity is None or item.quantity <= 0]
        if bad:
            raise ValidationError("Item quantities must be positive", variant_ids=bad)
        if self.status not in INITIAL_STATUSES:
            raise ValidationError(f"An order cannot be created as {self.status.value}")

    @property
    def commits_stock(self) -> bool:
        """CASH orders and orders born PROCESSING take stock at creation."""
        return self.payment_method is PaymentMethod.CASH or self.status is OrderStatus.PROCESSING

    def stock_lines(self) -> list[StockLine]:
        return [StockLine(str(item.variant_id), item.quantity) for item in self.items]


@dataclass(frozen=True)
class OrderDraft:
    """A request that passed validation, with the facts the commit needs."""

    request: OrderRequest
    workspace_id: str
    priced: PricedOrder
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    shipping_address: AddressInput | None = None
    billing_address: AddressInput | None = None


@dataclass(frozen=True)
class OrderSummary:
    order_id: str
    total_amount: Decimal
    status: str
    item_count: int
    message: str = "Order placed successfully"
    notifications: object = field(default=None, compare=False)

    @classmethod
    def of(cls, order, message="Order placed successfully", notifications=None):
        return cls(
            order_id=str(order.id),
            total_amount=to_decimal(order.total_amount).quantize(Decimal("0.01")),
            status=order.status,
            item_count=len(order.items),
            message=message,
            notifications=notifications,
        )

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "total_amount": float(self.total_amount),
            "status": self.status,
            "item_count": self.item_count,
            "message": self.message,
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _validate_inline_address(address: AddressInput, label: str):
    missing = [
        name for name in ("street", "city", "postal_code", "country") if not (getattr(address, name) or "").strip()
    ]
    if missing:
        raise InvalidAddressError(f"{label} address is missing {', '.join(missing)}", fields=missing)


def _resolve_address(address_id, inline, label, required):
    if address_id:
        if not current_domain.repository_for(Address)._dao.query.filter(id=address_id).all().items:
            raise InvalidAddressError(f"{label} address {address_id} does not exist")
        return address_id, None
    if inline is not None:
        _validate_inline_address(inline, label)
        return None, inline
    if required:
        raise InvalidAddressError(f"A {label.lower()} address id or address is required")
    return None, None


def prepare_order(request: OrderRequest, acting_user_id=None, authorize=True) -> OrderDraft:
    """Run every validation step without writing anything."""
    if not current_domain.repository_for(User).exists(request.user_id):
        raise NotFoundError(f"User {request.user_id} not found")

    variant_ids = list(dict.fromkeys(str(item.variant_id) for item in request.items))
    variants = current_domain.repository_for(ProductVariant).find_many(variant_ids)
    missing = [variant_id for variant_id in variant_ids if variant_id not in variants]
    if missing:
        raise VariantNotFoundError(missing)

    workspaces = {str(variant.workspace_id) for variant in variants.values()}
    if len(workspaces) > 1:
        raise CrossWorkspaceOrderError(
            "All items of an order must come from the same workspace",
            workspace_ids=sorted(workspaces),
        )
    workspace_id = workspaces.pop()

    if authorize:
        check_permission(workspace_id, acting_user_id, Action.CREATE_ORDER)

    shipping_id, shipping = _resolve_address(
        request.shipping_address_id, request.shipping_address, "Shipping", required=True
    )
    billing_id, billing = _resolve_address(request.billing_address_id, request.billing_address, "Billing", False)
    if billing_id is None and billing is None:
        billing_id, billing = shipping_id, shipping

    missing_stock = shortfalls(request.stock_lines(), variants)
    if missing_stock:
        raise InsufficientStockError(missing_stock)

    return OrderDraft(
        request=request,
        workspace_id=workspace_id,
        priced=price_items(request.items, variants),
        shipping_address_id=shipping_id,
        billing_address_id=billing_id,
        shipping_address=shipping,
        billing_address=billing,
    )


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------
def commit_order(draft: OrderDraft, acting_user_id=None, history_note=None) -> str:
    """Persist a prepared draft in one transaction and return the order id.

    Stock is re-read inside the transaction, so a draft validated against
    stock that has since been sold fails with InsufficientStockError.
    """
    request = draft.request
    command = place_order_command(
        workspace_id=draft.workspace_id,
        user_id=request.user_id,
        items=request.items,
        status=request.status.value,
        payment_method=request.payment_method.value,
        commit_stock=request.commits_stock,
        shipping_address_id=draft.shipping_address_id,
        billing_address_id=draft.billing_address_id,
        shipping_address=draft.shipping_address,
        billing_address=draft.billing_address,
        notes=request.notes,
        idempotency_key=request.idempotency_key,
        payment_session_id=request.payment_session_id,
        changed_by=acting_user_id or request.user_id,
        history_note=history_note,
    )
    return run_in_transaction(command)


def create_order(request: OrderRequest, acting_user_id=None, *, authorize=True, history_note=None) -> OrderSummary:
    """Validate, commit and announce an order.

    A request whose ``idempotency_key`` already produced an order returns
    that order's summary without validating or writing anything, once the
    caller is allowed to create orders in that order's workspace.
    """
    orders = current_domain.repository_for(Order)
    existing = orders.find_by_idempotency_key(request.idempotency_key)
    if existing is not None:
        if authorize:
            check_permission(existing.workspace_id, acting_user_id, Action.CREATE_ORDER)
        logger.info("order_replayed", order_id=str(existing.id), idempotency_key=request.idempotency_key)
        return OrderSummary.of(existing, message="Order already placed")

    draft = prepare_order(request, acting_user_id, authorize=authorize)
    order_id = commit_order(draft, acting_user_id, history_note=history_note)
    order = orders.get(order_id)

    logger.info(
        "order_placed",
        order_id=order_id,
        workspace_id=draft.workspace_id,
        total_amount=order.total_amount,
        payment_method=order.payment_method,
        stock_committed=order.stock_committed,
    )

    notifications = announce_order_placed(order)
    return OrderSummary.of(order, notifications=notifications)
