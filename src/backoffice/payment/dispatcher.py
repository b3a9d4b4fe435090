"""Payment branch dispatcher.

CASH orders are built and committed straight away, taking their stock.

ONLINE orders are deferred: the request is validated and priced, and a
gateway checkout session is opened whose metadata carries the order intent.
No order exists until the gateway confirms payment through its webhook; the
order is then built as PROCESSING with its stock taken. The session id is the
idempotency key, so repeated webhook deliveries yield one order.
"""

import json
import os
from dataclasses import dataclass
from decimal import Decimal

import structlog

from backoffice.customer.address import AddressInput
from backoffice.exceptions import UnauthorizedError, ValidationError
from backoffice.order.builder import OrderRequest, OrderSummary, RequestedItem, create_order, prepare_order
from backoffice.order.order import OrderStatus, PaymentMethod
from backoffice.payment.gateway import get_gateway
from backoffice.payment.gateway.port import CheckoutLine
from backoffice.pricing.engine import to_minor_units

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "redirect_url": self.redirect_url,
            "total_amount": float(self.total_amount),
        }


def _checkout_settings() -> dict:
    return {
        "currency": os.getenv("CHECKOUT_CURRENCY", "usd"),
        "success_url": os.getenv("CHECKOUT_SUCCESS_URL", "http://localhost:3000/checkout/success"),
        "cancel_url": os.getenv("CHECKOUT_CANCEL_URL", "http://localhost:3000/checkout/cancel"),
    }


def encode_intent(request: OrderRequest, workspace_id, acting_user_id) -> dict[str, str]:
    """Flatten an order request into string-only gateway metadata."""
    intent = {
        "user_id": str(request.user_id),
        "acting_user_id": str(acting_user_id or request.user_id),
        "workspace_id": str(workspace_id),
        "items": json.dumps([{"variant_id": str(i.variant_id), "quantity": i.quantity} for i in request.items]),
        "shipping_address_id": request.shipping_address_id,
        "billing_address_id": request.billing_address_id,
        "shipping_address": json.dumps(request.shipping_address.to_dict()) if request.shipping_address else None,
        "billing_address": json.dumps(request.billing_address.to_dict()) if request.billing_address else None,
        "notes": request.notes,
    }
    return {key: value for key, value in intent.items() if value is not None}


def decode_intent(metadata: dict, session_id: str) -> OrderRequest:
    """Rebuild the confirmed order request from gateway metadata."""
    try:
        items = [RequestedItem(str(i["variant_id"]), int(i["quantity"])) for i in json.loads(metadata["items"])]
        shipping = metadata.get("shipping_address")
        billing = metadata.get("billing_address")
        return OrderRequest(
            user_id=metadata["user_id"],
            items=items,
            payment_method=PaymentMethod.ONLINE,
            status=OrderStatus.PROCESSING,
            shipping_address_id=metadata.get("shipping_address_id"),
            shipping_address=AddressInput(**json.loads(shipping)) if shipping else None,
            billing_address_id=metadata.get("billing_address_id"),
            billing_address=AddressInput(**json.loads(billing)) if billing else None,
            notes=metadata.get("notes"),
            idempotency_key=session_id,
            payment_session_id=session_id,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Payment metadata does not describe an order: {exc}") from exc


def place_order(request: OrderRequest, acting_user_id):
    """Route a request by payment method.

    Returns an :class:`OrderSummary` for CASH and a :class:`CheckoutSession`
    for ONLINE.
    """
    if request.payment_method is PaymentMethod.CASH:
        return create_order(request, acting_user_id)

    draft = prepare_order(request, acting_user_id)
    settings = _checkout_settings()
    line_items = [
        CheckoutLine(name=line.title, unit_amount=to_minor_units(line.unit_price), quantity=line.quantity)
        for line in draft.priced.lines
    ]
    session = get_gateway().create_payment_session(
        line_items,
        encode_intent(request, draft.workspace_id, acting_user_id),
        currency=settings["currency"],
        success_url=settings["success_url"],
        cancel_url=settings["cancel_url"],
    )
    logger.info(
        "checkout_session_opened",
        session_id=session.session_id,
        workspace_id=draft.workspace_id,
        total_amount=float(draft.priced.total),
    )
    return CheckoutSession(session.session_id, session.redirect_url, draft.priced.total)


def on_payment_confirmed(session_id: str, metadata: dict) -> OrderSummary:
    """Materialise the order paid for in ``session_id``. Safe to call repeatedly."""
    if not session_id:
        raise ValidationError("A payment session id is required")
    request = decode_intent(metadata, session_id)
    summary = create_order(
        request,
        metadata.get("acting_user_id", request.user_id),
        authorize=False,
        history_note="Payment confirmed",
    )
    logger.info("payment_confirmed", session_id=session_id, order_id=summary.order_id)
    return summary


def handle_webhook(payload: str, signature: str) -> OrderSummary | None:
    """Verify and apply a gateway webhook body.

    Only completed checkout sessions create orders; other event types are
    acknowledged and ignored.
    """
    if not get_gateway().verify_webhook_signature(payload, signature):
        raise UnauthorizedError("Invalid webhook signature")
    try:
        event = json.loads(payload)
        event_type = event["type"]
    except (ValueError, KeyError, TypeError) as exc:
        raise ValidationError(f"Malformed webhook payload: {exc}") from exc

    if event_type != CHECKOUT_COMPLETED:
        logger.info("webhook_ignored", event_type=event_type)
        return None

    session = event.get("data", {}).get("object", {})
    return on_payment_confirmed(session.get("id"), session.get("metadata") or {})
