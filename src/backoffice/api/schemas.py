"""Pydantic request/response schemas for the back-office order API.

These are external contracts (anti-corruption layer), kept apart from the
typed requests and Protean commands used inside the domain.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from backoffice.customer.address import AddressInput
from backoffice.order.builder import OrderRequest, RequestedItem


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)

    def to_input(self) -> AddressInput:
        return AddressInput(**self.model_dump())


class OrderItemSchema(BaseModel):
    variant_id: str
    quantity: int = Field(gt=0)
    # Accepted for compatibility with older clients; never used for pricing
    price: float | None = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    user_id: str
    items: list[OrderItemSchema] = Field(min_length=1)
    payment_method: Literal["CASH", "ONLINE"] = "CASH"
    status: Literal["PENDING", "PROCESSING"] = "PENDING"
    shipping_address_id: str | None = None
    shipping_address: AddressSchema | None = None
    billing_address_id: str | None = None
    billing_address: AddressSchema | None = None
    notes: str | None = Field(default=None, max_length=2000)
    idempotency_key: str | None = Field(default=None, max_length=255)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "usr-001",
                    "items": [{"variant_id": "var-001", "quantity": 2}],
                    "payment_method": "CASH",
                    "shipping_address": {
                        "street": "1 Main St",
                        "city": "Springfield",
                        "postal_code": "12345",
                        "country": "US",
                    },
                    "idempotency_key": "checkout-7f3a",
                }
            ]
        }
    }

    def to_request(self) -> OrderRequest:
        return OrderRequest(
            user_id=self.user_id,
            items=[RequestedItem(item.variant_id, item.quantity) for item in self.items],
            payment_method=self.payment_method,
            status=self.status,
            shipping_address_id=self.shipping_address_id,
            shipping_address=self.shipping_address.to_input() if self.shipping_address else None,
            billing_address_id=self.billing_address_id,
            billing_address=self.billing_address.to_input() if self.billing_address else None,
            notes=self.notes,
            idempotency_key=self.idempotency_key,
        )


class UpdateStatusRequest(BaseModel):
    status: Literal["PENDING", "PROCESSING", "DELIVERED", "CANCELLED"]
    note: str | None = Field(default=None, max_length=500)


class BulkStatusRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    status: Literal["PENDING", "PROCESSING", "DELIVERED", "CANCELLED"]
    note: str | None = Field(default=None, max_length=500)


class CancelOrderRequest(BaseModel):
    note: str | None = Field(default=None, max_length=500)


class AddItemRequest(BaseModel):
    variant_id: str
    quantity: int = Field(gt=0)


class UpdateOrderRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    payment_method: Literal["CASH", "ONLINE"] | None = None


class AssignDeliveryRequest(BaseModel):
    delivery_partner_id: str = Field(min_length=1)


class NotifyCustomerRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class OrderSummaryResponse(BaseModel):
    order_id: str
    total_amount: float
    status: str
    item_count: int
    message: str


class CheckoutSessionResponse(BaseModel):
    session_id: str
    redirect_url: str
    total_amount: float


class OrderItemResponse(BaseModel):
    id: str
    variant_id: str
    sku: str | None = None
    title: str | None = None
    quantity: int
    price: float


class HistoryEntryResponse(BaseModel):
    status: str
    note: str | None = None
    changed_by: str | None = None
    created_at: datetime

    @classmethod
    def from_entry(cls, entry) -> "HistoryEntryResponse":
        return cls(
            status=entry.status,
            note=entry.note,
            changed_by=str(entry.changed_by) if entry.changed_by else None,
            created_at=entry.created_at,
        )


class OrderResponse(BaseModel):
    id: str
    workspace_id: str
    user_id: str
    status: str
    payment_method: str
    total_amount: float
    notes: str | None = None
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    delivery_partner_id: str | None = None
    placed_at: datetime | None = None
    items: list[OrderItemResponse]
    history: list[HistoryEntryResponse]

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            workspace_id=str(order.workspace_id),
            user_id=str(order.user_id),
            status=order.status,
            payment_method=order.payment_method,
            total_amount=order.total_amount,
            notes=order.notes,
            shipping_address_id=str(order.shipping_address_id) if order.shipping_address_id else None,
            billing_address_id=str(order.billing_address_id) if order.billing_address_id else None,
            delivery_partner_id=order.delivery_partner_id,
            placed_at=order.placed_at,
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    variant_id=str(item.variant_id),
                    sku=item.sku,
                    title=item.title,
                    quantity=item.quantity,
                    price=item.price,
                )
                for item in order.items
            ],
            history=[HistoryEntryResponse.from_entry(entry) for entry in order.sorted_history()],
        )


class StatusResponse(BaseModel):
    order_id: str | None = None
    status: str | None = None
    message: str


class ItemChangeResponse(BaseModel):
    order_id: str
    item_id: str
    total_amount: float
    message: str


class BulkStatusOutcome(BaseModel):
    order_id: str
    updated: bool
    status: str | None = None
    error: str | None = None


class NotifyResponse(BaseModel):
    order_id: str
    message: str
    sent: int
    failed_recipients: list[str]
