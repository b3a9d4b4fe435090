"""FastAPI routes for back-office orders.

The acting user arrives in the ``X-User-Id`` header; authentication itself
happens upstream. Every route delegates to a service function and lets the
registered error handlers shape failures.
"""

from datetime import datetime

from fastapi import APIRouter, Header, Request, Response

from backoffice.api.schemas import (
    AddItemRequest,
    AssignDeliveryRequest,
    BulkStatusOutcome,
    BulkStatusRequest,
    CancelOrderRequest,
    CheckoutSessionResponse,
    HistoryEntryResponse,
    ItemChangeResponse,
    NotifyCustomerRequest,
    NotifyResponse,
    OrderResponse,
    OrderSummaryResponse,
    PlaceOrderRequest,
    StatusResponse,
    UpdateOrderRequest,
    UpdateStatusRequest,
)
from backoffice.exports.orders import export_orders_csv, render_invoice_pdf
from backoffice.order.administration import (
    assign_delivery_partner,
    delete_order,
    notify_order_status,
    update_order,
)
from backoffice.order.cancellation import cancel_order
from backoffice.order.duplication import clone_order, reorder
from backoffice.order.modification import add_order_item, remove_order_item
from backoffice.order.queries import OrderFilter, get_order, get_order_history, list_orders
from backoffice.order.status import bulk_update_status, update_status
from backoffice.payment.dispatcher import CheckoutSession, handle_webhook, place_order

order_router = APIRouter(prefix="/orders", tags=["orders"])
workspace_order_router = APIRouter(prefix="/workspaces/{workspace_id}/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Placement and payment
# ---------------------------------------------------------------------------
@order_router.post(
    "",
    status_code=201,
    response_model=OrderSummaryResponse | CheckoutSessionResponse,
)
async def create_order_endpoint(body: PlaceOrderRequest, response: Response, x_user_id: str = Header(default="")):
    """Place a CASH order, or open a checkout session for an ONLINE one."""
    result = place_order(body.to_request(), x_user_id)
    if isinstance(result, CheckoutSession):
        response.status_code = 200
        return CheckoutSessionResponse(**result.to_dict())
    return OrderSummaryResponse(**result.to_dict())


@order_router.post("/webhook", response_model=StatusResponse)
async def payment_webhook(request: Request, x_gateway_signature: str = Header(default="")) -> StatusResponse:
    """Receive the payment gateway's webhook. Completed checkouts become orders."""
    payload = (await request.body()).decode("utf-8")
    summary = handle_webhook(payload, x_gateway_signature)
    if summary is None:
        return StatusResponse(message="ignored")
    return StatusResponse(order_id=summary.order_id, status=summary.status, message=summary.message)


# ---------------------------------------------------------------------------
# Single order
# ---------------------------------------------------------------------------
@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_endpoint(order_id: str, x_user_id: str = Header(default="")) -> OrderResponse:
    return OrderResponse.from_order(get_order(order_id, x_user_id))


@order_router.get("/{order_id}/history", response_model=list[HistoryEntryResponse])
async def get_order_history_endpoint(order_id: str, x_user_id: str = Header(default="")):
    return [HistoryEntryResponse.from_entry(entry) for entry in get_order_history(order_id, x_user_id)]


@order_router.get("/{order_id}/invoice")
async def download_invoice(order_id: str, x_user_id: str = Header(default="")) -> Response:
    return Response(
        content=render_invoice_pdf(order_id, x_user_id),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="invoice-{order_id}.pdf"'},
    )


@order_router.patch("/{order_id}", response_model=StatusResponse)
async def update_order_endpoint(
    order_id: str, body: UpdateOrderRequest, x_user_id: str = Header(default="")
) -> StatusResponse:
    result = update_order(order_id, x_user_id, **body.model_dump())
    return StatusResponse(order_id=result["order_id"], message=result["message"])


@order_router.patch("/{order_id}/status", response_model=StatusResponse)
async def update_status_endpoint(
    order_id: str, body: UpdateStatusRequest, x_user_id: str = Header(default="")
) -> StatusResponse:
    return StatusResponse(**update_status(order_id, body.status, x_user_id, note=body.note))


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order_endpoint(
    order_id: str, body: CancelOrderRequest | None = None, x_user_id: str = Header(default="")
) -> StatusResponse:
    result = cancel_order(order_id, x_user_id, note=body.note if body else None)
    return StatusResponse(order_id=order_id, **result)


@order_router.post("/{order_id}/clone", status_code=201, response_model=OrderSummaryResponse)
async def clone_order_endpoint(order_id: str, x_user_id: str = Header(default="")) -> OrderSummaryResponse:
    return OrderSummaryResponse(**clone_order(order_id, x_user_id).to_dict())


@order_router.post("/{order_id}/reorder", status_code=201, response_model=OrderSummaryResponse)
async def reorder_endpoint(order_id: str, x_user_id: str = Header(default="")) -> OrderSummaryResponse:
    return OrderSummaryResponse(**reorder(order_id, x_user_id).to_dict())


@order_router.post("/{order_id}/items", status_code=201, response_model=ItemChangeResponse)
async def add_item_endpoint(
    order_id: str, body: AddItemRequest, x_user_id: str = Header(default="")
) -> ItemChangeResponse:
    return ItemChangeResponse(**add_order_item(order_id, body.variant_id, body.quantity, x_user_id))


@order_router.delete("/{order_id}/items/{item_id}", response_model=ItemChangeResponse)
async def remove_item_endpoint(order_id: str, item_id: str, x_user_id: str = Header(default="")) -> ItemChangeResponse:
    return ItemChangeResponse(**remove_order_item(order_id, item_id, x_user_id))


@order_router.patch("/{order_id}/delivery-partner", response_model=StatusResponse)
async def assign_delivery_endpoint(
    order_id: str, body: AssignDeliveryRequest, x_user_id: str = Header(default="")
) -> StatusResponse:
    result = assign_delivery_partner(order_id, body.delivery_partner_id, x_user_id)
    return StatusResponse(order_id=result["order_id"], message=result["message"])


@order_router.post("/{order_id}/notify", response_model=NotifyResponse)
async def notify_customer_endpoint(
    order_id: str, body: NotifyCustomerRequest, x_user_id: str = Header(default="")
) -> NotifyResponse:
    return NotifyResponse(**notify_order_status(order_id, body.message, x_user_id))


@order_router.delete("/{order_id}", response_model=StatusResponse)
async def delete_order_endpoint(order_id: str, x_user_id: str = Header(default="")) -> StatusResponse:
    return StatusResponse(**delete_order(order_id, x_user_id))


# ---------------------------------------------------------------------------
# Workspace listings
# ---------------------------------------------------------------------------
@workspace_order_router.get("", response_model=list[OrderResponse])
async def list_orders_endpoint(
    workspace_id: str,
    status: str | None = None,
    user_id: str | None = None,
    placed_from: datetime | None = None,
    placed_to: datetime | None = None,
    q: str | None = None,
    limit: int = 100,
    offset: int = 0,
    x_user_id: str = Header(default=""),
):
    order_filter = OrderFilter(
        status=status,
        user_id=user_id,
        placed_from=placed_from,
        placed_to=placed_to,
        search=q,
    )
    orders = list_orders(workspace_id, x_user_id, order_filter, limit=limit, offset=offset)
    return [OrderResponse.from_order(order) for order in orders]


@workspace_order_router.get("/export")
async def export_orders_endpoint(workspace_id: str, status: str | None = None, x_user_id: str = Header(default="")):
    content = export_orders_csv(workspace_id, x_user_id, OrderFilter(status=status))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="orders-{workspace_id}.csv"'},
    )


@workspace_order_router.patch("/status", response_model=list[BulkStatusOutcome])
async def bulk_update_status_endpoint(
    workspace_id: str, body: BulkStatusRequest, x_user_id: str = Header(default="")
):
    outcomes = bulk_update_status(body.order_ids, body.status, x_user_id, note=body.note, workspace_id=workspace_id)
    return [BulkStatusOutcome(**outcome) for outcome in outcomes]
