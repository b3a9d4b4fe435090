"""Order exports: CSV listings and PDF invoices."""

import csv
import io

from protean.utils.globals import current_domain

from backoffice.customer.user import User
from backoffice.notification.rendering import get_renderer
from backoffice.order.queries import OrderFilter, get_order, list_orders
from backoffice.pricing.engine import round_money
from backoffice.workspace.permissions import Action, check_permission
from backoffice.workspace.workspace import Workspace

CSV_COLUMNS = ["id", "user_email", "total_amount", "status", "placed_at", "item_count"]

EXPORT_PAGE_SIZE = 10_000


def orders_to_csv(orders, emails_by_user_id) -> bytes:
    """Render orders as CSV (UTF-8, header row first)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for order in orders:
        writer.writerow(
            [
                str(order.id),
                emails_by_user_id.get(str(order.user_id), ""),
                f"{round_money(order.total_amount):.2f}",
                order.status,
                order.placed_at.isoformat() if order.placed_at else "",
                len(order.items),
            ]
        )
    return buffer.getvalue().encode("utf-8")


def export_orders_csv(workspace_id, acting_user_id, order_filter: OrderFilter | None = None) -> bytes:
    check_permission(workspace_id, acting_user_id, Action.EXPORT_ORDERS)
    orders = list_orders(workspace_id, acting_user_id, order_filter, limit=EXPORT_PAGE_SIZE)

    user_ids = list({str(order.user_id) for order in orders})
    users = (
        current_domain.repository_for(User)._dao.query.filter(id__in=user_ids).limit(len(user_ids)).all().items
        if user_ids
        else []
    )
    return orders_to_csv(orders, {str(user.id): user.email for user in users})


def render_invoice_pdf(order_id, acting_user_id) -> bytes:
    order = get_order(order_id, acting_user_id)
    user = current_domain.repository_for(User).get(order.user_id)
    workspace = current_domain.repository_for(Workspace).get(order.workspace_id)
    return get_renderer().invoice_pdf(order, user, workspace)
