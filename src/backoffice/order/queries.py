"""Read side of orders: lookups, filtered listings, search and history.

Customers only ever see their own orders; staff see the whole workspace.
"""

from dataclasses import dataclass
from datetime import datetime

from protean.utils.globals import current_domain

from backoffice.customer.user import User
from backoffice.exceptions import PermissionDeniedError, ValidationError
from backoffice.order.order import Order
from backoffice.order.status import parse_status
from backoffice.transaction import load
from backoffice.workspace.permissions import Action, check_permission
from backoffice.workspace.workspace import MemberRole

DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderFilter:
    status: str | None = None
    user_id: str | None = None
    placed_from: datetime | None = None
    placed_to: datetime | None = None
    search: str | None = None


def _visible_order(order_id, acting_user_id):
    order = load(Order, order_id)
    role = check_permission(order.workspace_id, acting_user_id, Action.VIEW_ORDERS)
    if role is MemberRole.CUSTOMER and str(order.user_id) != str(acting_user_id):
        raise PermissionDeniedError("Customers can only view their own orders")
    return order


def get_order(order_id, acting_user_id):
    return _visible_order(order_id, acting_user_id)


def get_order_history(order_id, acting_user_id) -> list:
    """Status history entries, oldest first."""
    return _visible_order(order_id, acting_user_id).sorted_history()


def _criteria(workspace_id, order_filter: OrderFilter) -> dict:
    criteria = {"workspace_id": workspace_id}
    if order_filter.status:
        criteria["status"] = parse_status(order_filter.status).value
    if order_filter.user_id:
        criteria["user_id"] = order_filter.user_id
    if order_filter.placed_from:
        criteria["placed_at__gte"] = order_filter.placed_from
    if order_filter.placed_to:
        criteria["placed_at__lte"] = order_filter.placed_to
    return criteria


def _matching_user_ids(term) -> set[str]:
    users = current_domain.repository_for(User)._dao.query.filter(email__icontains=term).all().items
    return {str(user.id) for user in users}


def list_orders(
    workspace_id,
    acting_user_id,
    order_filter: OrderFilter | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list:
    """Workspace orders, newest first, narrowed by ``order_filter``.

    ``search`` matches an exact order id, a fragment of the notes, or a
    fragment of the customer's email.
    """
    order_filter = order_filter or OrderFilter()
    if limit <= 0 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")
    if order_filter.placed_from and order_filter.placed_to and order_filter.placed_from > order_filter.placed_to:
        raise ValidationError("placed_from must not be after placed_to")

    role = check_permission(workspace_id, acting_user_id, Action.VIEW_ORDERS)
    if role is MemberRole.CUSTOMER:
        order_filter = OrderFilter(
            status=order_filter.status,
            user_id=str(acting_user_id),
            placed_from=order_filter.placed_from,
            placed_to=order_filter.placed_to,
            search=order_filter.search,
        )

    query = current_domain.repository_for(Order)._dao.query.filter(**_criteria(workspace_id, order_filter))
    term = (order_filter.search or "").strip()
    if not term:
        return query.order_by("-placed_at").offset(offset).limit(limit).all().items

    # Search narrows in memory; the base criteria already bound the workspace
    candidates = query.order_by("-placed_at").limit(10_000).all().items
    lowered = term.lower()
    emails = _matching_user_ids(term)
    matches = [
        order
        for order in candidates
        if str(order.id) == term or lowered in (order.notes or "").lower() or str(order.user_id) in emails
    ]
    return matches[offset : offset + limit]


def orders_by_status(workspace_id, status, acting_user_id, **paging) -> list:
    return list_orders(workspace_id, acting_user_id, OrderFilter(status=status), **paging)


def orders_by_user(workspace_id, user_id, acting_user_id, **paging) -> list:
    return list_orders(workspace_id, acting_user_id, OrderFilter(user_id=user_id), **paging)


def orders_placed_between(workspace_id, placed_from, placed_to, acting_user_id, **paging) -> list:
    return list_orders(workspace_id, acting_user_id, OrderFilter(placed_from=placed_from, placed_to=placed_to), **paging)


def search_orders(workspace_id, term, acting_user_id, **paging) -> list:
    return list_orders(workspace_id, acting_user_id, OrderFilter(search=term), **paging)
