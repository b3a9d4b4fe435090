"""Order announcements: what members and customers hear about an order.

Called by the order services after their transaction has committed. Each
announcement stores in-app notifications and emails the recipients. Nothing
here can fail the order operation that triggered it.
"""

import structlog
from protean.utils.globals import current_domain

from backoffice.customer.user import User
from backoffice.notification.fanout import PartialFailure, Recipient, notify_order_event
from backoffice.notification.notification import Notification, NotificationKind
from backoffice.notification.rendering import OrderEventKind
from backoffice.workspace.workspace import WorkspaceMember

logger = structlog.get_logger(__name__)


def resolve_recipients(order, include_staff=True) -> list[Recipient]:
    """The order's customer, plus the workspace's admins and managers."""
    user_ids = [str(order.user_id)]
    if include_staff:
        members = current_domain.repository_for(WorkspaceMember).notice_recipients(order.workspace_id)
        user_ids.extend(str(member.user_id) for member in members)
    user_ids = list(dict.fromkeys(user_ids))

    users = current_domain.repository_for(User)._dao.query.filter(id__in=user_ids).all().items
    by_id = {str(user.id): user for user in users}
    return [Recipient(user_id=uid, email=by_id[uid].email) for uid in user_ids if uid in by_id and by_id[uid].email]


def record_notifications(order, kind: NotificationKind, message: str, recipients) -> list[Notification]:
    repo = current_domain.repository_for(Notification)
    created = []
    for recipient in recipients:
        notification = Notification.create(
            workspace_id=order.workspace_id,
            recipient_id=recipient.user_id,
            kind=kind,
            message=message,
            order_id=str(order.id),
        )
        repo.add(notification)
        created.append(notification)
    return created


def _announce(order, kind: NotificationKind, event_kind: OrderEventKind, message, include_staff=True):
    try:
        recipients = resolve_recipients(order, include_staff=include_staff)
        record_notifications(order, kind, message, recipients)
    except Exception as exc:
        logger.error("order_announcement_failed", order_id=str(order.id), kind=kind.value, error=str(exc))
        return PartialFailure(sent=0, failed_recipients=())

    return notify_order_event(
        order,
        event_kind,
        recipients,
        message=message if event_kind is OrderEventKind.NOTICE else None,
    )


def announce_order_placed(order):
    return _announce(
        order,
        NotificationKind.ORDER_PLACED,
        OrderEventKind.PLACED,
        f"Order #{order.id} placed for {order.total_amount:.2f}",
    )


def announce_order_cancelled(order):
    return _announce(
        order,
        NotificationKind.ORDER_CANCELLED,
        OrderEventKind.CANCELLED,
        f"Order #{order.id} was cancelled",
    )


def announce_order_notice(order, message: str):
    """Send a free-text update about the order to its customer only."""
    return _announce(order, NotificationKind.ORDER_NOTICE, OrderEventKind.NOTICE, message, include_staff=False)
