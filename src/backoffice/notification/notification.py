"""Notification aggregate: the in-app record of something a member should know."""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String

from backoffice.domain import backoffice


class NotificationKind(Enum):
    ORDER_PLACED = "ORDER_PLACED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_NOTICE = "ORDER_NOTICE"


@backoffice.aggregate
class Notification:
    workspace_id = Identifier(required=True)
    recipient_id = Identifier(required=True)
    order_id = Identifier()
    kind = String(choices=NotificationKind, required=True)
    message = String(required=True, max_length=1000)
    is_read = Boolean(default=False)
    created_at = DateTime()

    @classmethod
    def create(cls, workspace_id, recipient_id, kind, message, order_id=None):
        return cls(
            workspace_id=workspace_id,
            recipient_id=recipient_id,
            order_id=order_id,
            kind=NotificationKind(kind).value,
            message=message,
            created_at=datetime.now(UTC),
        )

    def mark_read(self):
        self.is_read = True


@backoffice.repository(part_of=Notification)
class NotificationRepository:
    def for_recipient(self, recipient_id):
        return self._dao.query.filter(recipient_id=recipient_id).all().items

    def for_order(self, order_id):
        return self._dao.query.filter(order_id=order_id).all().items
