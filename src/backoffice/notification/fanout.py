"""Notification fan-out.

One rendered message goes to many recipients. Sends run concurrently and
independently: a recipient whose send fails is logged and counted, and never
stops the others. The outcome is returned as telemetry (:class:`Ok` or
:class:`PartialFailure`) and is never raised.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from backoffice.customer.user import User
from backoffice.notification.channel import get_sender
from backoffice.notification.channel.email_port import Attachment
from backoffice.notification.rendering import OrderEventKind, get_renderer
from backoffice.workspace.workspace import Workspace

logger = structlog.get_logger(__name__)

MAX_CONCURRENT_SENDS = 8


@dataclass(frozen=True)
class Recipient:
    user_id: str
    email: str


@dataclass(frozen=True)
class Ok:
    sent: int


@dataclass(frozen=True)
class PartialFailure:
    sent: int
    failed_recipients: tuple[str, ...]


FanoutResult = Ok | PartialFailure


def _send_one(sender, recipient: Recipient, subject, html, attachment) -> bool:
    try:
        sender.send(recipient.email, subject, html, attachment)
        return True
    except Exception as exc:
        logger.warning("notification_send_failed", recipient=recipient.email, error=str(exc))
        return False


def fan_out(recipients, subject: str, html: str, attachment: Attachment | None = None, sender=None) -> FanoutResult:
    """Send one message to every recipient concurrently."""
    recipients = list(recipients)
    if not recipients:
        return Ok(sent=0)
    sender = sender or get_sender()

    with ThreadPoolExecutor(max_workers=min(MAX_CONCURRENT_SENDS, len(recipients))) as pool:
        outcomes = list(
            pool.map(lambda recipient: _send_one(sender, recipient, subject, html, attachment), recipients)
        )

    failed = tuple(recipient.email for recipient, ok in zip(recipients, outcomes, strict=True) if not ok)
    sent = len(recipients) - len(failed)
    if failed:
        return PartialFailure(sent=sent, failed_recipients=failed)
    return Ok(sent=sent)


def notify_order_event(order, event_kind, recipients, message=None) -> FanoutResult:
    """Render the email for ``event_kind`` and fan it out to ``recipients``.

    Must be called after the order's transaction has committed. Rendering
    problems are reported as a failure for every recipient.
    """
    recipients = list(recipients)
    kind = OrderEventKind(event_kind)
    try:
        user = current_domain.repository_for(User).get(order.user_id)
        workspace = current_domain.repository_for(Workspace).get(order.workspace_id)
        rendered = get_renderer().render(order, user, workspace, kind=kind, message=message)
    except Exception as exc:
        logger.error("notification_render_failed", order_id=str(order.id), kind=kind.value, error=str(exc))
        return PartialFailure(sent=0, failed_recipients=tuple(r.email for r in recipients))

    attachment = None
    if rendered.pdf_bytes:
        attachment = Attachment(filename=f"invoice-{order.id}.pdf", content=rendered.pdf_bytes)

    result = fan_out(recipients, rendered.subject, rendered.html, attachment)
    logger.info(
        "order_notification_fanned_out",
        order_id=str(order.id),
        kind=kind.value,
        sent=result.sent,
        failed=describe(result)["failed_recipients"],
    )
    return result


def describe(result: FanoutResult) -> dict:
    """Flatten a fan-out result for API responses and logs."""
    if isinstance(result, PartialFailure):
        return {"sent": result.sent, "failed_recipients": list(result.failed_recipients)}
    return {"sent": result.sent, "failed_recipients": []}
