"""Fake email sender: records messages in memory for test assertions."""

import threading
from uuid import uuid4

from backoffice.notification.channel.email_port import Attachment, EmailDeliveryError, EmailSender


class FakeEmailSender(EmailSender):
    def __init__(self):
        self.sent_emails: list[dict] = []
        self.should_succeed = True
        self.failing_recipients: set[str] = set()
        self.failure_reason = "Email delivery failed"
        self._lock = threading.Lock()

    def configure(
        self,
        should_succeed: bool = True,
        failing_recipients=(),
        failure_reason: str = "Email delivery failed",
    ):
        """Fail every send, or only the sends addressed to ``failing_recipients``."""
        self.should_succeed = should_succeed
        self.failing_recipients = set(failing_recipients)
        self.failure_reason = failure_reason

    def send(self, to: str, subject: str, html: str, attachment: Attachment | None = None) -> str:
        if not self.should_succeed or to in self.failing_recipients:
            raise EmailDeliveryError(f"{self.failure_reason}: {to}")

        message_id = f"email-{uuid4().hex[:12]}"
        with self._lock:
            self.sent_emails.append(
                {
                    "message_id": message_id,
                    "to": to,
                    "subject": subject,
                    "html": html,
                    "attachment": attachment,
                }
            )
        return message_id

    def sent_to(self, address: str) -> list[dict]:
        return [email for email in self.sent_emails if email["to"] == address]

    def reset(self):
        with self._lock:
            self.sent_emails.clear()
        self.should_succeed = True
        self.failing_recipients = set()
        self.failure_reason = "Email delivery failed"
