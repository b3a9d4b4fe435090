"""Configurable fake payment gateway for development and testing.

Sessions are given predictable ids and a local redirect URL. Webhooks are
accepted when signed with ``test-signature``.
"""

from uuid import uuid4

from backoffice.exceptions import PaymentGatewayError
from backoffice.payment.gateway.port import CheckoutLine, PaymentGateway, PaymentSession

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_payment_session(
        self,
        line_items: list[CheckoutLine],
        metadata: dict[str, str],
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSession:
        self.calls.append(
            {
                "method": "create_payment_session",
                "line_items": list(line_items),
                "metadata": dict(metadata),
                "currency": currency,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        session_id = f"cs_test_{uuid4().hex[:16]}"
        return PaymentSession(session_id=session_id, redirect_url=f"https://checkout.test/pay/{session_id}")

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        return signature == TEST_SIGNATURE

    @property
    def last_session_metadata(self) -> dict | None:
        sessions = [call for call in self.calls if call["method"] == "create_payment_session"]
        return sessions[-1]["metadata"] if sessions else None
