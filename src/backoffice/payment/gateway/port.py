"""Payment gateway port (abstract interface).

The back-office only needs hosted checkout sessions and signed webhooks from
a gateway. Adapters translate these calls to a concrete provider.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutLine:
    name: str
    unit_amount: int  # minor units (cents)
    quantity: int


@dataclass(frozen=True)
class PaymentSession:
    session_id: str
    redirect_url: str


class PaymentGateway(ABC):
    @abstractmethod
    def create_payment_session(
        self,
        line_items: list[CheckoutLine],
        metadata: dict[str, str],
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSession:
        """Open a hosted checkout session.

        ``metadata`` is opaque to the gateway and handed back unchanged with the
        confirmed-payment webhook.

        Raises:
            PaymentGatewayError: the provider refused or could not be reached.
        """
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Check that a webhook body was signed by the provider."""
        ...
