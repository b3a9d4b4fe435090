"""Email channel port: abstract interface for outbound email."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


class EmailDeliveryError(Exception):
    """Raised by a sender when one message could not be delivered."""


class EmailSender(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, html: str, attachment: Attachment | None = None) -> str:
        """Deliver one message and return its provider message id.

        Raises:
            EmailDeliveryError: the message was not accepted.
        """
        ...
