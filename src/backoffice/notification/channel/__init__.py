"""Email sender registry.

The fake sender is used unless another one is installed with
:func:`set_sender` (an SMTP or provider adapter in production).
"""

from backoffice.notification.channel.email_port import EmailSender

_sender: EmailSender | None = None


def get_sender() -> EmailSender:
    global _sender
    if _sender is None:
        from backoffice.notification.channel.fake_email import FakeEmailSender

        _sender = FakeEmailSender()
    return _sender


def set_sender(sender: EmailSender) -> None:
    global _sender
    _sender = sender


def reset_sender() -> None:
    """Drop the installed sender (useful for testing)."""
    global _sender
    _sender = None
