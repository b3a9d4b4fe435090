"""Runs commands as single transactions and normalises what comes out of them.

Every state-changing operation goes through :func:`run_in_transaction`: the
command is processed synchronously inside its own unit of work, back-office
errors keep their type, and anything else is reported as a
:class:`TransactionFailedError` after the unit of work has rolled back.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.exceptions import ValidationError as DomainValidationError
from protean.utils.globals import current_domain

from backoffice.exceptions import (
    BackofficeError,
    ConcurrencyConflictError,
    NotFoundError,
    TransactionFailedError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def _first_message(messages) -> str:
    if isinstance(messages, dict):
        for field_name, errors in messages.items():
            error = errors[0] if isinstance(errors, list) and errors else errors
            return f"{field_name}: {error}"
    return str(messages)


def translate(exc: Exception) -> BackofficeError:
    """Map a Protean or unexpected exception to the back-office taxonomy."""
    if isinstance(exc, BackofficeError):
        return exc
    if isinstance(exc, DomainValidationError):
        return ValidationError(_first_message(exc.messages), errors=exc.messages)
    if isinstance(exc, ObjectNotFoundError):
        return NotFoundError(_first_message(exc.args[0] if exc.args else exc))
    if isinstance(exc, ExpectedVersionError):
        return ConcurrencyConflictError(f"Concurrent update detected: {exc}")
    return TransactionFailedError(f"Transaction failed: {exc.__class__.__name__}")


def run_in_transaction(command):
    """Process ``command`` in its own unit of work and return the handler's result."""
    try:
        return current_domain.process(command, asynchronous=False)
    except BackofficeError:
        raise
    except Exception as exc:
        error = translate(exc)
        if isinstance(error, TransactionFailedError):
            logger.error("transaction_failed", command=command.__class__.__name__, error=str(exc))
        raise error from exc


def load(aggregate_cls, identifier):
    """Fetch an aggregate by id, raising :class:`NotFoundError` when it is absent."""
    try:
        return current_domain.repository_for(aggregate_cls).get(identifier)
    except ObjectNotFoundError:
        raise NotFoundError(f"{aggregate_cls.__name__} {identifier} not found") from None


def retry_on_conflict(operation, *args, attempts: int = 3, **kwargs):
    """Re-run a whole operation when it loses a version race.

    Each attempt repeats every read, so stock is always checked against the
    latest committed value. Only :class:`ConcurrencyConflictError` is
    retried; the last one is re-raised.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation(*args, **kwargs)
        except ConcurrencyConflictError:
            if attempt == attempts:
                raise
            logger.warning("retrying_after_conflict", operation=operation.__name__, attempt=attempt)
