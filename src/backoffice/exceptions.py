"""Error taxonomy shared by every back-office operation.

Each error carries the HTTP status the API layer answers with, so routes never
have to translate domain failures themselves.
"""

from dataclasses import dataclass


class BackofficeError(Exception):
    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "status_code": self.status_code, **self.details}


class ValidationError(BackofficeError):
    """Malformed or semantically invalid input."""

    status_code = 400


class UnauthorizedError(BackofficeError):
    """Missing or unknown acting user."""

    status_code = 401


class PermissionDeniedError(BackofficeError):
    """The acting user lacks the permission for this workspace action."""

    status_code = 403


class NotFoundError(BackofficeError):
    status_code = 404


class VariantNotFoundError(NotFoundError):
    def __init__(self, variant_ids):
        self.variant_ids = list(variant_ids)
        super().__init__(
            f"Unknown product variant(s): {', '.join(self.variant_ids)}",
            variant_ids=self.variant_ids,
        )


class CrossWorkspaceOrderError(ValidationError):
    """An order request mixes variants from more than one workspace."""


class InvalidAddressError(ValidationError):
    """An address id that does not exist, or an inline address that is incomplete."""


@dataclass(frozen=True)
class StockShortfall:
    variant_id: str
    sku: str
    requested: int
    available: int

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "sku": self.sku,
            "requested": self.requested,
            "available": self.available,
        }


class InsufficientStockError(BackofficeError):
    """One or more variants cannot cover the requested quantity.

    ``items`` lists every offending variant, not just the first one found.
    """

    status_code = 409

    def __init__(self, items: list[StockShortfall], message: str | None = None):
        self.items = list(items)
        skus = ", ".join(item.sku or item.variant_id for item in self.items)
        super().__init__(
            message or f"Insufficient stock for: {skus}",
            items=[item.to_dict() for item in self.items],
        )


class InvalidTransitionError(BackofficeError):
    """A status change the lifecycle does not allow, or a change to a closed order."""

    status_code = 409


class PaymentGatewayError(BackofficeError):
    status_code = 502


class TransactionFailedError(BackofficeError):
    """Any other failure inside a unit of work. Nothing was persisted."""

    status_code = 500


class ConcurrencyConflictError(TransactionFailedError):
    """Another writer changed the aggregate between load and commit."""

    status_code = 409
