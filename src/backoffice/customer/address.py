"""Address aggregate.

Orders reference addresses by id. An order request may instead carry an
inline address, which is created inside the order's transaction.
"""

from dataclasses import dataclass

from protean.fields import Identifier, String

from backoffice.domain import backoffice


@backoffice.aggregate
class Address:
    user_id = Identifier()
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)

    def one_line(self) -> str:
        parts = [self.street, self.city, self.state, self.postal_code, self.country]
        return ", ".join(part for part in parts if part)


@dataclass(frozen=True)
class AddressInput:
    """Inline address supplied with an order request."""

    street: str
    city: str
    postal_code: str
    country: str
    state: str | None = None

    def to_dict(self) -> dict:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }
