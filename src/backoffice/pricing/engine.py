"""Pricing engine.

Line totals and order totals are computed in :class:`~decimal.Decimal` from
the server-side variant price. Client-supplied prices are never consulted.
Amounts are rounded half-up to cents once, on the final total.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert a stored amount (float, int, str) without binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    variant_id: str
    sku: str
    title: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricedOrder:
    lines: tuple[PricedLine, ...]
    total: Decimal


def price_line(variant, quantity: int) -> PricedLine:
    return PricedLine(
        variant_id=str(variant.id),
        sku=variant.sku,
        title=variant.title or variant.sku,
        quantity=quantity,
        unit_price=to_decimal(variant.price),
    )


def price_items(items: Iterable, variants: dict) -> PricedOrder:
    """Price ``items`` (anything with ``variant_id`` and ``quantity``) against ``variants``.

    ``variants`` maps variant id to a loaded ProductVariant. Every item must
    have a matching entry.
    """
    lines = tuple(price_line(variants[str(item.variant_id)], item.quantity) for item in items)
    total = round_money(sum((line.line_total for line in lines), Decimal("0")))
    return PricedOrder(lines=lines, total=total)


def apply_delta(total, delta) -> Decimal:
    """Shift a stored total by an exact amount, rounding only the result."""
    return round_money(to_decimal(total) + to_decimal(delta))


def to_minor_units(amount) -> int:
    """Cents for payment gateways that take integer amounts."""
    return int(round_money(amount) * 100)
