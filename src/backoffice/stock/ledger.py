"""Stock ledger: relative adjustments of variant stock.

Every function here runs inside the caller's unit of work. Nothing is
persisted unless the surrounding transaction commits, so a failure in any
later step rolls the stock movement back with it.
"""

from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from backoffice.catalogue.variant import ProductVariant
from backoffice.exceptions import InsufficientStockError, StockShortfall, VariantNotFoundError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    variant_id: str
    quantity: int


def _totals(lines: Iterable[StockLine]) -> "OrderedDict[str, int]":
    totals: OrderedDict[str, int] = OrderedDict()
    for line in lines:
        key = str(line.variant_id)
        totals[key] = totals.get(key, 0) + line.quantity
    return totals


def _load(variant_ids) -> dict:
    variants = current_domain.repository_for(ProductVariant).find_many(variant_ids)
    missing = [variant_id for variant_id in variant_ids if variant_id not in variants]
    if missing:
        raise VariantNotFoundError(missing)
    return variants


def adjust_stock(variant_id, delta: int) -> ProductVariant:
    """Apply ``delta`` to one variant's stock. Negative deltas may not overdraw."""
    repo = current_domain.repository_for(ProductVariant)
    variant = _load([str(variant_id)])[str(variant_id)]
    variant.adjust_stock(delta)
    repo.add(variant)
    logger.debug("stock_adjusted", variant_id=str(variant_id), delta=delta, stock=variant.stock)
    return variant


def shortfalls(lines: Iterable[StockLine], variants: dict) -> list[StockShortfall]:
    """Every variant whose sellable stock cannot cover the summed requested quantity."""
    result = []
    for variant_id, requested in _totals(lines).items():
        variant = variants[variant_id]
        if variant.sellable_stock < requested:
            result.append(
                StockShortfall(
                    variant_id=variant_id,
                    sku=variant.sku,
                    requested=requested,
                    available=variant.sellable_stock,
                )
            )
    return result


def decrement_many(lines: Iterable[StockLine]) -> list[ProductVariant]:
    """Take stock for all lines, or for none of them.

    Lines naming the same variant are summed first. All variants are checked
    before any is touched, and a single :class:`InsufficientStockError` lists
    every offender.
    """
    totals = _totals(lines)
    variants = _load(list(totals))

    missing_stock = shortfalls([StockLine(k, v) for k, v in totals.items()], variants)
    if missing_stock:
        raise InsufficientStockError(missing_stock)

    repo = current_domain.repository_for(ProductVariant)
    for variant_id, quantity in totals.items():
        variant = variants[variant_id]
        variant.adjust_stock(-quantity)
        repo.add(variant)

    logger.info("stock_decremented", lines=dict(totals))
    return list(variants.values())


def increment_many(lines: Iterable[StockLine]) -> list[ProductVariant]:
    """Return stock for all lines, e.g. when an order is cancelled."""
    totals = _totals(lines)
    variants = _load(list(totals))

    repo = current_domain.repository_for(ProductVariant)
    for variant_id, quantity in totals.items():
        variant = variants[variant_id]
        variant.adjust_stock(quantity)
        repo.add(variant)

    logger.info("stock_restored", lines=dict(totals))
    return list(variants.values())
