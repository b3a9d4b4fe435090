"""ProductVariant aggregate: the sellable unit that carries price and stock."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, Integer, String

from backoffice.domain import backoffice
from backoffice.exceptions import InsufficientStockError, StockShortfall


@backoffice.aggregate
class ProductVariant:
    """A concrete, stock-keeping variant of a product.

    ``stock`` only ever moves through :meth:`adjust_stock`, which refuses any
    change that would take it below zero.
    """

    workspace_id = Identifier(required=True)
    product_id = Identifier()
    sku = String(required=True, max_length=50)
    title = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0)
    is_available = Boolean(default=True)

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

    @property
    def sellable_stock(self) -> int:
        return self.stock if self.is_available else 0

    def adjust_stock(self, delta: int):
        if self.stock + delta < 0:
            raise InsufficientStockError(
                [
                    StockShortfall(
                        variant_id=str(self.id),
                        sku=self.sku,
                        requested=-delta,
                        available=self.stock,
                    )
                ]
            )
        self.stock += delta


@backoffice.repository(part_of=ProductVariant)
class ProductVariantRepository:
    def find_many(self, variant_ids) -> dict:
        """Load every listed variant in one lookup, keyed by id. Missing ids are absent."""
        ids = list({str(variant_id) for variant_id in variant_ids})
        if not ids:
            return {}
        found = self._dao.query.filter(id__in=ids).limit(len(ids)).all().items
        return {str(variant.id): variant for variant in found}
