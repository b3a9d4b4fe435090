import pytest
from backoffice.exceptions import InsufficientStockError, VariantNotFoundError
from backoffice.stock.ledger import StockLine, adjust_stock, decrement_many, increment_many


class TestDecrementMany:
    def test_takes_stock_for_every_line(self, shop, stock_of):
        decrement_many([StockLine(shop.v.id, 2), StockLine(shop.w.id, 4)])

        assert stock_of(shop.v) == 3
        assert stock_of(shop.w) == 6

    def test_all_or_nothing(self, shop, stock_of):
        with pytest.raises(InsufficientStockError) as exc:
            decrement_many([StockLine(shop.w.id, 1), StockLine(shop.v.id, 9)])

        assert [item.sku for item in exc.value.items] == ["V"]
        assert stock_of(shop.w) == 10
        assert stock_of(shop.v) == 5

    def test_lines_for_the_same_variant_are_summed(self, shop, stock_of):
        decrement_many([StockLine(shop.v.id, 2), StockLine(shop.v.id, 2)])
        assert stock_of(shop.v) == 1

    def test_unknown_variant(self, shop):
        with pytest.raises(VariantNotFoundError):
            decrement_many([StockLine("missing", 1)])


def test_increment_many_returns_stock(shop, stock_of):
    increment_many([StockLine(shop.v.id, 3)])
    assert stock_of(shop.v) == 8


def test_adjust_stock_refuses_to_overdraw(shop, stock_of):
    with pytest.raises(InsufficientStockError):
        adjust_stock(shop.v.id, -6)
    assert stock_of(shop.v) == 5
