"""Shared BDD fixtures and step definitions for back-office orders."""

import pytest
from backoffice.exceptions import InvalidTransitionError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def context():
    """What the steps of one scenario share: variants by SKU, the order, the last error."""
    return {"variants": {}, "order_id": None, "result": None, "error": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('variant "{sku}" costs {price:f} with {stock:d} in stock'))
def _(shop, make_variant, context, sku, price, stock):
    context["variants"][sku] = make_variant(shop.workspace_id, sku, price, stock)


@given(parsers.cfparse('the customer has placed a cash order for {quantity:d} of "{sku}"'))
def _(place_order, context, quantity, sku):
    context["order_id"] = place_order([(context["variants"][sku], quantity)]).order_id


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('variant "{sku}" has {stock:d} in stock'))
def _(stock_of, context, sku, stock):
    assert stock_of(context["variants"][sku]) == stock


@then(parsers.cfparse('the order is "{status}"'))
def _(load_order, context, status):
    assert load_order(context["order_id"]).status == status


@then("the change is refused")
def _(context):
    assert isinstance(context["error"], InvalidTransitionError)
