"""BDD tests for status changes and cancellation."""

from backoffice.exceptions import BackofficeError
from backoffice.order.cancellation import cancel_order
from backoffice.order.status import update_status
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("a manager cancels the order")
def _(shop, context):
    try:
        cancel_order(context["order_id"], shop.manager_id)
    except BackofficeError as exc:
        context["error"] = exc


@when(parsers.cfparse('staff moves the order to "{status}"'))
def _(shop, context, status):
    update_status(context["order_id"], status, shop.staff_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order history reads "{statuses}"'))
def _(load_order, context, statuses):
    history = load_order(context["order_id"]).sorted_history()
    assert ", ".join(entry.status for entry in history) == statuses
