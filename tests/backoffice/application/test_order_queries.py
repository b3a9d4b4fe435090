import csv
import io
from datetime import UTC, datetime, timedelta

import pytest
from backoffice.customer.user import User
from backoffice.exceptions import PermissionDeniedError, ValidationError
from backoffice.exports.orders import CSV_COLUMNS, export_orders_csv, render_invoice_pdf
from backoffice.order.order import OrderStatus
from backoffice.order.queries import (
    OrderFilter,
    get_order,
    get_order_history,
    list_orders,
    orders_by_status,
    orders_by_user,
    orders_placed_between,
    search_orders,
)
from backoffice.order.status import update_status
from backoffice.workspace.workspace import MemberRole, WorkspaceMember
from protean import current_domain


@pytest.fixture()
def second_customer_id(shop):
    user = User.register(name="Grace", email="grace@hopper.test")
    current_domain.repository_for(User).add(user)
    current_domain.repository_for(WorkspaceMember).add(
        WorkspaceMember.create(shop.workspace_id, user.id, MemberRole.CUSTOMER)
    )
    return str(user.id)


@pytest.fixture()
def orders(shop, place_order, second_customer_id):
    """Three orders: two by the shop customer, one by a second customer (placed last)."""
    first = place_order([(shop.v, 1)], notes="Leave with neighbour").order_id
    second = place_order([(shop.w, 2)]).order_id
    update_status(second, OrderStatus.PROCESSING, shop.staff_id)
    third = place_order([(shop.w, 1)], user_id=second_customer_id, acting_user_id=shop.staff_id).order_id
    return [first, second, third]


def _ids(found):
    return [str(order.id) for order in found]


class TestSingleOrder:
    def test_customer_sees_own_order(self, shop, orders):
        assert str(get_order(orders[0], shop.customer_id).id) == orders[0]

    def test_customer_cannot_see_another_customers_order(self, shop, orders):
        with pytest.raises(PermissionDeniedError):
            get_order(orders[2], shop.customer_id)

    def test_outsider_sees_nothing(self, shop, orders):
        with pytest.raises(PermissionDeniedError):
            get_order(orders[0], shop.outsider_id)

    def test_history_oldest_first(self, shop, orders):
        history = get_order_history(orders[1], shop.manager_id)
        assert [entry.status for entry in history] == ["PENDING", "PROCESSING"]


class TestListOrders:
    def test_newest_first(self, shop, orders):
        assert _ids(list_orders(shop.workspace_id, shop.manager_id)) == list(reversed(orders))

    def test_customers_only_see_their_own(self, shop, orders):
        assert set(_ids(list_orders(shop.workspace_id, shop.customer_id))) == {orders[0], orders[1]}

    def test_customer_cannot_widen_the_user_filter(self, shop, orders, second_customer_id):
        found = list_orders(shop.workspace_id, shop.customer_id, OrderFilter(user_id=second_customer_id))
        assert set(_ids(found)) == {orders[0], orders[1]}

    def test_by_status(self, shop, orders):
        assert _ids(orders_by_status(shop.workspace_id, "processing", shop.manager_id)) == [orders[1]]

    def test_by_user(self, shop, orders, second_customer_id):
        assert _ids(orders_by_user(shop.workspace_id, second_customer_id, shop.manager_id)) == [orders[2]]

    def test_placed_between(self, shop, orders):
        now = datetime.now(UTC)
        hour = timedelta(hours=1)
        found = orders_placed_between(shop.workspace_id, now - hour, now + hour, shop.admin_id)
        assert len(found) == 3
        assert orders_placed_between(
            shop.workspace_id, now - timedelta(days=2), now - timedelta(days=1), shop.admin_id
        ) == []

    def test_inverted_range(self, shop, orders):
        now = datetime.now(UTC)
        with pytest.raises(ValidationError):
            orders_placed_between(shop.workspace_id, now, now - timedelta(days=1), shop.admin_id)

    def test_paging(self, shop, orders):
        page = list_orders(shop.workspace_id, shop.manager_id, limit=2, offset=1)
        assert _ids(page) == [orders[1], orders[0]]

    def test_bad_paging(self, shop, orders):
        with pytest.raises(ValidationError):
            list_orders(shop.workspace_id, shop.manager_id, limit=0)

    def test_non_member_workspace(self, shop, orders):
        with pytest.raises(PermissionDeniedError):
            list_orders(shop.other_workspace_id, shop.manager_id)


class TestSearch:
    def test_by_notes_fragment(self, shop, orders):
        assert _ids(search_orders(shop.workspace_id, "NEIGHBOUR", shop.manager_id)) == [orders[0]]

    def test_by_email_fragment(self, shop, orders):
        assert _ids(search_orders(shop.workspace_id, "hopper", shop.manager_id)) == [orders[2]]

    def test_by_exact_id(self, shop, orders):
        assert _ids(search_orders(shop.workspace_id, orders[1], shop.manager_id)) == [orders[1]]

    def test_search_respects_customer_scope(self, shop, orders):
        assert search_orders(shop.workspace_id, "hopper", shop.customer_id) == []


class TestExports:
    def test_csv_rows(self, shop, orders):
        content = export_orders_csv(shop.workspace_id, shop.manager_id).decode("utf-8")
        rows = list(csv.DictReader(io.StringIO(content)))

        assert list(rows[0].keys()) == CSV_COLUMNS
        assert [row["id"] for row in rows] == list(reversed(orders))
        first = next(row for row in rows if row["id"] == orders[0])
        assert first["user_email"] == "customer@acme.test"
        assert first["total_amount"] == "10.00"
        assert first["status"] == "PENDING"
        assert first["item_count"] == "1"

    def test_csv_with_status_filter(self, shop, orders):
        content = export_orders_csv(shop.workspace_id, shop.admin_id, OrderFilter(status="PROCESSING"))
        assert len(content.decode("utf-8").strip().splitlines()) == 2

    def test_staff_cannot_export(self, shop, orders):
        with pytest.raises(PermissionDeniedError):
            export_orders_csv(shop.workspace_id, shop.staff_id)

    def test_invoice_pdf(self, shop, orders):
        assert render_invoice_pdf(orders[0], shop.customer_id).startswith(b"%PDF")

    def test_invoice_of_someone_else(self, shop, orders):
        with pytest.raises(PermissionDeniedError):
            render_invoice_pdf(orders[2], shop.customer_id)
