import json

import pytest
from backoffice.catalogue.variant import ProductVariant
from backoffice.customer.user import User
from backoffice.exceptions import InsufficientStockError, PermissionDeniedError
from backoffice.order.cancellation import cancel_order
from backoffice.order.duplication import clone_order, reorder
from backoffice.order.order import OrderStatus, PaymentMethod
from backoffice.order.status import update_status
from backoffice.payment import dispatcher
from backoffice.payment.gateway import get_gateway
from backoffice.payment.gateway.fake_adapter import TEST_SIGNATURE
from backoffice.workspace.workspace import MemberRole, WorkspaceMember
from protean import current_domain


@pytest.fixture()
def other_customer_id(shop):
    user = User.register(name="Second", email="second@acme.test")
    current_domain.repository_for(User).add(user)
    current_domain.repository_for(WorkspaceMember).add(
        WorkspaceMember.create(shop.workspace_id, user.id, MemberRole.CUSTOMER)
    )
    return str(user.id)


class TestClone:
    def test_copies_items_for_the_original_customer(self, shop, place_order, load_order, stock_of):
        original_id = place_order([(shop.v, 2), (shop.w, 1)], notes="Gift wrap").order_id

        summary = clone_order(original_id, shop.manager_id)

        clone = load_order(summary.order_id)
        assert summary.order_id != original_id
        assert clone.user_id == shop.customer_id
        assert clone.status == "PENDING"
        assert clone.notes == "Gift wrap"
        assert clone.shipping_address_id == shop.address_id
        assert sorted((i.variant_id, i.quantity) for i in clone.items) == sorted(
            [(shop.v.id, 2), (shop.w.id, 1)]
        )
        assert clone.history[0].note == f"Cloned from order {original_id}"
        assert stock_of(shop.v) == 1

    def test_reprices_at_current_prices(self, shop, place_order):
        original_id = place_order([(shop.v, 1)]).order_id
        variants = current_domain.repository_for(ProductVariant)
        variant = variants.get(shop.v.id)
        variant.price = 12.0
        variants.add(variant)

        assert float(clone_order(original_id, shop.manager_id).total_amount) == 12.0

    def test_rechecks_stock(self, shop, place_order):
        original_id = place_order([(shop.v, 3)]).order_id
        with pytest.raises(InsufficientStockError):
            clone_order(original_id, shop.manager_id)

    def test_cancelled_orders_can_be_cloned(self, shop, place_order):
        original_id = place_order([(shop.v, 3)]).order_id
        cancel_order(original_id, shop.admin_id)

        assert clone_order(original_id, shop.manager_id).item_count == 1

    def test_paid_online_order_clone_takes_stock(self, shop, order_request, load_order, stock_of):
        checkout = dispatcher.place_order(
            order_request([(shop.v, 2)], payment_method=PaymentMethod.ONLINE), shop.customer_id
        )
        payload = json.dumps(
            {
                "type": "checkout.session.completed",
                "data": {"object": {"id": checkout.session_id, "metadata": get_gateway().last_session_metadata}},
            }
        )
        original_id = dispatcher.handle_webhook(payload, TEST_SIGNATURE).order_id
        assert stock_of(shop.v) == 3

        clone = load_order(clone_order(original_id, shop.manager_id).order_id)

        assert clone.status == "PROCESSING"
        assert clone.payment_method == PaymentMethod.ONLINE.value
        assert clone.stock_committed is True
        assert stock_of(shop.v) == 1

    def test_unpaid_online_order_clone_stays_pending(self, shop, place_order, load_order, stock_of):
        original_id = place_order([(shop.v, 2)], payment_method=PaymentMethod.ONLINE).order_id

        clone = load_order(clone_order(original_id, shop.manager_id).order_id)

        assert clone.status == "PENDING"
        assert clone.stock_committed is False
        assert stock_of(shop.v) == 5

    def test_delivered_order_clone_is_processing(self, shop, place_order, load_order, stock_of):
        original_id = place_order(
            [(shop.v, 1)], payment_method=PaymentMethod.ONLINE, status=OrderStatus.PROCESSING
        ).order_id
        update_status(original_id, OrderStatus.DELIVERED, shop.staff_id)

        clone = load_order(clone_order(original_id, shop.manager_id).order_id)

        assert clone.status == "PROCESSING"
        assert stock_of(shop.v) == 3


class TestReorder:
    def test_customer_reorders_their_own_order(self, shop, place_order, load_order):
        original_id = place_order([(shop.w, 2)]).order_id

        order = load_order(reorder(original_id, shop.customer_id).order_id)

        assert order.user_id == shop.customer_id
        assert order.history[0].note == f"Reordered from order {original_id}"

    def test_customer_cannot_reorder_someone_elses_order(self, shop, place_order, other_customer_id):
        original_id = place_order([(shop.w, 2)]).order_id
        with pytest.raises(PermissionDeniedError):
            reorder(original_id, other_customer_id)

    def test_staff_reorder_is_placed_for_themselves(self, shop, place_order, load_order):
        original_id = place_order([(shop.w, 2)]).order_id

        order = load_order(reorder(original_id, shop.staff_id).order_id)

        assert order.user_id == shop.staff_id

    def test_outsider_cannot_reorder(self, shop, place_order):
        original_id = place_order([(shop.w, 2)]).order_id
        with pytest.raises(PermissionDeniedError):
            reorder(original_id, shop.outsider_id)
