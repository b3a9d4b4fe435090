import pytest
from backoffice.exceptions import (
    InvalidAddressError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backoffice.order.administration import assign_delivery_partner, delete_order, notify_order_status, update_order
from backoffice.order.cancellation import cancel_order
from backoffice.order.order import Order, OrderStatus
from backoffice.order.status import update_status
from backoffice.transaction import load


class TestUpdateOrder:
    def test_notes_and_payment_method(self, shop, place_order, load_order):
        order_id = place_order([(shop.v, 1)]).order_id

        result = update_order(order_id, shop.manager_id, notes="Ring twice", payment_method="ONLINE")

        assert result["updated"] == ["notes", "payment_method"]
        order = load_order(order_id)
        assert (order.notes, order.payment_method) == ("Ring twice", "ONLINE")

    def test_unknown_address(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        with pytest.raises(InvalidAddressError):
            update_order(order_id, shop.manager_id, shipping_address_id="nowhere")

    def test_notes_on_a_cancelled_order(self, shop, place_order, load_order):
        order_id = place_order([(shop.v, 1)]).order_id
        cancel_order(order_id, shop.admin_id)

        update_order(order_id, shop.manager_id, notes="Refunded")

        assert load_order(order_id).notes == "Refunded"

    def test_addresses_on_a_cancelled_order(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        cancel_order(order_id, shop.admin_id)

        with pytest.raises(InvalidTransitionError):
            update_order(order_id, shop.manager_id, shipping_address_id=shop.address_id)

    def test_customer_cannot_edit(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        with pytest.raises(PermissionDeniedError):
            update_order(order_id, shop.customer_id, notes="mine")


class TestAssignDeliveryPartner:
    def test_assigns_and_records_history(self, shop, place_order, load_order):
        order_id = place_order([(shop.v, 1)], status=OrderStatus.PROCESSING).order_id

        assign_delivery_partner(order_id, shop.courier_id, shop.manager_id)

        order = load_order(order_id)
        assert order.delivery_partner_id == shop.courier_id
        latest = order.sorted_history()[-1]
        assert latest.note == f"Assigned to delivery partner: {shop.courier_id}"
        assert latest.changed_by == shop.manager_id

    def test_unknown_partner(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        with pytest.raises(NotFoundError):
            assign_delivery_partner(order_id, "nobody", shop.manager_id)

    def test_delivered_order(self, shop, place_order):
        order_id = place_order([(shop.v, 1)], status=OrderStatus.PROCESSING).order_id
        update_status(order_id, OrderStatus.DELIVERED, shop.staff_id)

        with pytest.raises(InvalidTransitionError):
            assign_delivery_partner(order_id, shop.courier_id, shop.manager_id)

    def test_staff_cannot_assign(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        with pytest.raises(PermissionDeniedError):
            assign_delivery_partner(order_id, shop.courier_id, shop.staff_id)


class TestNotifyCustomer:
    def test_only_the_customer_is_emailed(self, shop, place_order, sender):
        order_id = place_order([(shop.v, 1)]).order_id
        sender.reset()

        result = notify_order_status(order_id, "Your parcel is on its way", shop.manager_id)

        assert result["sent"] == 1
        assert result["failed_recipients"] == []
        assert [email["to"] for email in sender.sent_emails] == ["customer@acme.test"]
        email = sender.sent_emails[0]
        assert email["subject"] == f"Order {order_id} Update"
        assert "Your parcel is on its way" in email["html"]

    def test_failed_send_is_reported(self, shop, place_order, sender):
        order_id = place_order([(shop.v, 1)]).order_id
        sender.configure(should_succeed=False)

        result = notify_order_status(order_id, "Delayed", shop.manager_id)

        assert result["sent"] == 0
        assert result["failed_recipients"] == ["customer@acme.test"]

    def test_blank_message(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        with pytest.raises(ValidationError):
            notify_order_status(order_id, "   ", shop.manager_id)


class TestDeleteOrder:
    def test_admin_deletes_and_stock_comes_back(self, shop, place_order, stock_of):
        order_id = place_order([(shop.v, 3)]).order_id

        delete_order(order_id, shop.admin_id)

        with pytest.raises(NotFoundError):
            load(Order, order_id)
        assert stock_of(shop.v) == 5

    def test_delivered_order_keeps_its_stock_sold(self, shop, place_order, stock_of):
        order_id = place_order([(shop.v, 3)], status=OrderStatus.PROCESSING).order_id
        update_status(order_id, OrderStatus.DELIVERED, shop.staff_id)

        delete_order(order_id, shop.admin_id)

        assert stock_of(shop.v) == 2

    def test_only_admins_delete(self, shop, place_order):
        order_id = place_order([(shop.v, 1)]).order_id
        with pytest.raises(PermissionDeniedError):
            delete_order(order_id, shop.manager_id)

    def test_unknown_order(self, shop):
        with pytest.raises(NotFoundError):
            delete_order("missing", shop.admin_id)
