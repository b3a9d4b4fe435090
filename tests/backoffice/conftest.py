from types import SimpleNamespace

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def backoffice_bed():
    from backoffice.domain import backoffice

    bed = DomainFixture(backoffice)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(backoffice_bed):
    with backoffice_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Clear stores and adapter doubles after every test"""
    yield

    from backoffice.notification.channel import reset_sender
    from backoffice.notification.rendering import reset_renderer
    from backoffice.payment.gateway import reset_gateway
    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()
    current_domain.event_store.store._data_reset()

    reset_sender()
    reset_gateway()
    reset_renderer()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------
def _add(aggregate):
    from protean import current_domain

    current_domain.repository_for(type(aggregate)).add(aggregate)
    return aggregate


@pytest.fixture()
def make_variant():
    from backoffice.catalogue.variant import ProductVariant

    def _make(workspace_id, sku, price, stock, is_available=True):
        return _add(
            ProductVariant(
                workspace_id=workspace_id,
                product_id=f"prod-{sku}",
                sku=sku,
                title=f"Item {sku}",
                price=price,
                stock=stock,
                is_available=is_available,
            )
        )

    return _make


@pytest.fixture()
def shop(make_variant):
    """One workspace with a member of every role, a customer address and two variants.

    ``V`` costs 10.00 with 5 in stock, ``W`` costs 2.50 with 10 in stock. A
    second workspace sells ``X``.
    """
    from backoffice.customer.address import Address
    from backoffice.customer.user import User
    from backoffice.workspace.workspace import MemberRole, Workspace, WorkspaceMember

    workspace = _add(Workspace.create(name="Acme Supplies", contact_email="hello@acme.test"))
    other_workspace = _add(Workspace.create(name="Other Goods"))

    users = {}
    for role in MemberRole:
        name = role.value.lower()
        user = _add(User.register(name=name.title(), email=f"{name}@acme.test"))
        _add(WorkspaceMember.create(workspace.id, user.id, role))
        users[name] = user
    outsider = _add(User.register(name="Outsider", email="outsider@elsewhere.test"))
    courier = _add(User.register(name="Courier", email="courier@acme.test"))

    address = _add(
        Address(
            user_id=users["customer"].id,
            street="1 Main St",
            city="Springfield",
            state="IL",
            postal_code="62701",
            country="US",
        )
    )

    return SimpleNamespace(
        workspace=workspace,
        workspace_id=str(workspace.id),
        other_workspace_id=str(other_workspace.id),
        admin_id=str(users["admin"].id),
        manager_id=str(users["manager"].id),
        staff_id=str(users["staff"].id),
        customer_id=str(users["customer"].id),
        outsider_id=str(outsider.id),
        courier_id=str(courier.id),
        address_id=str(address.id),
        v=make_variant(workspace.id, "V", 10.00, 5),
        w=make_variant(workspace.id, "W", 2.50, 10),
        x=make_variant(other_workspace.id, "X", 7.00, 3),
    )


@pytest.fixture()
def order_request(shop):
    """Build an OrderRequest for the shop's customer. ``items`` maps variant to quantity."""
    from backoffice.order.builder import OrderRequest, RequestedItem

    def _build(items, **overrides):
        fields = {
            "user_id": shop.customer_id,
            "items": [RequestedItem(str(variant.id), quantity) for variant, quantity in items],
            "shipping_address_id": shop.address_id,
        }
        fields.update(overrides)
        return OrderRequest(**fields)

    return _build


@pytest.fixture()
def place_order(shop, order_request):
    """Create an order through the builder as the shop's customer."""
    from backoffice.order.builder import create_order

    def _place(items, acting_user_id=None, **overrides):
        return create_order(order_request(items, **overrides), acting_user_id or shop.customer_id)

    return _place


@pytest.fixture()
def stock_of():
    from backoffice.catalogue.variant import ProductVariant
    from protean import current_domain

    def _stock(variant):
        return current_domain.repository_for(ProductVariant).get(variant.id).stock

    return _stock


@pytest.fixture()
def load_order():
    from backoffice.order.order import Order
    from protean import current_domain

    def _load(order_id):
        return current_domain.repository_for(Order).get(order_id)

    return _load


@pytest.fixture()
def sender():
    from backoffice.notification.channel import get_sender

    return get_sender()
