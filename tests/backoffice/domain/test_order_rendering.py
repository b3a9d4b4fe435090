from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from backoffice.notification.rendering import OrderEventKind, OrderRenderer


@pytest.fixture()
def documents():
    order = SimpleNamespace(
        id="ord-1",
        status="PENDING",
        payment_method="CASH",
        total_amount=32.5,
        placed_at=datetime(2024, 5, 1, 12, 30, tzinfo=UTC),
        items=[
            SimpleNamespace(variant_id="v1", sku="V1", title="Widget <large>", quantity=3, price=10.0),
            SimpleNamespace(variant_id="v2", sku="V2", title="Café crème", quantity=1, price=2.5),
        ],
    )
    user = SimpleNamespace(name="Ada", email="ada@example.test")
    workspace = SimpleNamespace(name="Acme Supplies")
    return order, user, workspace


class TestRender:
    def test_placed_email_carries_invoice(self, documents):
        rendered = OrderRenderer().render(*documents, kind=OrderEventKind.PLACED)

        assert rendered.subject == "Order #ord-1 placed"
        assert rendered.pdf_bytes.startswith(b"%PDF")
        assert "32.50" in rendered.html
        assert "30.00" in rendered.html

    def test_cancelled_email_has_no_attachment(self, documents):
        rendered = OrderRenderer().render(*documents, kind=OrderEventKind.CANCELLED)

        assert rendered.subject == "Order #ord-1 cancelled"
        assert rendered.pdf_bytes is None

    def test_notice_includes_message(self, documents):
        rendered = OrderRenderer().render(*documents, kind=OrderEventKind.NOTICE, message="Out for delivery")

        assert rendered.subject == "Order ord-1 Update"
        assert "Out for delivery" in rendered.html

    def test_html_is_escaped(self, documents):
        rendered = OrderRenderer().render(*documents, kind="cancelled")
        assert "Widget &lt;large&gt;" in rendered.html


def test_invoice_pdf_handles_non_latin_text(documents):
    order, user, workspace = documents
    user.name = "Zoë 山田"
    assert OrderRenderer().invoice_pdf(order, user, workspace).startswith(b"%PDF")
