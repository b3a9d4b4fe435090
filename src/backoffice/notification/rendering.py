"""Order documents: email subject/HTML and the PDF invoice.

Rendering is pure: it reads the order, its customer and its workspace and
returns bytes and strings. The default renderer can be swapped with
:func:`set_renderer`.
"""

from dataclasses import dataclass
from enum import Enum
from html import escape

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from backoffice.pricing.engine import round_money, to_decimal


class OrderEventKind(Enum):
    PLACED = "placed"
    CANCELLED = "cancelled"
    NOTICE = "notice"


@dataclass(frozen=True)
class RenderedOrder:
    subject: str
    html: str
    pdf_bytes: bytes | None = None


def _latin1(text) -> str:
    # Core PDF fonts only cover latin-1
    return str(text if text is not None else "").encode("latin-1", "replace").decode("latin-1")


def _money(amount) -> str:
    return f"{round_money(amount):.2f}"


_SUBJECTS = {
    OrderEventKind.PLACED: "Order #{order_id} placed",
    OrderEventKind.CANCELLED: "Order #{order_id} cancelled",
    OrderEventKind.NOTICE: "Order {order_id} Update",
}

_LEADS = {
    OrderEventKind.PLACED: "Thank you, {name}. Order #{order_id} has been placed with {workspace}.",
    OrderEventKind.CANCELLED: "Order #{order_id} placed with {workspace} has been cancelled.",
    OrderEventKind.NOTICE: "There is an update on order #{order_id} from {workspace}.",
}


class OrderRenderer:
    def render(self, order, user, workspace, kind=OrderEventKind.PLACED, message=None) -> RenderedOrder:
        """Build the email for ``kind``. Placement emails carry the invoice PDF."""
        kind = OrderEventKind(kind)
        context = {
            "order_id": str(order.id),
            "name": escape(user.name or user.email),
            "workspace": escape(workspace.name),
        }
        rows = "".join(
            f"<tr><td>{escape(item.title or item.sku or str(item.variant_id))}</td>"
            f"<td>{item.quantity}</td><td>{_money(item.price)}</td>"
            f"<td>{_money(to_decimal(item.price) * item.quantity)}</td></tr>"
            for item in order.items
        )
        notice = f"<p>{escape(message)}</p>" if message else ""
        html = (
            f"<h2>{_LEADS[kind].format(**context)}</h2>"
            f"{notice}"
            f"<p>Status: <strong>{escape(order.status)}</strong> "
            f"&middot; Payment: {escape(order.payment_method)}</p>"
            "<table><thead><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr></thead>"
            f"<tbody>{rows}</tbody></table>"
            f"<p>Order total: <strong>{_money(order.total_amount)}</strong></p>"
        )
        pdf_bytes = self.invoice_pdf(order, user, workspace) if kind is OrderEventKind.PLACED else None
        return RenderedOrder(subject=_SUBJECTS[kind].format(**context), html=html, pdf_bytes=pdf_bytes)

    def invoice_pdf(self, order, user, workspace) -> bytes:
        pdf = FPDF()
        pdf.set_title(_latin1(f"Invoice {order.id}"))
        pdf.add_page()

        pdf.set_font("Helvetica", "B", 18)
        pdf.cell(0, 10, _latin1(workspace.name), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 11)
        pdf.cell(0, 7, _latin1(f"Invoice for order {order.id}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        placed = order.placed_at.strftime("%Y-%m-%d %H:%M UTC") if order.placed_at else "-"
        pdf.cell(0, 7, _latin1(f"Placed: {placed}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.cell(0, 7, _latin1(f"Customer: {user.name} <{user.email}>"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.cell(
            0,
            7,
            _latin1(f"Status: {order.status}   Payment: {order.payment_method}"),
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )
        pdf.ln(4)

        widths = (90, 25, 35, 35)
        pdf.set_font("Helvetica", "B", 11)
        for width, heading in zip(widths, ("Item", "Qty", "Unit price", "Line total"), strict=True):
            pdf.cell(width, 8, heading, border=1)
        pdf.ln()

        pdf.set_font("Helvetica", "", 10)
        for item in order.items:
            cells = (
                item.title or item.sku or str(item.variant_id),
                str(item.quantity),
                _money(item.price),
                _money(to_decimal(item.price) * item.quantity),
            )
            for width, text in zip(widths, cells, strict=True):
                pdf.cell(width, 8, _latin1(text)[:48], border=1)
            pdf.ln()

        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(sum(widths[:3]), 8, "Total", border=1)
        pdf.cell(widths[3], 8, _money(order.total_amount), border=1)
        pdf.ln()

        return bytes(pdf.output())


_renderer: OrderRenderer | None = None


def get_renderer() -> OrderRenderer:
    global _renderer
    if _renderer is None:
        _renderer = OrderRenderer()
    return _renderer


def set_renderer(renderer) -> None:
    global _renderer
    _renderer = renderer


def reset_renderer() -> None:
    global _renderer
    _renderer = None
