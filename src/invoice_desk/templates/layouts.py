"""Pure-Python invoice layouts using reportlab.

Two drawing engines back every registered template:

* ``render_flowable`` lays the invoice out with platypus flowables and
  returns the PDF bytes directly.
* ``InvoiceCanvas`` draws onto a low-level canvas and hands back a builder;
  callers must ``finalize()`` it to obtain the bytes.

Both consume the same :class:`InvoiceContent`, so a template is a style plus
a choice of engine.
"""

import io
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, A5, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch, mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from invoice_desk.formatting import (
    amount_in_words,
    derive_totals,
    format_amount,
    format_invoice_date,
)
from invoice_desk.models import (
    BankAccount,
    Client,
    Company,
    Counterparty,
    ShippingAddress,
    Transaction,
    TransactionType,
)

# The built-in Helvetica has no rupee glyph
CURRENCY = "Rs."

PAGE_A4 = A4
PAGE_A5 = A5
PAGE_A5_LANDSCAPE = landscape(A5)
PAGE_THERMAL = (80 * mm, 297 * mm)


@dataclass(frozen=True)
class LayoutStyle:
    """Visual parameters that distinguish one template from another."""

    name: str
    page_size: tuple[float, float] = PAGE_A4
    accent: str = "#1d4ed8"
    font_size: float = 9
    banded_rows: bool = False
    show_codes: bool = True
    narrow: bool = False

    @property
    def margin(self) -> float:
        if self.narrow:
            return 4 * mm
        return 0.5 * inch if self.page_size[0] >= A4[0] else 0.3 * inch


@dataclass(frozen=True)
class InvoiceContent:
    """Everything printed on an invoice, already formatted as text."""

    title: str
    number: str
    issued_on: str
    due_on: str
    issuer_name: str
    issuer_lines: tuple[str, ...]
    cobrand: str | None
    bill_to: tuple[str, ...]
    ship_to: tuple[str, ...]
    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    totals: tuple[tuple[str, str], ...]
    amount_words: str
    bank_lines: tuple[str, ...]
    notes: str | None
    payment_method: str | None


def _quantity(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def _join(*parts: str | None, sep: str = ", ") -> str | None:
    joined = sep.join(p for p in parts if p)
    return joined or None


def _labelled(label: str, value: str | None) -> str | None:
    return f"{label}: {value}" if value else None


def build_content(
    transaction: Transaction,
    company: Company | None,
    counterparty: Counterparty | None,
    item_names: Mapping[str, str] | None = None,
    shipping_address: ShippingAddress | None = None,
    bank: BankAccount | None = None,
    owner_client: Client | None = None,
    show_codes: bool = True,
    narrow: bool = False,
) -> InvoiceContent:
    """Assemble the printable text of an invoice from resolved records."""
    totals = derive_totals(transaction, company, counterparty, item_names, shipping_address)

    if transaction.type is TransactionType.PROFORMA:
        title = "PROFORMA INVOICE"
    elif totals.gst_applicable:
        title = "TAX INVOICE"
    else:
        title = "INVOICE"

    issuer_lines: tuple[str, ...] = ()
    if company is not None:
        issuer_lines = tuple(
            line
            for line in (
                _join(company.address, company.city, company.state, company.pincode),
                _labelled("GSTIN", company.gstin),
                _labelled("PAN", company.pan),
                _labelled("Phone", company.phone),
                _labelled("Email", company.email),
            )
            if line
        )

    cobrand = None
    if owner_client is not None and (owner_client.contact_name or owner_client.company_name):
        cobrand = f"Account managed by {owner_client.contact_name or owner_client.company_name}"

    if counterparty is not None:
        bill_to = tuple(
            line
            for line in (
                counterparty.display_name,
                counterparty.address,
                _join(counterparty.city, counterparty.state, counterparty.pincode),
                _labelled("GSTIN", counterparty.gstin),
                _labelled("Phone", counterparty.phone),
                _labelled("Email", counterparty.email),
            )
            if line
        )
    else:
        bill_to = ("Customer",)

    ship_to: tuple[str, ...] = ()
    if shipping_address is not None and shipping_address.is_usable:
        ship_to = tuple(
            line
            for line in (
                shipping_address.label,
                shipping_address.address,
                _join(shipping_address.city, shipping_address.state, shipping_address.pincode),
                _labelled("Phone", shipping_address.contact_number),
            )
            if line
        )

    show_tax = totals.gst_applicable
    if narrow:
        columns: tuple[str, ...] = ("Item", "Qty", "Amount")
    else:
        columns = ("#", "Item")
        if show_codes:
            columns += ("HSN/SAC",)
        columns += ("Qty", "Rate", "Amount")
        if show_tax:
            columns += ("Tax %",)

    rows = []
    for index, line in enumerate(totals.lines, start=1):
        qty = _quantity(line.quantity) + (f" {line.unit}" if line.unit else "")
        if narrow:
            rows.append((line.name or "Item", qty, format_amount(line.amount)))
            continue
        row: tuple[str, ...] = (str(index), line.name or "Item")
        if show_codes:
            row += (line.code or "-",)
        row += (qty, format_amount(line.unit_price), format_amount(line.amount))
        if show_tax:
            row += (_quantity(line.tax_rate) if line.tax_rate else "-",)
        rows.append(row)

    total_rows = [("Subtotal", format_amount(totals.subtotal))]
    if totals.gst_applicable:
        if totals.interstate:
            total_rows.append(("IGST", format_amount(totals.igst)))
        else:
            total_rows.append(("CGST", format_amount(totals.cgst)))
            total_rows.append(("SGST", format_amount(totals.sgst)))
    total_rows.append((f"Total ({CURRENCY})", format_amount(totals.total)))

    bank_lines: tuple[str, ...] = ()
    if bank is not None:
        bank_lines = tuple(
            line
            for line in (
                _labelled("Bank", bank.bank_name),
                _labelled("A/c No", bank.account_number),
                _labelled("IFSC", bank.ifsc_code),
                _labelled("Branch", _join(bank.branch_address, bank.city)),
                _labelled("UPI", bank.upi_id),
            )
            if line
        )

    return InvoiceContent(
        title=title,
        number=transaction.document_number or transaction.id[-6:].upper(),
        issued_on=format_invoice_date(transaction.date),
        due_on=format_invoice_date(transaction.due_date),
        issuer_name=company.display_name if company else "Your Company",
        issuer_lines=issuer_lines,
        cobrand=cobrand,
        bill_to=bill_to,
        ship_to=ship_to,
        columns=columns,
        rows=tuple(rows),
        totals=tuple(total_rows),
        amount_words=amount_in_words(totals.total),
        bank_lines=bank_lines,
        notes=transaction.notes,
        payment_method=transaction.payment_method,
    )


def _column_weights(columns: tuple[str, ...]) -> list[float]:
    weights = {"#": 0.5, "Item": 4.0, "HSN/SAC": 1.3, "Qty": 1.2, "Rate": 1.5, "Amount": 1.7, "Tax %": 0.9}
    return [weights.get(column, 1.0) for column in columns]


def _column_widths(columns: tuple[str, ...], width: float) -> list[float]:
    weights = _column_weights(columns)
    total = sum(weights)
    return [width * w / total for w in weights]


# === Flowable engine ===


def render_flowable(content: InvoiceContent, style: LayoutStyle) -> bytes:
    """Lay the invoice out with platypus and return the PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=style.page_size,
        topMargin=style.margin,
        bottomMargin=style.margin,
        leftMargin=style.margin,
        rightMargin=style.margin,
        title=f"{content.title} {content.number}",
    )
    styles = getSampleStyleSheet()
    accent = colors.HexColor(style.accent)
    size = style.font_size

    title_style = ParagraphStyle(
        f"{style.name}-title", parent=styles["Heading1"], fontSize=size + 7, leading=size + 10, textColor=accent
    )
    body_style = ParagraphStyle(f"{style.name}-body", parent=styles["Normal"], fontSize=size, leading=size * 1.3)
    muted_style = ParagraphStyle(
        f"{style.name}-muted", parent=body_style, textColor=colors.HexColor("#64748b")
    )
    label_style = ParagraphStyle(
        f"{style.name}-label", parent=body_style, fontName="Helvetica-Bold", textColor=accent
    )

    def para(text: str, st: ParagraphStyle = body_style) -> Paragraph:
        return Paragraph(escape(text), st)

    elements: list = [para(content.issuer_name, title_style)]
    elements.extend(para(line, muted_style) for line in content.issuer_lines)
    if content.cobrand:
        elements.append(para(content.cobrand, muted_style))
    elements.append(Spacer(1, size))

    meta = [f"{content.title}", f"No: {content.number}"]
    if content.issued_on:
        meta.append(f"Date: {content.issued_on}")
    if content.due_on:
        meta.append(f"Due: {content.due_on}")
    elements.append(para("   |   ".join(meta), label_style))
    elements.append(Spacer(1, size))

    party_cells = [[para("Bill To", label_style)] + [para(line) for line in content.bill_to]]
    if content.ship_to:
        party_cells.append([para("Ship To", label_style)] + [para(line) for line in content.ship_to])
    if style.narrow or len(party_cells) == 1:
        for cell in party_cells:
            elements.extend(cell)
    else:
        party_table = Table([party_cells], colWidths=[doc.width / 2, doc.width / 2])
        party_table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        elements.append(party_table)
    elements.append(Spacer(1, size))

    data = [[para(column, label_style) for column in content.columns]]
    for row in content.rows:
        data.append([para(cell) for cell in row])
    items_table = Table(data, colWidths=_column_widths(content.columns, doc.width), repeatRows=1)
    table_style = [
        ("LINEBELOW", (0, 0), (-1, 0), 1, accent),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]
    if style.banded_rows:
        table_style.append(("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f1f5f9")]))
    items_table.setStyle(TableStyle(table_style))
    elements.append(items_table)
    elements.append(Spacer(1, size))

    totals_table = Table(
        [[para(label), para(value)] for label, value in content.totals],
        colWidths=[doc.width * 0.7, doc.width * 0.3],
    )
    totals_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("LINEABOVE", (0, -1), (-1, -1), 1, colors.HexColor("#e2e8f0")),
            ]
        )
    )
    elements.append(totals_table)
    elements.append(para(content.amount_words, muted_style))

    if content.payment_method:
        elements.append(para(f"Payment method: {content.payment_method}", muted_style))
    if content.bank_lines:
        elements.append(Spacer(1, size))
        elements.append(para("Bank Details", label_style))
        elements.extend(para(line) for line in content.bank_lines)
    if content.notes:
        elements.append(Spacer(1, size))
        elements.append(para("Notes", label_style))
        elements.append(para(content.notes))

    doc.build(elements)
    return buffer.getvalue()


# === Canvas engine ===


class InvoiceCanvas:
    """Imperative canvas layout; ``finalize()`` must be called for the bytes."""

    def __init__(self, style: LayoutStyle):
        self.style = style
        self._buffer = io.BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=style.page_size)
        self.width, self.height = style.page_size
        self.margin = style.margin
        self._y = self.height - self.margin
        self._result: bytes | None = None

    @property
    def usable_width(self) -> float:
        return self.width - 2 * self.margin

    def _leading(self, size: float) -> float:
        return size * 1.35

    def _ensure_space(self, needed: float) -> None:
        if self._y - needed < self.margin:
            self._canvas.showPage()
            self._y = self.height - self.margin

    def _text(self, value: str, size: float | None = None, bold: bool = False, color: str | None = None) -> None:
        size = size or self.style.font_size
        font = "Helvetica-Bold" if bold else "Helvetica"
        for line in simpleSplit(value, font, size, self.usable_width) or [""]:
            self._ensure_space(self._leading(size))
            self._canvas.setFont(font, size)
            self._canvas.setFillColor(colors.HexColor(color) if color else colors.black)
            self._canvas.drawString(self.margin, self._y - size, line)
            self._y -= self._leading(size)

    def _gap(self, amount: float | None = None) -> None:
        self._y -= amount if amount is not None else self.style.font_size

    def _rule(self) -> None:
        self._ensure_space(4)
        self._canvas.setStrokeColor(colors.HexColor(self.style.accent))
        self._canvas.line(self.margin, self._y, self.width - self.margin, self._y)
        self._y -= 4

    def _table(self, columns: tuple[str, ...], rows: tuple[tuple[str, ...], ...]) -> None:
        size = self.style.font_size
        widths = _column_widths(columns, self.usable_width)
        numeric = {"Qty", "Rate", "Amount", "Tax %"}

        def draw_row(cells: tuple[str, ...], bold: bool) -> None:
            font = "Helvetica-Bold" if bold else "Helvetica"
            wrapped = [simpleSplit(cell, font, size, max(w - 4, 1)) or [""] for cell, w in zip(cells, widths)]
            height = max(len(lines) for lines in wrapped) * self._leading(size)
            self._ensure_space(height)
            self._canvas.setFont(font, size)
            self._canvas.setFillColor(colors.black)
            x = self.margin
            for column, lines, w in zip(columns, wrapped, widths):
                for offset, line in enumerate(lines):
                    y = self._y - size - offset * self._leading(size)
                    if column in numeric:
                        self._canvas.drawRightString(x + w - 2, y, line)
                    else:
                        self._canvas.drawString(x + 2, y, line)
                x += w
            self._y -= height

        draw_row(columns, bold=True)
        self._rule()
        for row in rows:
            draw_row(row, bold=False)
        self._rule()

    def draw(self, content: InvoiceContent) -> "InvoiceCanvas":
        """Draw every section of ``content``; returns self for chaining."""
        size = self.style.font_size
        self._text(content.issuer_name, size=size + 6, bold=True, color=self.style.accent)
        for line in content.issuer_lines:
            self._text(line, color="#64748b")
        if content.cobrand:
            self._text(content.cobrand, color="#64748b")
        self._gap()
        self._text(f"{content.title}  No: {content.number}", bold=True, color=self.style.accent)
        if content.issued_on:
            self._text(f"Date: {content.issued_on}")
        if content.due_on:
            self._text(f"Due: {content.due_on}")
        self._gap()

        self._text("Bill To", bold=True)
        for line in content.bill_to:
            self._text(line)
        if content.ship_to:
            self._gap(size / 2)
            self._text("Ship To", bold=True)
            for line in content.ship_to:
                self._text(line)
        self._gap()

        self._table(content.columns, content.rows)
        for label, value in content.totals:
            self._ensure_space(self._leading(size))
            self._canvas.setFont("Helvetica-Bold" if label.startswith("Total") else "Helvetica", size)
            self._canvas.setFillColor(colors.black)
            self._canvas.drawString(self.margin + self.usable_width * 0.55, self._y - size, label)
            self._canvas.drawRightString(self.width - self.margin, self._y - size, value)
            self._y -= self._leading(size)
        self._text(content.amount_words, color="#64748b")

        if content.payment_method:
            self._text(f"Payment method: {content.payment_method}", color="#64748b")
        if content.bank_lines:
            self._gap()
            self._text("Bank Details", bold=True)
            for line in content.bank_lines:
                self._text(line)
        if content.notes:
            self._gap()
            self._text("Notes", bold=True)
            self._text(content.notes)
        return self

    def finalize(self) -> bytes:
        """Close the document and return its bytes; repeat calls are cached."""
        if self._result is None:
            self._canvas.save()
            self._result = self._buffer.getvalue()
        return self._result
