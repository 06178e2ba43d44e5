"""Chat hand-off: save the document locally, then open a pre-filled chat link.

The chat web client cannot take an attachment through a link, so the user
attaches the saved document by hand after the compose window opens.
"""

import asyncio
import webbrowser
from collections.abc import Callable, Mapping
from decimal import Decimal
from urllib.parse import quote, urlencode

from invoice_desk.delivery.channels.base import Channel, DeliveryContext
from invoice_desk.delivery.channels.download import DocumentSink
from invoice_desk.delivery.errors import (
    PreconditionFailedError,
    ResolutionFailedError,
    TransportFailedError,
)
from invoice_desk.delivery.state import ChannelName
from invoice_desk.formatting import format_amount, format_invoice_date, normalize_phone, unified_lines
from invoice_desk.models import Company, Counterparty, Transaction, TransactionType

CHAT_TYPES = frozenset({TransactionType.SALES, TransactionType.RECEIPT})

RULE = "────────────────"

LinkOpener = Callable[[str], bool]


def _plain_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def compose_plain_message(
    transaction: Transaction, company: Company | None, counterparty: Counterparty | None
) -> str:
    """Short greeting with invoice number, date and amount."""
    party = counterparty.name if counterparty and counterparty.name else "Valued Customer"
    business = company.display_name if company else "Your Company"
    return (
        f"Dear {party},\n\n"
        "Please find your invoice attached.\n\n"
        f"Invoice No: {transaction.document_number or '-'}\n"
        f"Invoice Date: {format_invoice_date(transaction.date)}\n"
        f"Amount: ₹{format_amount(transaction.total_amount)}\n\n"
        "Thank you for your business!\n\n"
        "Best regards,\n"
        f"{business}"
    )


def compose_rich_message(
    transaction: Transaction,
    company: Company | None,
    counterparty: Counterparty | None,
    item_names: Mapping[str, str] | None = None,
) -> str:
    """Itemised message with per-line quantities, tax and totals."""
    party = counterparty.name if counterparty and counterparty.name else "Valued Customer"
    business = company.display_name if company else "Your Company"
    lines = unified_lines(transaction, item_names) if transaction.lines else []

    subtotal = sum((line.amount for line in lines), Decimal("0"))
    tax = transaction.tax_amount or sum((line.tax or Decimal("0") for line in lines), Decimal("0"))
    total = transaction.total_amount or subtotal + tax
    if not lines:
        subtotal = transaction.subtotal or (total - tax)

    parts = [
        f"📄 *INVOICE - {business}*\n\n",
        f"*Invoice No:* {transaction.document_number or '-'}\n",
        f"*Date:* {format_invoice_date(transaction.date)}\n",
        f"*Customer:* {party}\n\n",
    ]

    if lines:
        parts.append("*ITEMS:*\n")
        parts.append(f"{RULE}\n")
        for index, line in enumerate(lines, start=1):
            icon = "🔧 " if line.kind == "service" else "🛍️ "
            quantity = _plain_number(line.quantity)
            unit = f" {line.unit}" if line.unit else ""
            parts.append(f"{index}. {icon}{line.name}\n")
            parts.append(
                f"   Qty: {quantity}{unit} × ₹{format_amount(line.unit_price)}"
                f" = ₹{format_amount(line.amount)}\n"
            )
            if line.tax:
                rate = _plain_number(line.tax_rate or Decimal("0"))
                parts.append(f"   Tax ({rate}%): ₹{format_amount(line.tax)}\n")
        parts.append(f"{RULE}\n")
    else:
        parts.append("*DESCRIPTION:*\n")
        parts.append(f"{RULE}\n")
        parts.append(f"{transaction.description or 'Products/Services'}\n")
        parts.append(f"{RULE}\n")

    parts.append(f"*Subtotal:* ₹{format_amount(subtotal)}\n")
    parts.append(f"*Tax:* ₹{format_amount(tax)}\n")
    parts.append(f"*TOTAL:* ₹{format_amount(total)}\n\n")
    parts.append("Thank you for your business! 🎉\n\n")
    parts.append("Best regards,\n")
    parts.append(f"*{business}*")
    return "".join(parts)


def build_chat_link(host: str, phone: str, text: str) -> str:
    query = urlencode({"phone": phone, "text": text}, quote_via=quote)
    return f"https://{host}/send?{query}"


class ChatChannel(Channel):
    name = ChannelName.CHAT
    contact_field = "phone"
    progress_title = "Preparing Chat Message"
    success_title = "Opening Chat"
    failure_title = "Operation Failed"
    failure_description = "Could not complete the chat send operation."

    def __init__(
        self,
        sink: DocumentSink | None = None,
        opener: LinkOpener = webbrowser.open_new_tab,
        host: str = "web.whatsapp.com",
        country_code: str = "91",
        rich: bool = False,
    ):
        super().__init__()
        self.sink = sink
        self.opener = opener
        self.host = host
        self.country_code = country_code
        self.rich = rich

    def check_preconditions(self, transaction: Transaction) -> None:
        if transaction.type not in CHAT_TYPES:
            raise PreconditionFailedError(
                "Only sales and receipt transactions can be shared via chat.",
                title="Cannot Share",
            )

    def needs_document(self, transaction: Transaction) -> bool:
        return self.sink is not None and transaction.type.is_invoiceable

    def recipient_phone(self, context: DeliveryContext) -> str | None:
        counterparty = context.entities.counterparty
        raw = context.phone_override or (counterparty.phone if counterparty else None)
        return normalize_phone(raw, self.country_code)

    def check_contact(self, context: DeliveryContext) -> None:
        if context.entities.counterparty is None:
            raise ResolutionFailedError("Unable to find customer details for this transaction.")
        if not self.recipient_phone(context):
            raise PreconditionFailedError(
                "Customer mobile number is required to send via chat.",
                title="Mobile Number Missing",
            )

    def compose(self, context: DeliveryContext) -> str:
        entities = context.entities
        if self.rich:
            return compose_rich_message(
                context.transaction, entities.company, entities.counterparty, context.item_names
            )
        return compose_plain_message(context.transaction, entities.company, entities.counterparty)

    async def deliver(self, context: DeliveryContext) -> str:
        phone = self.recipient_phone(context)
        if not phone:
            raise PreconditionFailedError("Customer mobile number is required to send via chat.")

        saved = False
        if context.document is not None and self.sink is not None:
            try:
                await self.sink.save(context.document)
            except OSError as e:
                raise TransportFailedError(self.failure_description, title=self.failure_title) from e
            saved = True

        link = build_chat_link(self.host, phone, self.compose(context))
        opened = await asyncio.to_thread(self.opener, link)
        if opened is False:
            raise TransportFailedError("Could not open the chat web client.", title=self.failure_title)
        self._logger.info("chat_link_opened", phone=phone, document_saved=saved)

        counterparty = context.entities.counterparty
        name = counterparty.display_name if counterparty else "customer"
        if saved:
            return f"Invoice downloaded. Opening chat to send to {name}."
        return f"Opening chat to send to {name}."
