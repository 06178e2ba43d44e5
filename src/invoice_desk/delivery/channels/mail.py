"""Email channel: submit the document to the sending-account integration."""

import base64
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from invoice_desk.api.client import APIError, InvoiceAPIClient
from invoice_desk.delivery.channels.base import Channel, DeliveryContext, require_invoiceable
from invoice_desk.delivery.errors import (
    IntegrationNotConnectedError,
    PreconditionFailedError,
    ResolutionFailedError,
    TransportFailedError,
)
from invoice_desk.delivery.state import ChannelName
from invoice_desk.formatting import format_money
from invoice_desk.models import Transaction

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "email_templates"

CLIENT_ROLE = "client"

_NOT_CONNECTED = {
    CLIENT_ROLE: (
        "Email invoicing is enabled for your account",
        "Your administrator has granted you permission to send invoices via email. "
        "Please review and accept the terms on your permissions page to activate this feature.",
    ),
    None: (
        "Email invoicing requires setup",
        "Email invoicing has been enabled for your account, but you need to contact "
        "your administrator to set up the email integration.",
    ),
}


def integration_message(role: str | None) -> tuple[str, str]:
    """Title and description for a not-connected integration, by caller role."""
    return _NOT_CONNECTED[CLIENT_ROLE if role == CLIENT_ROLE else None]


def is_rejection(body: dict[str, Any]) -> bool:
    """A 2xx body can still report a business failure."""
    if body.get("ok") is False or body.get("success") is False:
        return True
    return bool(body.get("error"))


def _rejection_reason(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return "Unknown error"


class EmailChannel(Channel):
    name = ChannelName.EMAIL
    contact_field = "email"
    progress_title = "Sending mail..."
    progress_description = "Please wait while we send your invoice."
    success_title = "Email Sent"
    failure_title = "Email Not Sent"
    failure_description = "Unexpected error occurred while sending the email"
    persistent_failures = True

    def __init__(
        self,
        client: InvoiceAPIClient,
        role: str = "user",
        send_as: str = "companyOwner",
        template_dir: Path | None = None,
    ):
        super().__init__()
        self.client = client
        self.role = role
        self.send_as = send_as
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def check_preconditions(self, transaction: Transaction) -> None:
        require_invoiceable(
            transaction,
            "Cannot Send Email",
            "Only sales and proforma transactions can be emailed as invoices.",
        )

    async def prepare(self, transaction: Transaction) -> None:
        try:
            status = await self.client.get_email_status()
        except APIError as e:
            raise TransportFailedError(
                "Connection error: Could not check email status", title=self.failure_title
            ) from e

        if not status.get("connected"):
            title, description = integration_message(self.role)
            self._logger.info("email_integration_not_connected", role=self.role)
            raise IntegrationNotConnectedError(description, role=self.role, title=title)

    def check_contact(self, context: DeliveryContext) -> None:
        counterparty = context.entities.counterparty
        if counterparty is None or not counterparty.email:
            raise PreconditionFailedError("Customer email not available", title=self.failure_title)
        if context.entities.company is None:
            raise ResolutionFailedError("Company details not found", title=self.failure_title)

    def render_body(self, context: DeliveryContext) -> str:
        company = context.entities.company
        counterparty = context.entities.counterparty
        template = self.jinja_env.get_template("invoice_email.html")
        return template.render(
            company_name=company.display_name if company else "Your Company",
            party_name=counterparty.display_name if counterparty else "Customer",
            support_email=company.email if company else None,
            support_phone=company.phone if company else None,
            logo_url=company.logo if company else None,
            invoice_number=context.transaction.document_number,
            amount=format_money(context.transaction.total_amount) if context.transaction.total_amount else None,
        )

    def build_payload(self, context: DeliveryContext) -> dict[str, Any]:
        document = context.document
        company = context.entities.company
        counterparty = context.entities.counterparty
        if document is None or company is None or counterparty is None:
            raise TransportFailedError("Nothing to send", title=self.failure_title)
        return {
            "to": counterparty.email,
            "subject": f"Invoice from {company.display_name}",
            "html": self.render_body(context),
            "fileName": document.filename,
            "documentBase64": base64.b64encode(document.content).decode("ascii"),
            "companyId": company.id,
            "sendAs": self.send_as,
        }

    async def deliver(self, context: DeliveryContext) -> str:
        payload = self.build_payload(context)
        try:
            body = await self.client.send_invoice_email(payload)
        except APIError as e:
            reason = _rejection_reason(e.details)
            raise TransportFailedError(f"Email sending failed: {reason}", title=self.failure_title) from e

        if is_rejection(body):
            reason = _rejection_reason(body)
            self._logger.warning("email_rejected", reason=reason, transaction_id=context.transaction.id)
            raise TransportFailedError(f"Email sending failed: {reason}", title=self.failure_title)

        return f"Mail sent successfully to {payload['to']}"
