"""Tests for the email channel."""

import base64
from unittest.mock import AsyncMock

import pytest

from invoice_desk.api.client import APIError
from invoice_desk.delivery import (
    DeliveryOutcome,
    IntegrationNotConnectedError,
    PreconditionFailedError,
    ResolutionFailedError,
    TransportFailedError,
)
from invoice_desk.delivery.channels import DeliveryContext, EmailChannel, integration_message
from invoice_desk.delivery.channels.mail import is_rejection
from invoice_desk.models import Company, Customer, RenderedDocument
from invoice_desk.resolver import ResolvedEntities


@pytest.fixture
def channel(api):
    return EmailChannel(api)


@pytest.fixture
def context(sales_transaction, company_data, party_data):
    return DeliveryContext(
        transaction=sales_transaction,
        entities=ResolvedEntities(
            counterparty=Customer.from_api(party_data),
            company=Company.from_api(company_data),
        ),
        document=RenderedDocument(content=b"%PDF-1.4", filename="Invoice-INV-0042.pdf", template="template1"),
        template="template1",
    )


class TestPrepare:
    """Tests for the integration status check."""

    @pytest.mark.asyncio
    async def test_connected(self, channel, api, sales_transaction):
        await channel.prepare(sales_transaction)

        api.get_email_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_connected_for_client_role(self, api, sales_transaction):
        api.get_email_status = AsyncMock(return_value={"connected": False})
        channel = EmailChannel(api, role="client")

        with pytest.raises(IntegrationNotConnectedError) as exc_info:
            await channel.prepare(sales_transaction)

        assert exc_info.value.title == "Email invoicing is enabled for your account"
        assert "accept the terms" in exc_info.value.message
        assert exc_info.value.outcome is DeliveryOutcome.PRECONDITION_FAILED

    @pytest.mark.asyncio
    async def test_not_connected_for_other_roles(self, api, sales_transaction):
        api.get_email_status = AsyncMock(return_value={})
        channel = EmailChannel(api, role="user")

        with pytest.raises(IntegrationNotConnectedError) as exc_info:
            await channel.prepare(sales_transaction)

        assert exc_info.value.title == "Email invoicing requires setup"
        assert "contact your administrator" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_status_lookup_failure(self, channel, api, sales_transaction):
        api.get_email_status = AsyncMock(side_effect=APIError("Request failed"))

        with pytest.raises(TransportFailedError, match="Could not check email status"):
            await channel.prepare(sales_transaction)

    def test_integration_message_roles(self):
        assert integration_message("client")[0] == "Email invoicing is enabled for your account"
        assert integration_message("admin")[0] == "Email invoicing requires setup"
        assert integration_message(None)[0] == "Email invoicing requires setup"


class TestCheckContact:
    def test_missing_email(self, channel, context):
        context.entities = ResolvedEntities(
            counterparty=Customer(id="p1", name="Acme Retail"), company=context.entities.company
        )

        with pytest.raises(PreconditionFailedError, match="Customer email not available"):
            channel.check_contact(context)

    def test_missing_company(self, channel, context):
        context.entities = ResolvedEntities(counterparty=context.entities.counterparty)

        with pytest.raises(ResolutionFailedError, match="Company details not found"):
            channel.check_contact(context)


class TestDeliver:
    """Tests for EmailChannel.deliver."""

    @pytest.mark.asyncio
    async def test_sends_one_request(self, channel, api, context):
        message = await channel.deliver(context)

        assert message == "Mail sent successfully to billing@acme.example"
        api.send_invoice_email.assert_awaited_once()
        payload = api.send_invoice_email.await_args.args[0]
        assert payload["to"] == "billing@acme.example"
        assert payload["subject"] == "Invoice from Sharma Traders"
        assert payload["fileName"] == "Invoice-INV-0042.pdf"
        assert base64.b64decode(payload["documentBase64"]) == b"%PDF-1.4"
        assert payload["sendAs"] == "companyOwner"

    def test_body_is_rendered_from_template(self, channel, context):
        html = channel.render_body(context)

        assert "Dear Acme Retail," in html
        assert "INV-0042" in html
        assert "accounts@sharmatraders.in" in html

    def test_body_escapes_names(self, channel, context):
        context.entities = ResolvedEntities(
            counterparty=Customer(id="p1", name="<b>Acme</b>", email="a@acme.example"),
            company=context.entities.company,
        )

        assert "&lt;b&gt;Acme&lt;/b&gt;" in channel.render_body(context)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body, reason",
        [
            ({"ok": False, "message": "Mailbox full"}, "Mailbox full"),
            ({"success": False}, "Unknown error"),
            ({"error": {"message": "Quota exceeded"}}, "Quota exceeded"),
        ],
    )
    async def test_rejection_in_body(self, channel, api, context, body, reason):
        api.send_invoice_email = AsyncMock(return_value=body)

        with pytest.raises(TransportFailedError) as exc_info:
            await channel.deliver(context)

        assert str(exc_info.value) == f"Email sending failed: {reason}"
        assert exc_info.value.title == "Email Not Sent"

    @pytest.mark.asyncio
    async def test_http_error(self, channel, api, context):
        api.send_invoice_email = AsyncMock(
            side_effect=APIError("API error", status_code=502, details={"message": "Bad gateway"})
        )

        with pytest.raises(TransportFailedError, match="Email sending failed: Bad gateway"):
            await channel.deliver(context)


def test_is_rejection():
    assert is_rejection({"ok": False})
    assert is_rejection({"error": "nope"})
    assert not is_rejection({"ok": True})
    assert not is_rejection({})
