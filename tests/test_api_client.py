"""Tests for the data service API client."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from invoice_desk.api.client import (
    APIError,
    AuthenticationError,
    InvoiceAPIClient,
    NotFoundError,
    RateLimitError,
)


@pytest.fixture
def client():
    """Create an InvoiceAPIClient instance."""
    return InvoiceAPIClient(base_url="http://localhost:8745/api", token="secret", max_retries=2)


class TestInvoiceAPIClientInit:
    """Tests for InvoiceAPIClient initialization."""

    def test_init_with_explicit_params(self):
        """Test initialization with explicit parameters."""
        client = InvoiceAPIClient(base_url="http://custom:9000/api", token="tok", timeout=5.0)

        assert client.base_url == "http://custom:9000/api"
        assert client._token == "tok"
        assert client._timeout == 5.0

    def test_init_strips_trailing_slash(self):
        """Test that trailing slash is stripped from base URL."""
        client = InvoiceAPIClient(base_url="http://localhost:8745/api/", token="tok")

        assert client.base_url == "http://localhost:8745/api"

    def test_init_defaults_from_settings(self):
        client = InvoiceAPIClient()

        assert client._token == "test-token"
        assert client._max_retries == 2

    def test_headers_carry_bearer_token(self, client):
        headers = client._get_headers()

        assert headers["Authorization"] == "Bearer secret"


class TestRequests:
    """Tests for request handling and error mapping."""

    @pytest.mark.asyncio
    async def test_get_transaction(self, client, mock_httpx_client, sales_data, make_response):
        """Test fetching a transaction by id."""
        mock_httpx_client.request = AsyncMock(return_value=make_response(200, sales_data))

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            result = await client.get_transaction(sales_data["_id"])

        assert result["invoiceNumber"] == "INV-0042"
        call = mock_httpx_client.request.call_args
        assert call.kwargs["method"] == "GET"
        assert call.kwargs["url"] == f"/transactions/{sales_data['_id']}"

    @pytest.mark.asyncio
    async def test_record_unwraps_data_envelope(self, client, mock_httpx_client, company_data, make_response):
        mock_httpx_client.request = AsyncMock(
            return_value=make_response(200, {"success": True, "data": company_data})
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            result = await client.get_company(company_data["_id"])

        assert result["businessName"] == "Sharma Traders"

    @pytest.mark.asyncio
    async def test_list_products_accepts_wrapped_list(self, client, mock_httpx_client, make_response):
        mock_httpx_client.request = AsyncMock(
            return_value=make_response(200, {"products": [{"_id": "p1", "name": "Desk"}]})
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            result = await client.list_products()

        assert result == [{"_id": "p1", "name": "Desk"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type",
        [(401, AuthenticationError), (404, NotFoundError), (429, RateLimitError), (500, APIError)],
    )
    async def test_status_codes_map_to_errors(self, client, mock_httpx_client, status, error_type, make_response):
        mock_httpx_client.request = AsyncMock(return_value=make_response(status, {"message": "nope"}))

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            with pytest.raises(error_type) as exc_info:
                await client.get_bank_detail("b1")

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_retries_transport_errors_then_succeeds(self, client, mock_httpx_client, make_response):
        """Test that connection errors are retried with backoff."""
        mock_httpx_client.request = AsyncMock(
            side_effect=[httpx.ConnectError("refused"), make_response(200, {"connected": True})]
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client), patch(
            "invoice_desk.api.client.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            result = await client.get_email_status()

        assert result == {"connected": True}
        assert mock_httpx_client.request.call_count == 2
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, client, mock_httpx_client):
        mock_httpx_client.request = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with patch.object(client, "_get_client", return_value=mock_httpx_client), patch(
            "invoice_desk.api.client.asyncio.sleep", new=AsyncMock()
        ):
            with pytest.raises(APIError) as exc_info:
                await client.get_email_status()

        assert exc_info.value.status_code is None
        assert mock_httpx_client.request.call_count == 3

    @pytest.mark.asyncio
    async def test_invalid_json_is_an_api_error(self, client, mock_httpx_client, make_response):
        response = make_response(200, {})
        response.content = b"<html>"
        response.json.side_effect = ValueError("not json")
        mock_httpx_client.request = AsyncMock(return_value=response)

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            with pytest.raises(APIError, match="Invalid JSON"):
                await client.get_default_template()


class TestSettingsAndIntegrations:
    """Tests for the settings and email integration endpoints."""

    @pytest.mark.asyncio
    async def test_default_template(self, client, mock_httpx_client, make_response):
        mock_httpx_client.request = AsyncMock(
            return_value=make_response(200, {"defaultTemplate": " template8 "})
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            assert await client.get_default_template() == "template8"

    @pytest.mark.asyncio
    async def test_default_template_empty_value(self, client, mock_httpx_client, make_response):
        mock_httpx_client.request = AsyncMock(return_value=make_response(200, {"defaultTemplate": ""}))

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            assert await client.get_default_template() is None

    @pytest.mark.asyncio
    async def test_send_invoice_email_posts_payload(self, client, mock_httpx_client, make_response):
        mock_httpx_client.request = AsyncMock(return_value=make_response(200, {"ok": True}))
        payload = {"to": "a@b.example", "subject": "Invoice"}

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            result = await client.send_invoice_email(payload)

        assert result == {"ok": True}
        call = mock_httpx_client.request.call_args
        assert call.kwargs["method"] == "POST"
        assert call.kwargs["url"] == "/integrations/email/send-invoice"
        assert call.kwargs["json"] == payload

    @pytest.mark.asyncio
    async def test_send_invoice_email_is_sent_once_on_timeout(self, client, mock_httpx_client, make_response):
        """A timed-out send may have been accepted, so it is not resent."""
        mock_httpx_client.request = AsyncMock(
            side_effect=[httpx.ReadTimeout("timed out"), make_response(200, {"ok": True})]
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client), patch(
            "invoice_desk.api.client.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            with pytest.raises(APIError, match="Request failed"):
                await client.send_invoice_email({"to": "a@b.example"})

        assert mock_httpx_client.request.call_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, client, mock_httpx_client):
        client._client = mock_httpx_client

        async with client:
            pass

        mock_httpx_client.aclose.assert_awaited_once()
        assert client._client is None
