"""Async client for the invoicing data service with bearer-token auth."""

import asyncio
from typing import Any, cast

import httpx
import structlog

from invoice_desk.config import get_settings

logger = structlog.get_logger(__name__)

JSONResult = dict[str, Any] | list[dict[str, Any]]


class APIError(Exception):
    """Base exception for data service errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(APIError):
    """Bearer token rejected."""

    pass


class NotFoundError(APIError):
    """Requested record does not exist."""

    pass


class RateLimitError(APIError):
    """Rate limit exceeded."""

    pass


_STATUS_ERRORS: dict[int, type[APIError]] = {
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    429: RateLimitError,
}


def _error_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"raw": (response.text or "")[:500]}


def _error_message(response: httpx.Response, body: Any, path: str) -> str:
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    if response.status_code == 404:
        return f"Not found: {path}"
    return f"API error: {response.status_code}"


class InvoiceAPIClient:
    """Async client for the transaction, entity, settings and integration endpoints.

    Transport errors (connection refused, timeouts) on reads are retried with
    exponential backoff. Writes are sent once: a timed-out POST may already
    have been applied. HTTP error statuses are never retried.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self._token = token or settings.api_token.get_secret_value()
        self._timeout = timeout or settings.api_timeout
        self._max_retries = settings.api_max_retries if max_retries is None else max_retries
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="api_client", base_url=self.base_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "InvoiceAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self._token}"}

    # === Transport ===

    async def _send(
        self, method: str, path: str, json: dict[str, Any] | None, retries: int
    ) -> httpx.Response:
        client = await self._get_client()
        attempt = 0
        while True:
            try:
                return await client.request(
                    method=method, url=path, json=json, headers=self._get_headers()
                )
            except httpx.RequestError as e:
                if attempt >= retries:
                    self._logger.warning("request_failed", method=method, path=path, error=str(e))
                    raise APIError(f"Request failed: {e}") from e
                delay = 2**attempt
                self._logger.info(
                    "request_retry", method=method, path=path, attempt=attempt + 1, delay=delay
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> JSONResult:
        """Send one authenticated request and decode its JSON body."""
        response = await self._send(method, path, json, self._max_retries if retry else 0)

        if response.status_code >= 400:
            body = _error_body(response)
            error_type = _STATUS_ERRORS.get(response.status_code, APIError)
            if error_type is RateLimitError:
                body = {"retry_after": int(response.headers.get("Retry-After", "60"))}
            self._logger.debug(
                "request_rejected", method=method, path=path, status=response.status_code
            )
            raise error_type(
                _error_message(response, body, path),
                status_code=response.status_code,
                details=body,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise APIError("Invalid JSON response", status_code=response.status_code) from e

    async def get(self, path: str) -> JSONResult:
        return await self._request("GET", path)

    async def post(self, path: str, json: dict[str, Any]) -> JSONResult:
        return await self._request("POST", path, json=json, retry=False)

    @staticmethod
    def _extract_items(result: Any) -> list[dict[str, Any]]:
        """Return list of items from a list or wrapped response."""
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            for key in ("items", "data", "products", "services"):
                items = result.get(key)
                if isinstance(items, list):
                    return cast(list[dict[str, Any]], items)
        return []

    async def _get_record(self, path: str) -> dict[str, Any]:
        result = await self.get(path)
        if not isinstance(result, dict):
            raise APIError(f"Invalid record response for {path}")
        # Some collections wrap the record: {"data": {...}}
        inner = result.get("data")
        if isinstance(inner, dict) and "_id" not in result:
            return inner
        return result

    # === Transactions ===

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        """Get a transaction by ID."""
        return await self._get_record(f"/transactions/{transaction_id}")

    # === Related Entities ===

    async def get_party(self, party_id: str) -> dict[str, Any]:
        """Get a customer (party) by ID."""
        return await self._get_record(f"/parties/{party_id}")

    async def get_vendor(self, vendor_id: str) -> dict[str, Any]:
        """Get a vendor by ID."""
        return await self._get_record(f"/vendors/{vendor_id}")

    async def get_company(self, company_id: str) -> dict[str, Any]:
        """Get an issuing company by ID."""
        return await self._get_record(f"/companies/{company_id}")

    async def get_client(self, client_id: str) -> dict[str, Any]:
        """Get the owner client account by ID."""
        return await self._get_record(f"/clients/{client_id}")

    async def get_bank_detail(self, bank_id: str) -> dict[str, Any]:
        """Get bank account details by ID."""
        return await self._get_record(f"/bank-details/{bank_id}")

    async def list_products(self) -> list[dict[str, Any]]:
        """List products visible to the current account."""
        return self._extract_items(await self.get("/products"))

    async def list_services(self) -> list[dict[str, Any]]:
        """List services visible to the current account."""
        return self._extract_items(await self.get("/services"))

    # === Settings ===

    async def get_default_template(self) -> str | None:
        """Get the administrator's configured default template name."""
        result = await self.get("/settings/default-template")
        if isinstance(result, dict):
            value = result.get("defaultTemplate")
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    # === Email Integration ===

    async def get_email_status(self) -> dict[str, Any]:
        """Get the sending account integration status."""
        result = await self.get("/integrations/email/status")
        return result if isinstance(result, dict) else {}

    async def send_invoice_email(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Submit an invoice email; the body reports business success or rejection."""
        result = await self.post("/integrations/email/send-invoice", json=payload)
        return result if isinstance(result, dict) else {}
