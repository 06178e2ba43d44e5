"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("INVOICE_API_TOKEN", "test-token")
os.environ.setdefault("INVOICE_API_URL", "http://localhost:8745/api")

from invoice_desk.api.client import InvoiceAPIClient  # noqa: E402
from invoice_desk.models import Transaction  # noqa: E402
from invoice_desk.status import StatusReporter  # noqa: E402

COMPANY_ID = "64f000000000000000000001"
PARTY_ID = "64f000000000000000000002"
BANK_ID = "64f000000000000000000003"
CLIENT_ID = "64f000000000000000000004"
PRODUCT_ID = "64f000000000000000000010"
SERVICE_ID = "64f000000000000000000011"
TRANSACTION_ID = "65a1f0c2e4b0a1b2c3d4e5f6"


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def make_response():
    """Factory for stand-ins of httpx.Response."""

    def factory(status_code: int = 200, body=None) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = body if body is not None else {}
        response.content = b"content" if body is not None else b""
        response.text = "content"
        response.headers = {}
        return response

    return factory


@pytest.fixture
def company_data():
    """A fully populated issuing company."""
    return {
        "_id": COMPANY_ID,
        "businessName": "Sharma Traders",
        "gstin": "27ABCDE1234F1Z5",
        "PANNumber": "ABCDE1234F",
        "address": "12 MG Road",
        "City": "Pune",
        "addressState": "Maharashtra",
        "Pincode": "411001",
        "mobileNumber": "9822000000",
        "emailId": "accounts@sharmatraders.in",
        "client": CLIENT_ID,
    }


@pytest.fixture
def party_data():
    """A customer with email and phone."""
    return {
        "_id": PARTY_ID,
        "name": "Acme Retail",
        "email": "billing@acme.example",
        "contactNumber": "98765 43210",
        "address": "4 Park Street",
        "city": "Mumbai",
        "state": "Maharashtra",
        "pincode": "400001",
    }


@pytest.fixture
def client_data():
    """The owner client account."""
    return {"_id": CLIENT_ID, "contactName": "Priya Mehta", "email": "priya@example.com"}


@pytest.fixture
def bank_data():
    return {
        "_id": BANK_ID,
        "bankName": "State Bank of India",
        "accountNumber": "001122334455",
        "ifscCode": "SBIN0000123",
        "upiId": "sharma@sbi",
    }


@pytest.fixture
def sales_data():
    """A sales transaction whose related records are ids only."""
    return {
        "_id": TRANSACTION_ID,
        "type": "sales",
        "date": "2024-01-15T00:00:00.000Z",
        "invoiceNumber": "INV-0042",
        "totalAmount": 1180,
        "paymentMethod": "UPI",
        "party": PARTY_ID,
        "company": {"_id": COMPANY_ID},
        "bank": BANK_ID,
        "products": [
            {
                "product": PRODUCT_ID,
                "quantity": 2,
                "pricePerUnit": 500,
                "amount": 1000,
                "unitType": "Piece",
                "gstPercentage": 18,
                "lineTax": 180,
                "hsn": "8471",
            }
        ],
    }


@pytest.fixture
def sales_transaction(sales_data) -> Transaction:
    return Transaction.from_api(sales_data)


@pytest.fixture
def reporter() -> StatusReporter:
    return StatusReporter()


@pytest.fixture
def api(company_data, party_data, client_data, bank_data, sales_data):
    """A data-service client whose endpoint methods are AsyncMocks."""
    api = MagicMock(spec=InvoiceAPIClient)
    api.get_transaction = AsyncMock(return_value=sales_data)
    api.get_party = AsyncMock(return_value=party_data)
    api.get_vendor = AsyncMock(return_value={"_id": "v1", "vendorName": "Supplier Co"})
    api.get_company = AsyncMock(return_value=company_data)
    api.get_client = AsyncMock(return_value=client_data)
    api.get_bank_detail = AsyncMock(return_value=bank_data)
    api.list_products = AsyncMock(return_value=[{"_id": PRODUCT_ID, "name": "Laptop Stand"}])
    api.list_services = AsyncMock(return_value=[{"_id": SERVICE_ID, "serviceName": "Installation"}])
    api.get_default_template = AsyncMock(return_value="template1")
    api.get_email_status = AsyncMock(return_value={"connected": True})
    api.send_invoice_email = AsyncMock(return_value={"ok": True})
    return api
