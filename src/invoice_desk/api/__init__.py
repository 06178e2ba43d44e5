"""Data service access for invoice-desk."""

from invoice_desk.api.client import (
    APIError,
    AuthenticationError,
    InvoiceAPIClient,
    NotFoundError,
    RateLimitError,
)

__all__ = [
    "InvoiceAPIClient",
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
]
