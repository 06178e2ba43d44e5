"""Invoice Desk - invoice rendering and multi-channel delivery."""

__version__ = "0.1.0"

from invoice_desk.api import APIError, InvoiceAPIClient
from invoice_desk.config import configure_logging, get_settings
from invoice_desk.delivery import (
    ChannelName,
    DeliveryAttempt,
    DeliveryError,
    DeliveryOutcome,
)
from invoice_desk.delivery.orchestrator import DeliveryOrchestrator, default_channels
from invoice_desk.models import RenderedDocument, Transaction, TransactionType
from invoice_desk.renderer import DocumentRenderer
from invoice_desk.resolver import EntityResolver, ResolvedEntities
from invoice_desk.status import StatusNotification, StatusReporter
from invoice_desk.templates import TemplateRegistry, get_registry

__all__ = [
    # Version
    "__version__",
    # Data service
    "InvoiceAPIClient",
    "APIError",
    # Records
    "Transaction",
    "TransactionType",
    "RenderedDocument",
    # Pipeline
    "EntityResolver",
    "ResolvedEntities",
    "TemplateRegistry",
    "get_registry",
    "DocumentRenderer",
    "DeliveryOrchestrator",
    "default_channels",
    "ChannelName",
    "DeliveryAttempt",
    "DeliveryOutcome",
    "DeliveryError",
    # Status
    "StatusReporter",
    "StatusNotification",
    # Config
    "get_settings",
    "configure_logging",
]
