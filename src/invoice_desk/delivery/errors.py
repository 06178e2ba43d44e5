"""Delivery error taxonomy.

Each error carries the terminal outcome it maps to and a short title for the
user-facing notification. At most one of these is surfaced per attempt.
"""

from invoice_desk.delivery.state import DeliveryOutcome


class DeliveryError(Exception):
    """Base exception for a failed delivery attempt."""

    outcome: DeliveryOutcome = DeliveryOutcome.TRANSPORT_FAILED
    title: str = "Delivery Failed"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message)
        self.message = message
        if title:
            self.title = title


class PreconditionFailedError(DeliveryError):
    """A channel requirement was not met; no rendering or delivery happened."""

    outcome = DeliveryOutcome.PRECONDITION_FAILED
    title = "Cannot Deliver"


class IntegrationNotConnectedError(PreconditionFailedError):
    """The sending account integration is not connected."""

    title = "Email invoicing requires setup"

    def __init__(self, message: str, role: str, title: str | None = None):
        super().__init__(message, title=title)
        self.role = role


class ResolutionFailedError(DeliveryError):
    """A required related record could not be resolved."""

    outcome = DeliveryOutcome.RESOLUTION_FAILED
    title = "Customer Information Missing"


class RenderFailedError(DeliveryError):
    """The template raised or produced no document."""

    outcome = DeliveryOutcome.RENDER_FAILED
    title = "Document Generation Failed"


class TransportFailedError(DeliveryError):
    """The channel's own delivery step failed or was rejected."""

    outcome = DeliveryOutcome.TRANSPORT_FAILED
    title = "Delivery Failed"


class DeliveryCancelledError(DeliveryError):
    """The user backed out of the delivery (for example a save dialog)."""

    outcome = DeliveryOutcome.USER_CANCELLED
    title = "Cancelled"
