"""Delivery state and error types.

Channels and the orchestrator live in their own modules
(``invoice_desk.delivery.channels``, ``invoice_desk.delivery.orchestrator``)
so that the resolver and renderer can raise these errors without importing
the orchestration layer.
"""

from invoice_desk.delivery.errors import (
    DeliveryCancelledError,
    DeliveryError,
    IntegrationNotConnectedError,
    PreconditionFailedError,
    RenderFailedError,
    ResolutionFailedError,
    TransportFailedError,
)
from invoice_desk.delivery.state import (
    AttemptState,
    ChannelName,
    DeliveryAttempt,
    DeliveryOutcome,
    InFlightGuard,
    InvalidTransitionError,
)

__all__ = [
    # State
    "AttemptState",
    "ChannelName",
    "DeliveryAttempt",
    "DeliveryOutcome",
    "InFlightGuard",
    "InvalidTransitionError",
    # Errors
    "DeliveryError",
    "PreconditionFailedError",
    "IntegrationNotConnectedError",
    "ResolutionFailedError",
    "RenderFailedError",
    "TransportFailedError",
    "DeliveryCancelledError",
]
