"""Common shape of a delivery channel."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from invoice_desk.delivery.errors import PreconditionFailedError
from invoice_desk.delivery.state import ChannelName
from invoice_desk.models import RenderedDocument, Transaction
from invoice_desk.resolver import ResolvedEntities

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryContext:
    """What a channel has to work with once resolution and rendering are done."""

    transaction: Transaction
    entities: ResolvedEntities
    item_names: Mapping[str, str] = field(default_factory=dict)
    document: RenderedDocument | None = None
    template: str | None = None
    phone_override: str | None = None


def require_invoiceable(transaction: Transaction, title: str, description: str) -> None:
    if not transaction.type.is_invoiceable:
        raise PreconditionFailedError(description, title=title)


class Channel(ABC):
    """A delivery strategy.

    The orchestrator drives every channel through the same steps:

    1. ``check_preconditions``: static checks on the transaction, no I/O.
    2. ``prepare``: checks that need the network (integration status).
    3. entity resolution, asking for ``contact_field`` on the counterparty.
    4. ``check_contact``: checks on the resolved records.
    5. rendering, when ``needs_document`` says so.
    6. ``deliver``: the channel's own side effect.
    """

    name: ChannelName
    contact_field: str | None = None
    progress_title: str = "Working..."
    progress_description: str = ""
    success_title: str = "Done"
    failure_title: str = "Delivery Failed"
    failure_description: str = "Something went wrong. Please try again."
    # Failures are additionally shown in a modal the user must dismiss
    persistent_failures: bool = False

    def __init__(self) -> None:
        self._logger = logger.bind(component="channel", channel=self.name.value)

    def check_preconditions(self, transaction: Transaction) -> None:
        return None

    async def prepare(self, transaction: Transaction) -> None:
        return None

    def check_contact(self, context: DeliveryContext) -> None:
        return None

    def needs_document(self, transaction: Transaction) -> bool:
        return True

    @abstractmethod
    async def deliver(self, context: DeliveryContext) -> str:
        """Perform the side effect; returns the success description."""
