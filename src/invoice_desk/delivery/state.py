"""Per-attempt delivery state.

An attempt is a small state machine owned by whoever starts it::

    idle -> precondition_check -> resolving -> rendering -> delivering -> succeeded

Every state after ``idle`` may also move to ``failed``.
Attempts are in-memory only; nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class ChannelName(str, Enum):
    """The four delivery channels."""

    DOWNLOAD = "download"
    PRINT = "print"
    EMAIL = "email"
    CHAT = "chat"


class AttemptState(str, Enum):
    """Lifecycle states of a delivery attempt."""

    IDLE = "idle"
    PRECONDITION_CHECK = "precondition_check"
    RESOLVING = "resolving"
    RENDERING = "rendering"
    DELIVERING = "delivering"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.SUCCEEDED, AttemptState.FAILED)


class DeliveryOutcome(str, Enum):
    """How a finished attempt ended."""

    SUCCESS = "success"
    USER_CANCELLED = "user_cancelled"
    PRECONDITION_FAILED = "precondition_failed"
    RESOLUTION_FAILED = "resolution_failed"
    RENDER_FAILED = "render_failed"
    TRANSPORT_FAILED = "transport_failed"


_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.IDLE: frozenset({AttemptState.PRECONDITION_CHECK}),
    AttemptState.PRECONDITION_CHECK: frozenset({AttemptState.RESOLVING, AttemptState.FAILED}),
    # Channels that hand off no document skip rendering
    AttemptState.RESOLVING: frozenset(
        {AttemptState.RENDERING, AttemptState.DELIVERING, AttemptState.FAILED}
    ),
    AttemptState.RENDERING: frozenset({AttemptState.DELIVERING, AttemptState.FAILED}),
    AttemptState.DELIVERING: frozenset({AttemptState.SUCCEEDED, AttemptState.FAILED}),
    AttemptState.SUCCEEDED: frozenset(),
    AttemptState.FAILED: frozenset(),
}


class InvalidTransitionError(Exception):
    """An attempt was moved along an edge the state machine does not have."""

    pass


@dataclass
class DeliveryAttempt:
    """One run of one channel against one transaction."""

    channel: ChannelName
    transaction_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    state: AttemptState = AttemptState.IDLE
    outcome: DeliveryOutcome | None = None
    message: str | None = None
    template: str | None = None
    history: list[AttemptState] = field(default_factory=list)

    def advance(self, state: AttemptState) -> None:
        """Move to ``state``, enforcing the state machine's edges."""
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"{self.state.value} -> {state.value}")
        self.history.append(self.state)
        self.state = state

    def finish(self, outcome: DeliveryOutcome, message: str | None = None) -> None:
        """Record the terminal outcome; SUCCESS maps to SUCCEEDED, the rest to FAILED."""
        terminal = AttemptState.SUCCEEDED if outcome is DeliveryOutcome.SUCCESS else AttemptState.FAILED
        if not self.state.is_terminal:
            self.advance(terminal)
        self.outcome = outcome
        self.message = message

    @property
    def key(self) -> tuple[str, str]:
        return (self.channel.value, self.transaction_id)


class InFlightGuard:
    """Tracks outstanding attempts so a repeated action becomes a no-op.

    Keyed by (channel, transaction id): a second download of the same
    transaction is refused while the first runs, while a download and an
    email of the same transaction may run side by side.
    """

    def __init__(self) -> None:
        self._in_flight: dict[tuple[str, str], DeliveryAttempt] = {}

    def acquire(self, attempt: DeliveryAttempt) -> bool:
        if attempt.key in self._in_flight:
            logger.info(
                "delivery_already_in_flight",
                channel=attempt.channel.value,
                transaction_id=attempt.transaction_id,
            )
            return False
        self._in_flight[attempt.key] = attempt
        return True

    def release(self, attempt: DeliveryAttempt) -> None:
        if self._in_flight.get(attempt.key) is attempt:
            del self._in_flight[attempt.key]

    def is_in_flight(self, channel: ChannelName, transaction_id: str) -> bool:
        return (channel.value, transaction_id) in self._in_flight

    def current(self, channel: ChannelName, transaction_id: str) -> DeliveryAttempt | None:
        return self._in_flight.get((channel.value, transaction_id))
