"""Status reporting for delivery attempts.

The reporter is the only thing channels talk to about progress and results.
It keeps a short buffer of recent notifications and fans each one out to
registered hooks, which is how a UI (or the CLI) displays toasts and modals.
"""

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import structlog

logger = structlog.get_logger(__name__)


class NotificationKind(str, Enum):
    PROGRESS = "progress"
    SUCCESS = "success"
    FAILURE = "failure"


class NotificationDisplay(str, Enum):
    """How a notification is surfaced: a transient toast or a blocking modal."""

    TOAST = "toast"
    MODAL = "modal"


@dataclass
class StatusNotification:
    """A single user-facing status message."""

    kind: NotificationKind
    title: str
    description: str = ""
    display: NotificationDisplay = NotificationDisplay.TOAST
    channel: str | None = None
    transaction_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    notification_id: UUID = field(default_factory=uuid4)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not NotificationKind.PROGRESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.notification_id),
            "kind": self.kind.value,
            "display": self.display.value,
            "title": self.title,
            "description": self.description,
            "channel": self.channel,
            "transaction_id": self.transaction_id,
            "timestamp": self.timestamp.isoformat(),
        }


class StatusReporter:
    """Publishes status notifications to hooks.

    Usage:
        reporter = StatusReporter()
        reporter.add_hook(lambda n: print(n.title))
        reporter.success("Invoice Downloaded", "Saved Invoice-42.pdf")
    """

    def __init__(self, buffer_size: int = 100):
        self._buffer: deque[StatusNotification] = deque(maxlen=buffer_size)
        self._hooks: list[Callable[[StatusNotification], None]] = []
        self._logger = logger.bind(component="status_reporter")

    @property
    def recent(self) -> list[StatusNotification]:
        """Get recently published notifications."""
        return list(self._buffer)

    def add_hook(self, hook: Callable[[StatusNotification], None]) -> None:
        """Add a hook to be called synchronously for every notification."""
        self._hooks.append(hook)

    def remove_hook(self, hook: Callable[[StatusNotification], None]) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    def publish(self, notification: StatusNotification) -> StatusNotification:
        self._buffer.append(notification)

        log = self._logger.warning if notification.kind is NotificationKind.FAILURE else self._logger.info
        log(
            "status_published",
            kind=notification.kind.value,
            display=notification.display.value,
            title=notification.title,
            channel=notification.channel,
            transaction_id=notification.transaction_id,
        )

        for hook in self._hooks:
            try:
                hook(notification)
            except Exception as e:
                self._logger.error("status_hook_error", error=str(e))
        return notification

    def progress(self, title: str, description: str = "", **context: Any) -> StatusNotification:
        return self.publish(StatusNotification(NotificationKind.PROGRESS, title, description, **context))

    def success(self, title: str, description: str = "", **context: Any) -> StatusNotification:
        return self.publish(StatusNotification(NotificationKind.SUCCESS, title, description, **context))

    def failure(
        self,
        title: str,
        description: str = "",
        display: NotificationDisplay = NotificationDisplay.TOAST,
        **context: Any,
    ) -> StatusNotification:
        return self.publish(
            StatusNotification(NotificationKind.FAILURE, title, description, display=display, **context)
        )

    def clear(self) -> None:
        self._buffer.clear()
