"""Tests for StatusReporter."""

from invoice_desk.status import (
    NotificationDisplay,
    NotificationKind,
    StatusNotification,
    StatusReporter,
)


class TestStatusReporter:
    """Tests for StatusReporter."""

    def test_publish_buffers_and_calls_hooks(self, reporter):
        seen = []
        reporter.add_hook(seen.append)

        notification = reporter.success("Invoice Downloaded", "Saved", channel="download", transaction_id="t1")

        assert seen == [notification]
        assert reporter.recent == [notification]
        assert notification.is_terminal

    def test_buffer_is_bounded(self):
        reporter = StatusReporter(buffer_size=2)

        for i in range(3):
            reporter.progress(f"step {i}")

        assert [n.title for n in reporter.recent] == ["step 1", "step 2"]

    def test_hook_errors_do_not_stop_other_hooks(self, reporter):
        seen = []

        def broken(notification):
            raise RuntimeError("ui gone")

        reporter.add_hook(broken)
        reporter.add_hook(seen.append)

        reporter.failure("Print Failed")

        assert len(seen) == 1

    def test_remove_hook(self, reporter):
        seen = []
        reporter.add_hook(seen.append)
        reporter.remove_hook(seen.append)

        reporter.progress("Preparing")

        assert seen == []

    def test_failure_display(self, reporter):
        notification = reporter.failure("Email Not Sent", "x", display=NotificationDisplay.MODAL)

        assert notification.kind is NotificationKind.FAILURE
        assert notification.display is NotificationDisplay.MODAL

    def test_progress_is_not_terminal(self, reporter):
        assert not reporter.progress("Preparing").is_terminal

    def test_clear(self, reporter):
        reporter.progress("Preparing")
        reporter.clear()

        assert reporter.recent == []


def test_notification_to_dict():
    notification = StatusNotification(NotificationKind.SUCCESS, "Email Sent", channel="email")

    data = notification.to_dict()

    assert data["kind"] == "success"
    assert data["display"] == "toast"
    assert data["channel"] == "email"
    assert "timestamp" in data
