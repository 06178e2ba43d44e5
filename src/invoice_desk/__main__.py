"""Command-line front end.

Usage:
    python -m invoice_desk download 65a1f0c2e4b0a1b2c3d4e5f6
    python -m invoice_desk print 65a1f0c2e4b0a1b2c3d4e5f6
    python -m invoice_desk email 65a1f0c2e4b0a1b2c3d4e5f6
    python -m invoice_desk chat 65a1f0c2e4b0a1b2c3d4e5f6 --phone 9876543210 --rich
    python -m invoice_desk templates
"""

import argparse
import asyncio
import sys

import structlog

from invoice_desk.api.client import InvoiceAPIClient
from invoice_desk.config import configure_logging, get_settings
from invoice_desk.delivery.channels import DirectorySink
from invoice_desk.delivery.orchestrator import DeliveryOrchestrator, default_channels
from invoice_desk.delivery.state import ChannelName, DeliveryOutcome
from invoice_desk.status import NotificationDisplay, StatusNotification, StatusReporter
from invoice_desk.templates import get_registry

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoice-desk",
        description="Render invoices and deliver them by download, print, email or chat",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s download 65a1f0c2e4b0a1b2c3d4e5f6 --output ./invoices
  %(prog)s email 65a1f0c2e4b0a1b2c3d4e5f6
  %(prog)s chat 65a1f0c2e4b0a1b2c3d4e5f6 --phone 9876543210 --rich
  %(prog)s templates
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for channel in ChannelName:
        sub = subparsers.add_parser(channel.value, help=f"Deliver an invoice via {channel.value}")
        sub.add_argument("transaction_id", help="Transaction to deliver")
        if channel in (ChannelName.DOWNLOAD, ChannelName.CHAT):
            sub.add_argument("--output", help="Directory to save the document in (default: DOWNLOAD_DIR)")
        if channel is ChannelName.CHAT:
            sub.add_argument("--phone", help="Recipient phone, overriding the customer's number")
            sub.add_argument("--rich", action="store_true", help="Send an itemised message")

    subparsers.add_parser("templates", help="List the available invoice templates")
    return parser


def print_notification(notification: StatusNotification) -> None:
    prefix = {"progress": "...", "success": "OK ", "failure": "ERR"}[notification.kind.value]
    if notification.display is NotificationDisplay.MODAL:
        prefix = "!!!"
    line = f"{prefix} {notification.title}"
    if notification.description:
        line += f": {notification.description}"
    print(line)


def list_templates() -> int:
    registry = get_registry()
    for info in registry.catalogue():
        marker = "*" if info.name == registry.baseline else " "
        print(f"{marker} {info.name:<14} {info.label:<16} {info.paper_size.value}")
    return 0


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    reporter = StatusReporter()
    reporter.add_hook(print_notification)

    output = getattr(args, "output", None)
    sink = DirectorySink(output or settings.download_dir)

    async with InvoiceAPIClient() as client:
        channels = default_channels(
            client,
            settings,
            sink=sink,
            rich_chat=getattr(args, "rich", False),
            wait_for_print=True,
        )
        orchestrator = DeliveryOrchestrator(client, channels, reporter=reporter)
        attempt = await orchestrator.deliver(
            args.command, args.transaction_id, phone=getattr(args, "phone", None)
        )

    if attempt is None or attempt.outcome is DeliveryOutcome.SUCCESS:
        return 0
    return 1


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)

    if args.command == "templates":
        return list_templates()

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("delivery_interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
