"""The four delivery channels."""

from invoice_desk.delivery.channels.base import Channel, DeliveryContext
from invoice_desk.delivery.channels.chat import (
    ChatChannel,
    build_chat_link,
    compose_plain_message,
    compose_rich_message,
)
from invoice_desk.delivery.channels.download import DirectorySink, DocumentSink, DownloadChannel
from invoice_desk.delivery.channels.mail import EmailChannel, integration_message
from invoice_desk.delivery.channels.printing import (
    PrintChannel,
    PrintJob,
    PrintSurface,
    SpooledPrintSurface,
)

__all__ = [
    "Channel",
    "DeliveryContext",
    "ChatChannel",
    "build_chat_link",
    "compose_plain_message",
    "compose_rich_message",
    "DirectorySink",
    "DocumentSink",
    "DownloadChannel",
    "EmailChannel",
    "integration_message",
    "PrintChannel",
    "PrintJob",
    "PrintSurface",
    "SpooledPrintSurface",
]
