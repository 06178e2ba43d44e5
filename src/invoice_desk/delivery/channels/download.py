"""Download channel: hand the rendered document to a sink."""

import asyncio
from pathlib import Path
from typing import Protocol

from invoice_desk.delivery.channels.base import Channel, DeliveryContext, require_invoiceable
from invoice_desk.delivery.errors import TransportFailedError
from invoice_desk.delivery.state import ChannelName
from invoice_desk.models import RenderedDocument, Transaction


class DocumentSink(Protocol):
    """Where downloaded documents go.

    ``save`` returns a description of the saved location. A sink that lets
    the user back out raises ``DeliveryCancelledError``.
    """

    async def save(self, document: RenderedDocument) -> str: ...


class DirectorySink:
    """Writes documents into a local directory under their own file name."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def save(self, document: RenderedDocument) -> str:
        path = self.directory / document.filename
        await asyncio.to_thread(self._write, path, document.content)
        return str(path)


class DownloadChannel(Channel):
    name = ChannelName.DOWNLOAD
    progress_title = "Downloading Invoice"
    success_title = "Invoice Downloaded"
    failure_title = "Download Failed"
    failure_description = "Could not download invoice. Please try again."

    def __init__(self, sink: DocumentSink):
        super().__init__()
        self.sink = sink

    def check_preconditions(self, transaction: Transaction) -> None:
        require_invoiceable(
            transaction,
            "Cannot Download",
            "Only sales and proforma transactions can be downloaded as invoices.",
        )

    async def deliver(self, context: DeliveryContext) -> str:
        document = context.document
        if document is None:
            raise TransportFailedError("No document to save", title=self.failure_title)
        try:
            location = await self.sink.save(document)
        except OSError as e:
            raise TransportFailedError(self.failure_description, title=self.failure_title) from e
        self._logger.info("document_saved", filename=document.filename, location=location)
        return f"Invoice saved as {document.filename} ({document.template})"
