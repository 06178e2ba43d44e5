"""Print channel: load the document into a throwaway surface and print it.

A print surface is short-lived. It is torn down exactly once, by whichever
of these happens first: the surface reports printing finished, the surface
reports an error, or the hard timeout expires.
"""

import asyncio
import os
import shlex
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import structlog

from invoice_desk.delivery.channels.base import Channel, DeliveryContext, require_invoiceable
from invoice_desk.delivery.errors import TransportFailedError
from invoice_desk.delivery.state import ChannelName
from invoice_desk.models import RenderedDocument, Transaction

logger = structlog.get_logger(__name__)


class PrintSurface(Protocol):
    def on_finished(self, callback: Callable[[], None]) -> None: ...

    def on_error(self, callback: Callable[[], None]) -> None: ...

    async def load(self, document: RenderedDocument) -> None: ...

    async def print(self) -> None: ...

    def destroy(self) -> None: ...


class PrintJob:
    """Ties one surface to its cleanup triggers; first trigger wins."""

    def __init__(self, surface: PrintSurface, timeout: float):
        self.surface = surface
        self.timeout = timeout
        self.cleanup_reason: str | None = None
        self._loop = asyncio.get_running_loop()
        self._timer: asyncio.TimerHandle | None = None
        self.finished: asyncio.Future[str] = self._loop.create_future()

        surface.on_finished(lambda: self.cleanup("finished"))
        surface.on_error(lambda: self.cleanup("error"))

    @property
    def cleaned_up(self) -> bool:
        return self.cleanup_reason is not None

    def arm(self) -> None:
        """Start the hard timeout."""
        if self._timer is None and not self.cleaned_up:
            self._timer = self._loop.call_later(self.timeout, self.cleanup, "timeout")

    def cleanup(self, reason: str) -> bool:
        """Tear the surface down; returns False if it was already torn down."""
        if self.cleaned_up:
            return False
        self.cleanup_reason = reason
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        try:
            self.surface.destroy()
        except Exception as e:
            logger.warning("print_surface_destroy_failed", reason=reason, error=str(e))
        if not self.finished.done():
            self.finished.set_result(reason)
        logger.debug("print_surface_cleaned_up", reason=reason)
        return True


class SpooledPrintSurface:
    """Prints through a system spooler command (``lp`` by default).

    The document is written to a temporary file which ``destroy`` removes.
    """

    def __init__(self, command: str = "lp"):
        self.command = shlex.split(command)
        self._path: Path | None = None
        self._on_finished: list[Callable[[], None]] = []
        self._on_error: list[Callable[[], None]] = []
        self._watcher: asyncio.Task[None] | None = None

    def on_finished(self, callback: Callable[[], None]) -> None:
        self._on_finished.append(callback)

    def on_error(self, callback: Callable[[], None]) -> None:
        self._on_error.append(callback)

    async def load(self, document: RenderedDocument) -> None:
        fd, name = tempfile.mkstemp(prefix="invoice-", suffix=".pdf")

        def write() -> None:
            with os.fdopen(fd, "wb") as f:
                f.write(document.content)

        await asyncio.to_thread(write)
        self._path = Path(name)

    async def print(self) -> None:
        if self._path is None:
            raise RuntimeError("Nothing loaded to print")
        process = await asyncio.create_subprocess_exec(
            *self.command,
            str(self._path),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        self._watcher = asyncio.create_task(self._watch(process))

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        _, stderr = await process.communicate()
        if process.returncode == 0:
            callbacks = self._on_finished
        else:
            logger.warning(
                "print_spooler_failed",
                command=self.command[0],
                returncode=process.returncode,
                stderr=(stderr or b"").decode(errors="replace")[:200],
            )
            callbacks = self._on_error
        for callback in callbacks:
            callback()

    def destroy(self) -> None:
        if self._path is not None:
            self._path.unlink(missing_ok=True)
            self._path = None


class PrintChannel(Channel):
    name = ChannelName.PRINT
    progress_title = "Preparing Print"
    success_title = "Printing Invoice"
    failure_title = "Print Failed"
    failure_description = "Could not print invoice. Please try downloading instead."

    def __init__(
        self,
        surface_factory: Callable[[], PrintSurface],
        timeout: float = 30.0,
        wait_for_cleanup: bool = False,
    ):
        super().__init__()
        self.surface_factory = surface_factory
        self.timeout = timeout
        self.wait_for_cleanup = wait_for_cleanup
        self.last_job: PrintJob | None = None

    def check_preconditions(self, transaction: Transaction) -> None:
        require_invoiceable(
            transaction,
            "Cannot Print",
            "Only sales and proforma transactions can be printed as invoices.",
        )

    async def deliver(self, context: DeliveryContext) -> str:
        document = context.document
        if document is None:
            raise TransportFailedError("No document to print", title=self.failure_title)

        job = PrintJob(self.surface_factory(), self.timeout)
        self.last_job = job
        job.arm()
        try:
            await job.surface.load(document)
            await job.surface.print()
        except Exception as e:
            job.cleanup("error")
            raise TransportFailedError(self.failure_description, title=self.failure_title) from e

        if self.wait_for_cleanup:
            reason = await job.finished
            if reason == "error":
                raise TransportFailedError(self.failure_description, title=self.failure_title)
        return f"Opening print dialog... ({document.template})"
