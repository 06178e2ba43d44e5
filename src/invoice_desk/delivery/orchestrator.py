"""Delivery orchestrator - runs one channel against one transaction.

Every attempt walks the same path:

1. static preconditions (no network),
2. channel preparation (integration checks),
3. entity resolution, fanned out together with the default-template lookup,
4. contact checks on the resolved records,
5. rendering (only for channels that hand off a document),
6. the channel's own delivery step.

Whatever happens, the attempt ends with exactly one terminal toast on the
status reporter. Channels with ``persistent_failures`` also get a modal.
"""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from invoice_desk.api.client import APIError, InvoiceAPIClient
from invoice_desk.config.settings import Settings, get_settings
from invoice_desk.delivery.channels import (
    Channel,
    ChatChannel,
    DeliveryContext,
    DirectorySink,
    DocumentSink,
    DownloadChannel,
    EmailChannel,
    PrintChannel,
    PrintSurface,
    SpooledPrintSurface,
)
from invoice_desk.delivery.channels.chat import LinkOpener
from invoice_desk.delivery.errors import DeliveryError, ResolutionFailedError
from invoice_desk.delivery.state import (
    AttemptState,
    ChannelName,
    DeliveryAttempt,
    DeliveryOutcome,
    InFlightGuard,
)
from invoice_desk.models import Transaction
from invoice_desk.renderer import DocumentRenderer
from invoice_desk.resolver import EntityResolver, load_item_names
from invoice_desk.status import NotificationDisplay, StatusReporter
from invoice_desk.templates.registry import TemplateRegistry, get_registry

logger = structlog.get_logger(__name__)


class DeliveryOrchestrator:
    """Coordinates resolution, rendering and delivery for every channel.

    Usage:
        async with InvoiceAPIClient() as client:
            orchestrator = DeliveryOrchestrator(client, default_channels(client))
            attempt = await orchestrator.deliver("download", "65a1f0c2e4b0a1b2c3d4e5f6")
    """

    def __init__(
        self,
        client: InvoiceAPIClient,
        channels: Iterable[Channel],
        registry: TemplateRegistry | None = None,
        reporter: StatusReporter | None = None,
        renderer: DocumentRenderer | None = None,
        resolver: EntityResolver | None = None,
        guard: InFlightGuard | None = None,
    ):
        self.client = client
        self.channels: dict[ChannelName, Channel] = {channel.name: channel for channel in channels}
        self.registry = registry or get_registry()
        self.reporter = reporter or StatusReporter()
        self.renderer = renderer or DocumentRenderer()
        self.resolver = resolver or EntityResolver(client)
        self.guard = guard or InFlightGuard()
        self._logger = logger.bind(component="delivery_orchestrator")

    def channel(self, name: ChannelName | str) -> Channel:
        channel_name = ChannelName(name)
        if channel_name not in self.channels:
            raise KeyError(f"Channel {channel_name.value!r} is not configured")
        return self.channels[channel_name]

    async def deliver(
        self,
        channel_name: ChannelName | str,
        transaction: Transaction | str,
        item_names: Mapping[str, str] | None = None,
        phone: str | None = None,
    ) -> DeliveryAttempt | None:
        """Run one delivery attempt.

        Args:
            channel_name: Which channel to deliver through.
            transaction: A parsed transaction, or its id to fetch it first.
            item_names: Product/service id -> name lookup; loaded from the
                data service when omitted and a line needs it.
            phone: Recipient phone that overrides the counterparty's (chat).

        Returns:
            The finished attempt, or None when the same channel is already
            delivering this transaction.
        """
        channel = self.channel(channel_name)
        transaction_id = transaction if isinstance(transaction, str) else transaction.id
        attempt = DeliveryAttempt(channel=channel.name, transaction_id=transaction_id)
        if not self.guard.acquire(attempt):
            return None

        log = self._logger.bind(channel=channel.name.value, transaction_id=transaction_id)
        try:
            description = await self._run(channel, attempt, transaction, item_names, phone)
        except DeliveryError as e:
            attempt.finish(e.outcome, e.message)
            log.warning(
                "delivery_failed",
                outcome=e.outcome.value,
                state=attempt.history[-1].value if attempt.history else None,
                error=e.message,
            )
            self._report_failure(channel, attempt, e.title, e.message)
        except Exception as e:
            attempt.finish(DeliveryOutcome.TRANSPORT_FAILED, str(e))
            log.error("delivery_error", error=str(e), error_type=type(e).__name__)
            self._report_failure(channel, attempt, channel.failure_title, channel.failure_description)
        else:
            attempt.finish(DeliveryOutcome.SUCCESS, description)
            log.info("delivery_succeeded", template=attempt.template)
            self.reporter.success(
                channel.success_title,
                description,
                channel=channel.name.value,
                transaction_id=transaction_id,
            )
        finally:
            self.guard.release(attempt)
        return attempt

    async def download(self, transaction: Transaction | str, **kwargs: Any) -> DeliveryAttempt | None:
        return await self.deliver(ChannelName.DOWNLOAD, transaction, **kwargs)

    async def print(self, transaction: Transaction | str, **kwargs: Any) -> DeliveryAttempt | None:
        return await self.deliver(ChannelName.PRINT, transaction, **kwargs)

    async def email(self, transaction: Transaction | str, **kwargs: Any) -> DeliveryAttempt | None:
        return await self.deliver(ChannelName.EMAIL, transaction, **kwargs)

    async def chat(self, transaction: Transaction | str, **kwargs: Any) -> DeliveryAttempt | None:
        return await self.deliver(ChannelName.CHAT, transaction, **kwargs)

    # === Attempt steps ===

    async def _run(
        self,
        channel: Channel,
        attempt: DeliveryAttempt,
        transaction: Transaction | str,
        item_names: Mapping[str, str] | None,
        phone: str | None,
    ) -> str:
        attempt.advance(AttemptState.PRECONDITION_CHECK)
        if isinstance(transaction, str):
            transaction = await self._load_transaction(transaction)
        channel.check_preconditions(transaction)

        self.reporter.progress(
            channel.progress_title,
            channel.progress_description,
            channel=channel.name.value,
            transaction_id=transaction.id,
        )
        await channel.prepare(transaction)

        attempt.advance(AttemptState.RESOLVING)
        needs_document = channel.needs_document(transaction)
        lookups = [
            asyncio.create_task(self.resolver.resolve(transaction, channel.contact_field)),
            asyncio.create_task(self._template_name(needs_document)),
            asyncio.create_task(self._item_names(transaction, item_names)),
        ]
        try:
            entities, template_name, names = await asyncio.gather(*lookups)
        except Exception:
            # Stop sibling lookups once one has failed
            for task in lookups:
                task.cancel()
            raise

        context = DeliveryContext(
            transaction=transaction,
            entities=entities,
            item_names=names,
            phone_override=phone,
        )
        channel.check_contact(context)

        if needs_document and template_name is not None:
            attempt.advance(AttemptState.RENDERING)
            attempt.template = template_name
            context.template = template_name
            context.document = await self.renderer.render(
                template_name,
                self.registry.select(template_name),
                transaction,
                entities,
                names,
            )

        attempt.advance(AttemptState.DELIVERING)
        return await channel.deliver(context)

    async def _load_transaction(self, transaction_id: str) -> Transaction:
        try:
            data = await self.client.get_transaction(transaction_id)
            return Transaction.from_api(data)
        except (APIError, ValueError) as e:
            self._logger.warning("transaction_unavailable", transaction_id=transaction_id, error=str(e))
            raise ResolutionFailedError(
                "Could not load this transaction.", title="Transaction Not Found"
            ) from e

    async def _template_name(self, needs_document: bool) -> str | None:
        if not needs_document:
            return None
        return await self.registry.fetch_default_name(self.client)

    async def _item_names(
        self, transaction: Transaction, supplied: Mapping[str, str] | None
    ) -> dict[str, str]:
        if supplied is not None:
            return dict(supplied)
        if all(line.name for line in transaction.lines):
            return {}
        return await load_item_names(self.client)

    def _report_failure(
        self, channel: Channel, attempt: DeliveryAttempt, title: str, description: str
    ) -> None:
        context = {"channel": channel.name.value, "transaction_id": attempt.transaction_id}
        self.reporter.failure(title, description, **context)
        if channel.persistent_failures and attempt.outcome is not DeliveryOutcome.USER_CANCELLED:
            self.reporter.failure(title, description, display=NotificationDisplay.MODAL, **context)


def default_channels(
    client: InvoiceAPIClient,
    settings: Settings | None = None,
    sink: DocumentSink | None = None,
    surface_factory: Any = None,
    opener: LinkOpener | None = None,
    rich_chat: bool = False,
    wait_for_print: bool = False,
) -> list[Channel]:
    """Build all four channels from settings with local-machine defaults."""
    settings = settings or get_settings()
    sink = sink or DirectorySink(settings.download_dir)

    def spooled_surface() -> PrintSurface:
        return SpooledPrintSurface(settings.print_command)

    chat_options: dict[str, Any] = {
        "sink": sink,
        "host": settings.chat_web_host,
        "country_code": settings.default_country_code,
        "rich": rich_chat,
    }
    if opener is not None:
        chat_options["opener"] = opener

    return [
        DownloadChannel(sink),
        PrintChannel(
            surface_factory or spooled_surface,
            timeout=settings.print_timeout_seconds,
            wait_for_cleanup=wait_for_print,
        ),
        EmailChannel(client, role=settings.user_role, send_as=settings.email_send_as),
        ChatChannel(**chat_options),
    ]
