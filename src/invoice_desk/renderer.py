"""Document renderer: run a template and normalise whatever it returns."""

import inspect
import io
from collections.abc import Mapping
from typing import Any

import structlog

from invoice_desk.delivery.errors import RenderFailedError
from invoice_desk.models import RenderedDocument, Transaction
from invoice_desk.resolver import ResolvedEntities
from invoice_desk.templates.registry import RenderFn

logger = structlog.get_logger(__name__)


async def _to_bytes(result: Any) -> bytes:
    if inspect.isawaitable(result):
        result = await result
    if hasattr(result, "finalize") and callable(result.finalize):
        result = result.finalize()
        if inspect.isawaitable(result):
            result = await result
    if isinstance(result, io.BytesIO):
        return result.getvalue()
    if isinstance(result, (bytes, bytearray, memoryview)):
        return bytes(result)
    raise TypeError(f"Template returned unsupported type {type(result).__name__}")


class DocumentRenderer:
    """Turns a transaction plus resolved entities into a document buffer.

    Rendering is never retried; a template that raises or produces nothing
    fails the attempt with :class:`RenderFailedError`.
    """

    def __init__(self) -> None:
        self._logger = logger.bind(component="renderer")

    async def render(
        self,
        template_name: str,
        template_fn: RenderFn,
        transaction: Transaction,
        entities: ResolvedEntities,
        item_names: Mapping[str, str] | None = None,
    ) -> RenderedDocument:
        try:
            result = template_fn(
                transaction,
                entities.company,
                entities.counterparty,
                item_names or {},
                entities.shipping_address,
                entities.bank,
                entities.owner_client,
            )
            content = await _to_bytes(result)
        except Exception as e:
            self._logger.error(
                "render_failed",
                template=template_name,
                transaction_id=transaction.id,
                error=str(e),
            )
            raise RenderFailedError(f"Failed to generate invoice: {e}") from e

        if not content:
            self._logger.error("render_empty", template=template_name, transaction_id=transaction.id)
            raise RenderFailedError("Template produced an empty document")

        document = RenderedDocument(
            content=content,
            filename=transaction.document_filename,
            template=template_name,
        )
        self._logger.info(
            "document_rendered",
            template=template_name,
            transaction_id=transaction.id,
            size=document.size,
        )
        return document
