"""Tests for DocumentRenderer."""

import io

import pytest

from invoice_desk.delivery import DeliveryOutcome, RenderFailedError
from invoice_desk.renderer import DocumentRenderer
from invoice_desk.resolver import ResolvedEntities

PDF = b"%PDF-1.4 test"


class FakeBuilder:
    def __init__(self):
        self.finalized = False

    def finalize(self):
        self.finalized = True
        return PDF


@pytest.fixture
def renderer():
    return DocumentRenderer()


@pytest.fixture
def entities():
    return ResolvedEntities()


class TestRender:
    """Tests for result normalisation."""

    @pytest.mark.asyncio
    async def test_bytes(self, renderer, sales_transaction, entities):
        document = await renderer.render("template1", lambda *args: PDF, sales_transaction, entities)

        assert document.content == PDF
        assert document.filename == "Invoice-INV-0042.pdf"
        assert document.template == "template1"

    @pytest.mark.asyncio
    async def test_bytes_io(self, renderer, sales_transaction, entities):
        document = await renderer.render("t", lambda *args: io.BytesIO(PDF), sales_transaction, entities)

        assert document.content == PDF

    @pytest.mark.asyncio
    async def test_builder_is_finalized(self, renderer, sales_transaction, entities):
        builder = FakeBuilder()

        document = await renderer.render("t", lambda *args: builder, sales_transaction, entities)

        assert builder.finalized
        assert document.content == PDF

    @pytest.mark.asyncio
    async def test_awaitable_result(self, renderer, sales_transaction, entities):
        async def template(*args):
            return bytearray(PDF)

        document = await renderer.render("t", template, sales_transaction, entities)

        assert document.content == PDF

    @pytest.mark.asyncio
    async def test_template_receives_resolved_records(self, renderer, sales_transaction):
        received = []
        entities = ResolvedEntities(company="company", counterparty="party", bank="bank", owner_client="client")

        def template(*args):
            received.extend(args)
            return PDF

        await renderer.render("t", template, sales_transaction, entities, {"p1": "Desk"})

        assert received == [sales_transaction, "company", "party", {"p1": "Desk"}, None, "bank", "client"]


class TestRenderFailures:
    """Tests for render failures."""

    @pytest.mark.asyncio
    async def test_template_exception(self, renderer, sales_transaction, entities):
        def template(*args):
            raise KeyError("gstin")

        with pytest.raises(RenderFailedError) as exc_info:
            await renderer.render("t", template, sales_transaction, entities)

        assert exc_info.value.outcome is DeliveryOutcome.RENDER_FAILED
        assert str(exc_info.value).startswith("Failed to generate invoice:")

    @pytest.mark.asyncio
    async def test_empty_document(self, renderer, sales_transaction, entities):
        with pytest.raises(RenderFailedError, match="empty"):
            await renderer.render("t", lambda *args: b"", sales_transaction, entities)

    @pytest.mark.asyncio
    async def test_unsupported_result(self, renderer, sales_transaction, entities):
        with pytest.raises(RenderFailedError):
            await renderer.render("t", lambda *args: "not a pdf", sales_transaction, entities)
