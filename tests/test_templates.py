"""Tests for the template registry and reportlab layouts."""

import asyncio
import inspect
from unittest.mock import AsyncMock

import pytest

from invoice_desk.api.client import APIError
from invoice_desk.models import Client, Company, Customer, Transaction
from invoice_desk.templates import (
    BASELINE_TEMPLATE,
    InvoiceCanvas,
    LayoutStyle,
    PaperSize,
    TemplateRegistry,
    build_content,
    builtin_templates,
    get_registry,
)
from invoice_desk.templates.layouts import render_flowable


@pytest.fixture
def registry():
    return TemplateRegistry(builtin_templates())


@pytest.fixture
def company(company_data):
    return Company.from_api(company_data)


@pytest.fixture
def customer(party_data):
    return Customer.from_api(party_data)


class TestTemplateRegistry:
    """Tests for TemplateRegistry."""

    def test_catalogue_size(self, registry):
        assert len(registry) >= 15
        assert BASELINE_TEMPLATE in registry

    def test_names_are_unique(self):
        names = [t.name for t in builtin_templates()]

        assert len(names) == len(set(names))

    @pytest.mark.parametrize("name", [None, "", "template999", "TEMPLATE1"])
    def test_select_falls_back_to_baseline(self, registry, name):
        """Test that selection is total over unknown and empty names."""
        assert registry.resolve_name(name) == "template1"
        assert registry.select(name) is registry.info("template1").render

    def test_select_known_template(self, registry):
        assert registry.resolve_name("templateA5_3") == "templateA5_3"
        assert registry.info("template-t3").paper_size is PaperSize.THERMAL

    def test_baseline_must_be_registered(self):
        with pytest.raises(ValueError):
            TemplateRegistry(builtin_templates(), baseline="missing")

    def test_to_dict(self, registry):
        assert registry.info("templateA5").to_dict() == {
            "name": "templateA5",
            "label": "Template A5",
            "paper_size": "A5 Landscape",
        }

    def test_get_registry_is_cached(self):
        assert get_registry() is get_registry()


class TestFetchDefaultName:
    """Tests for the default-template lookup."""

    @pytest.mark.asyncio
    async def test_configured_default(self, registry, api):
        api.get_default_template = AsyncMock(return_value="template8")

        assert await registry.fetch_default_name(api) == "template8"

    @pytest.mark.asyncio
    async def test_unregistered_default(self, registry, api):
        api.get_default_template = AsyncMock(return_value="template42")

        assert await registry.fetch_default_name(api) == "template1"

    @pytest.mark.asyncio
    async def test_no_default(self, registry, api):
        api.get_default_template = AsyncMock(return_value=None)

        assert await registry.fetch_default_name(api) == "template1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [APIError("boom", status_code=500), asyncio.TimeoutError()])
    async def test_lookup_failure(self, registry, api, error):
        api.get_default_template = AsyncMock(side_effect=error)

        assert await registry.fetch_default_name(api) == "template1"


class TestBuildContent:
    """Tests for the printable invoice text."""

    def test_tax_invoice_with_intrastate_split(self, sales_transaction, company, customer):
        names = {sales_transaction.lines[0].reference_id: "Laptop Stand"}

        content = build_content(sales_transaction, company, customer, names)

        assert content.title == "TAX INVOICE"
        assert content.number == "INV-0042"
        assert content.issued_on == "15 Jan 2024"
        assert content.rows[0][1] == "Laptop Stand"
        assert [label for label, _ in content.totals] == ["Subtotal", "CGST", "SGST", "Total (Rs.)"]
        assert content.totals[-1][1] == "1,180.00"
        assert content.amount_words == "ONE THOUSAND ONE HUNDRED EIGHTY RUPEES ONLY"
        assert content.bill_to[0] == "Acme Retail"

    def test_proforma_title(self, sales_data, company, customer):
        sales_data["type"] = "proforma"
        tx = Transaction.from_api(sales_data)

        assert build_content(tx, company, customer).title == "PROFORMA INVOICE"

    def test_cobrand_line(self, sales_transaction, company, customer):
        content = build_content(
            sales_transaction, company, customer, owner_client=Client(id="cl1", contact_name="Priya Mehta")
        )

        assert content.cobrand == "Account managed by Priya Mehta"

    def test_narrow_columns(self, sales_transaction, company, customer):
        content = build_content(sales_transaction, company, customer, narrow=True)

        assert content.columns == ("Item", "Qty", "Amount")
        assert len(content.rows[0]) == 3

    def test_missing_records_still_build(self, sales_transaction):
        content = build_content(sales_transaction, None, None)

        assert content.title == "INVOICE"
        assert content.issuer_name == "Your Company"
        assert content.bill_to == ("Customer",)


class TestRenderEngines:
    """Tests for the two drawing engines and each template kind."""

    def test_flowable_returns_pdf(self, sales_transaction, company, customer):
        content = build_content(sales_transaction, company, customer)

        pdf = render_flowable(content, LayoutStyle(name="test"))

        assert pdf.startswith(b"%PDF")

    def test_canvas_requires_finalize(self, sales_transaction, company, customer):
        content = build_content(sales_transaction, company, customer)

        builder = InvoiceCanvas(LayoutStyle(name="test")).draw(content)
        first = builder.finalize()

        assert first.startswith(b"%PDF")
        assert builder.finalize() is first

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["template1", "template11", "templateA5", "template-t3"])
    async def test_each_template_kind_produces_a_document(self, registry, name, sales_transaction, company, customer):
        result = registry.select(name)(sales_transaction, company, customer, {})
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, InvoiceCanvas):
            result = result.finalize()

        assert result.startswith(b"%PDF")
