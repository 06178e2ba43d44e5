"""Template registry: name -> render function, with catalogue metadata."""

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Protocol

import structlog

from invoice_desk.config.settings import get_settings
from invoice_desk.models import (
    BankAccount,
    Client,
    Company,
    Counterparty,
    ShippingAddress,
    Transaction,
)
from invoice_desk.templates.layouts import (
    PAGE_A4,
    PAGE_A5,
    PAGE_A5_LANDSCAPE,
    PAGE_THERMAL,
    InvoiceCanvas,
    LayoutStyle,
    build_content,
    render_flowable,
)

logger = structlog.get_logger(__name__)

BASELINE_TEMPLATE = "template1"


class RenderFn(Protocol):
    """Signature shared by every template.

    The return value is bytes, a ``BytesIO``, a builder with ``finalize()``,
    or an awaitable of one of those; the renderer normalises all of them.
    """

    def __call__(
        self,
        transaction: Transaction,
        company: Company | None,
        counterparty: Counterparty | None,
        item_names: Mapping[str, str],
        shipping_address: ShippingAddress | None = None,
        bank: BankAccount | None = None,
        owner_client: Client | None = None,
    ) -> Any: ...


class PaperSize(str, Enum):
    A4 = "A4"
    A5 = "A5"
    A5_LANDSCAPE = "A5 Landscape"
    THERMAL = "Thermal Invoice"


_PAGE_SIZES = {
    PaperSize.A4: PAGE_A4,
    PaperSize.A5: PAGE_A5,
    PaperSize.A5_LANDSCAPE: PAGE_A5_LANDSCAPE,
    PaperSize.THERMAL: PAGE_THERMAL,
}


@dataclass(frozen=True)
class TemplateInfo:
    """A registered template and how it is presented in the catalogue."""

    name: str
    label: str
    paper_size: PaperSize
    render: RenderFn

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "label": self.label, "paper_size": self.paper_size.value}


# === Template factories ===


def flowable_template(style: LayoutStyle) -> RenderFn:
    """A template that returns finished PDF bytes."""

    def render(
        transaction, company, counterparty, item_names, shipping_address=None, bank=None, owner_client=None
    ) -> bytes:
        content = build_content(
            transaction, company, counterparty, item_names, shipping_address, bank, owner_client,
            show_codes=style.show_codes, narrow=style.narrow,
        )
        return render_flowable(content, style)

    render.__qualname__ = render.__name__ = f"render_{style.name}"
    return render


def canvas_template(style: LayoutStyle) -> RenderFn:
    """A template that returns an unfinalised :class:`InvoiceCanvas`."""

    def render(
        transaction, company, counterparty, item_names, shipping_address=None, bank=None, owner_client=None
    ) -> InvoiceCanvas:
        content = build_content(
            transaction, company, counterparty, item_names, shipping_address, bank, owner_client,
            show_codes=style.show_codes, narrow=style.narrow,
        )
        return InvoiceCanvas(style).draw(content)

    render.__qualname__ = render.__name__ = f"render_{style.name}"
    return render


def async_template(style: LayoutStyle) -> RenderFn:
    """A template whose layout runs off the event loop and must be awaited."""

    async def render(
        transaction, company, counterparty, item_names, shipping_address=None, bank=None, owner_client=None
    ) -> bytes:
        content = build_content(
            transaction, company, counterparty, item_names, shipping_address, bank, owner_client,
            show_codes=style.show_codes, narrow=style.narrow,
        )
        return await asyncio.to_thread(render_flowable, content, style)

    render.__qualname__ = render.__name__ = f"render_{style.name}"
    return render


# (name, label, paper size, accent, factory, extra style options)
_CATALOGUE: tuple[tuple[str, str, PaperSize, str, Any, dict[str, Any]], ...] = (
    ("template1", "Template 1", PaperSize.A4, "#3b82f6", flowable_template, {}),
    ("template8", "Template 2", PaperSize.A4, "#a855f7", flowable_template, {"banded_rows": True}),
    ("template11", "Template 3", PaperSize.A4, "#1f2937", canvas_template, {}),
    ("template12", "Template 4", PaperSize.A4, "#22c55e", flowable_template, {"banded_rows": True}),
    ("template16", "Template 5", PaperSize.A4, "#d97706", flowable_template, {}),
    ("template17", "Template 6", PaperSize.A4, "#4f46e5", canvas_template, {}),
    ("template19", "Template 7", PaperSize.A4, "#0d9488", canvas_template, {"show_codes": False}),
    ("template20", "Template 8", PaperSize.A4, "#4f46e5", flowable_template, {"font_size": 8.5}),
    ("template21", "Template 9", PaperSize.A4, "#0d9488", flowable_template, {"show_codes": False}),
    ("templateA5", "Template A5", PaperSize.A5_LANDSCAPE, "#ec4899", async_template, {"font_size": 8}),
    ("templateA5_2", "Template A5-2", PaperSize.A5, "#22c55e", async_template, {"font_size": 8}),
    ("templateA5_3", "Template A5-3", PaperSize.A5, "#f97316", async_template, {"font_size": 8}),
    ("templateA5_4", "Template A5-4", PaperSize.A5_LANDSCAPE, "#06b6d4", async_template, {"font_size": 8}),
    ("templateA5_5", "Template A5-5", PaperSize.A5_LANDSCAPE, "#06b6d4", async_template,
     {"font_size": 8, "banded_rows": True}),
    ("template-t3", "Template T3", PaperSize.THERMAL, "#000000", async_template,
     {"font_size": 7, "narrow": True, "show_codes": False}),
    ("template18", "Template T3-2", PaperSize.THERMAL, "#000000", async_template,
     {"font_size": 7.5, "narrow": True, "show_codes": False}),
    # Older layouts that are still honoured when stored as a default
    ("template2", "Classic 2", PaperSize.A4, "#0f172a", canvas_template, {}),
    ("template3", "Classic 3", PaperSize.A4, "#b91c1c", canvas_template, {}),
    ("template4", "Classic 4", PaperSize.A4, "#15803d", canvas_template, {"show_codes": False}),
    ("template5", "Classic 5", PaperSize.A4, "#7c3aed", canvas_template, {}),
    ("template6", "Classic 6", PaperSize.A4, "#0369a1", canvas_template, {"font_size": 8.5}),
    ("template7", "Classic 7", PaperSize.A4, "#be185d", canvas_template, {}),
)


def builtin_templates() -> list[TemplateInfo]:
    templates = []
    for name, label, paper, accent, factory, options in _CATALOGUE:
        style = LayoutStyle(name=name, page_size=_PAGE_SIZES[paper], accent=accent, **options)
        templates.append(TemplateInfo(name=name, label=label, paper_size=paper, render=factory(style)))
    return templates


class TemplateRegistry:
    """Maps template names to render functions.

    ``select`` is total: unknown, unregistered and empty names all yield the
    baseline template.
    """

    def __init__(self, templates: Iterable[TemplateInfo], baseline: str = BASELINE_TEMPLATE):
        self._templates: dict[str, TemplateInfo] = {t.name: t for t in templates}
        if baseline not in self._templates:
            raise ValueError(f"Baseline template {baseline!r} is not registered")
        self.baseline = baseline
        self._logger = logger.bind(component="template_registry")

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def names(self) -> list[str]:
        return list(self._templates)

    def resolve_name(self, name: str | None) -> str:
        """Return ``name`` if registered, otherwise the baseline name."""
        if name and name in self._templates:
            return name
        if name:
            self._logger.info("unknown_template", requested=name, fallback=self.baseline)
        return self.baseline

    def select(self, name: str | None) -> RenderFn:
        return self._templates[self.resolve_name(name)].render

    def info(self, name: str | None) -> TemplateInfo:
        return self._templates[self.resolve_name(name)]

    def catalogue(self) -> list[TemplateInfo]:
        return list(self._templates.values())

    async def fetch_default_name(self, client: Any) -> str:
        """Read the configured default template, falling back to the baseline.

        The lookup is a soft dependency: any failure yields the baseline.
        """
        try:
            name = await client.get_default_template()
        except Exception as e:
            self._logger.warning("default_template_unavailable", error=str(e))
            return self.baseline
        return self.resolve_name(name)


@lru_cache
def get_registry() -> TemplateRegistry:
    """Get the process-wide registry of built-in templates."""
    return TemplateRegistry(builtin_templates(), baseline=get_settings().baseline_template)
