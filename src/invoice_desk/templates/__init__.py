"""Invoice document templates."""

from invoice_desk.templates.layouts import InvoiceCanvas, InvoiceContent, LayoutStyle, build_content
from invoice_desk.templates.registry import (
    BASELINE_TEMPLATE,
    PaperSize,
    RenderFn,
    TemplateInfo,
    TemplateRegistry,
    builtin_templates,
    get_registry,
)

__all__ = [
    "BASELINE_TEMPLATE",
    "InvoiceCanvas",
    "InvoiceContent",
    "LayoutStyle",
    "PaperSize",
    "RenderFn",
    "TemplateInfo",
    "TemplateRegistry",
    "build_content",
    "builtin_templates",
    "get_registry",
]
