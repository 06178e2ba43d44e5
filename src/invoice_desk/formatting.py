"""Presentation helpers shared by templates and message composers."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from invoice_desk.models import Company, Counterparty, LineItem, ShippingAddress, Transaction

TWO_PLACES = Decimal("0.01")

_ONES = (
    "", "ONE", "TWO", "THREE", "FOUR", "FIVE", "SIX", "SEVEN", "EIGHT", "NINE",
    "TEN", "ELEVEN", "TWELVE", "THIRTEEN", "FOURTEEN", "FIFTEEN", "SIXTEEN",
    "SEVENTEEN", "EIGHTEEN", "NINETEEN",
)
_TENS = ("", "", "TWENTY", "THIRTY", "FORTY", "FIFTY", "SIXTY", "SEVENTY", "EIGHTY", "NINETY")

# Indian numbering scale, largest first
_SCALE = ((10_000_000, "CRORE"), (100_000, "LAKH"), (1_000, "THOUSAND"))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _group_indian(digits: str) -> str:
    """Group an integer string as 12,34,567 (last three, then pairs)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs) + "," + tail


def format_amount(value: Decimal, always_decimals: bool = True) -> str:
    """Format an amount with Indian digit grouping.

    With ``always_decimals=False`` whole amounts drop the ``.00`` suffix, the
    way totals are printed on the compact layouts.
    """
    value = quantize(value)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    grouped = _group_indian(whole)
    if not always_decimals and fraction == "00":
        return f"{sign}{grouped}"
    return f"{sign}{grouped}.{fraction}"


def format_money(value: Decimal, symbol: str = "₹") -> str:
    return f"{symbol}{format_amount(value)}"


def _below_thousand(n: int) -> str:
    words = []
    if n >= 100:
        words.append(f"{_ONES[n // 100]} HUNDRED")
        n %= 100
    if n >= 20:
        words.append(_TENS[n // 10] + (f" {_ONES[n % 10]}" if n % 10 else ""))
    elif n:
        words.append(_ONES[n])
    return " ".join(words)


def _integer_words(n: int) -> str:
    if n == 0:
        return "ZERO"
    parts = []
    for size, label in _SCALE:
        if n >= size:
            parts.append(f"{_integer_words(n // size)} {label}")
            n %= size
    if n:
        parts.append(_below_thousand(n))
    return " ".join(parts)


def amount_in_words(value: Decimal) -> str:
    """Spell an amount in Indian numbering: rupees, optionally paise."""
    value = quantize(abs(value))
    rupees = int(value)
    paise = int((value - rupees) * 100)
    if rupees == 0 and paise == 0:
        return "ZERO RUPEES ONLY"
    if paise:
        return f"{_integer_words(rupees)} AND {_integer_words(paise)} PAISE ONLY"
    return f"{_integer_words(rupees)} RUPEES ONLY"


def format_invoice_date(value: date | None) -> str:
    """``15 Jan 2024``; empty string when no date is known."""
    if value is None:
        return ""
    return value.strftime("%d %b %Y")


def normalize_phone(raw: str | None, country_code: str = "91") -> str | None:
    """Reduce a phone number to digits and add the country code to local numbers."""
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return None
    if len(digits) == 10 and not digits.startswith(country_code):
        digits = f"{country_code}{digits}"
    return digits


def unified_lines(
    transaction: Transaction, item_names: Mapping[str, str] | None = None
) -> list[LineItem]:
    """Lines with human-readable names, synthesising one when a transaction has none."""
    item_names = item_names or {}
    lines = []
    for line in transaction.lines:
        name = line.name
        if not name and line.reference_id:
            name = item_names.get(line.reference_id)
        lines.append(replace(line, name=name or ("Service" if line.kind == "service" else "Item")))

    if not lines:
        amount = transaction.subtotal or transaction.total_amount
        lines.append(
            LineItem(
                kind="service",
                name=transaction.description or "Item",
                quantity=Decimal("1"),
                unit_price=amount,
                amount=amount,
                tax=transaction.tax_amount or None,
            )
        )
    return lines


@dataclass(frozen=True)
class TaxSplit:
    """GST due on one line."""

    cgst: Decimal = Decimal("0")
    sgst: Decimal = Decimal("0")
    igst: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


def _normalize_state(state: str) -> str:
    return re.sub(r"[^a-z]", "", state.lower())


def is_interstate(
    company: Company | None,
    counterparty: Counterparty | None,
    shipping_address: ShippingAddress | None = None,
) -> bool:
    """Supply crosses state lines when issuer and recipient states differ."""
    recipient = (shipping_address.state if shipping_address else None) or (
        counterparty.state if counterparty else None
    )
    supplier = company.state if company else None
    if not supplier or not recipient:
        return False
    return _normalize_state(supplier) != _normalize_state(recipient)


def split_tax(line: LineItem, interstate: bool) -> TaxSplit:
    if line.tax_rate:
        tax = quantize(line.amount * line.tax_rate / 100)
    else:
        tax = line.tax or Decimal("0")
    if not tax:
        return TaxSplit()
    if interstate:
        return TaxSplit(igst=tax)
    half = quantize(tax / 2)
    return TaxSplit(cgst=half, sgst=tax - half)


@dataclass(frozen=True)
class InvoiceTotals:
    """Aggregates printed at the foot of every layout."""

    lines: tuple[LineItem, ...]
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total: Decimal
    gst_applicable: bool
    interstate: bool

    @property
    def tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


def derive_totals(
    transaction: Transaction,
    company: Company | None,
    counterparty: Counterparty | None,
    item_names: Mapping[str, str] | None = None,
    shipping_address: ShippingAddress | None = None,
) -> InvoiceTotals:
    """Compute subtotal, GST split and grand total for a transaction.

    GST only applies when the issuer carries a GSTIN; unregistered issuers
    print plain amounts.
    """
    lines = tuple(unified_lines(transaction, item_names))
    interstate = is_interstate(company, counterparty, shipping_address)
    gst_applicable = bool(company and company.gstin)

    subtotal = sum((line.amount for line in lines), Decimal("0"))
    cgst = sgst = igst = Decimal("0")
    if gst_applicable:
        for line in lines:
            split = split_tax(line, interstate)
            cgst += split.cgst
            sgst += split.sgst
            igst += split.igst

    total = subtotal + cgst + sgst + igst
    if transaction.total_amount and not gst_applicable:
        total = transaction.total_amount
    return InvoiceTotals(
        lines=lines,
        subtotal=quantize(subtotal),
        cgst=quantize(cgst),
        sgst=quantize(sgst),
        igst=quantize(igst),
        total=quantize(total),
        gst_applicable=gst_applicable,
        interstate=interstate,
    )
