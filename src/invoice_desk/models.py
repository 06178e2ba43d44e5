"""Domain records for the invoice pipeline.

Records are parsed once, at the data-access boundary, from the data service's
camelCase JSON. Everything past ``from_api`` works with these frozen
dataclasses only; nothing downstream re-sniffs raw dictionaries.

Related records are referenced either by id or by an embedded (possibly
partial) object. Both shapes are captured by :class:`Ref`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

CounterpartyKind = Literal["customer", "vendor"]


class TransactionType(str, Enum):
    """Kinds of transaction kept by the data service."""

    SALES = "sales"
    PURCHASES = "purchases"
    RECEIPT = "receipt"
    PAYMENT = "payment"
    JOURNAL = "journal"
    PROFORMA = "proforma"

    @property
    def is_invoiceable(self) -> bool:
        """Whether an invoice document can be produced for this type."""
        return self in INVOICEABLE_TYPES


INVOICEABLE_TYPES = frozenset({TransactionType.SALES, TransactionType.PROFORMA})


# === Boundary helpers ===


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce a JSON number or numeric string to Decimal."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def extract_id(raw: Any) -> str | None:
    """Normalise the id shapes the data service emits.

    Accepts a bare string, ``{"$oid": ...}`` and objects carrying ``_id`` or
    ``id`` (which may themselves be ``$oid`` wrappers).
    """
    if isinstance(raw, str):
        return raw.strip() or None
    if isinstance(raw, dict):
        for key in ("$oid", "_id", "id"):
            if key in raw:
                return extract_id(raw[key])
    return None


def _text(data: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_date(raw: Any) -> date | None:
    """Parse ISO dates and timestamps (``2024-01-15T00:00:00.000Z``)."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str) and raw.strip():
        value = raw.strip()
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            try:
                return date.fromisoformat(value[:10])
            except ValueError:
                return None
    return None


_REF_ONLY_KEYS = frozenset({"_id", "id", "$oid", "__v"})


@dataclass(frozen=True)
class Ref(Generic[T]):
    """A reference that is either an id, an embedded object, or both."""

    id: str | None = None
    value: T | None = None

    @property
    def is_embedded(self) -> bool:
        return self.value is not None

    @classmethod
    def parse(cls, raw: Any, parser: Callable[[dict[str, Any]], T]) -> "Ref[T] | None":
        """Normalise ``{id} | T`` into a Ref; returns None for empty input."""
        if isinstance(raw, str):
            ref_id = extract_id(raw)
            return cls(id=ref_id) if ref_id else None
        if isinstance(raw, dict):
            ref_id = extract_id(raw)
            value = parser(raw) if set(raw) - _REF_ONLY_KEYS else None
            if ref_id is None and value is None:
                return None
            return cls(id=ref_id, value=value)
        return None


# === Entities ===


@dataclass(frozen=True)
class Customer:
    """A customer ("party") of the issuing company."""

    id: str | None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    gstin: str | None = None
    kind: CounterpartyKind = field(default="customer", init=False)

    @property
    def display_name(self) -> str:
        return self.name or "Customer"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Customer":
        return cls(id=extract_id(data), name=_text(data, "name"), **_contact_fields(data))


@dataclass(frozen=True)
class Vendor:
    """A vendor the issuing company buys from."""

    id: str | None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    gstin: str | None = None
    kind: CounterpartyKind = field(default="vendor", init=False)

    @property
    def display_name(self) -> str:
        return self.name or "Vendor"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Vendor":
        return cls(
            id=extract_id(data),
            name=_text(data, "vendorName", "name"),
            **_contact_fields(data),
        )


Counterparty = Customer | Vendor


def _contact_fields(data: dict[str, Any]) -> dict[str, str | None]:
    return {
        "email": _text(data, "email"),
        "phone": _text(data, "contactNumber", "phone", "mobileNumber"),
        "address": _text(data, "address"),
        "city": _text(data, "city"),
        "state": _text(data, "state"),
        "pincode": _text(data, "pincode"),
        "gstin": _text(data, "gstin"),
    }


def parse_counterparty(
    data: dict[str, Any], kind: CounterpartyKind | None = None
) -> Counterparty:
    """Decide customer vs vendor once, from the collection or field shape."""
    if kind == "vendor" or (kind is None and "vendorName" in data):
        return Vendor.from_api(data)
    return Customer.from_api(data)


@dataclass(frozen=True)
class Client:
    """The reseller/account holder that owns an issuing company."""

    id: str | None
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Client":
        return cls(
            id=extract_id(data),
            contact_name=_text(data, "contactName"),
            email=_text(data, "email"),
            phone=_text(data, "phone"),
            company_name=_text(data, "companyName"),
        )


@dataclass(frozen=True)
class BankAccount:
    """Payment details printed on an invoice."""

    id: str | None
    bank_name: str | None = None
    account_number: str | None = None
    ifsc_code: str | None = None
    branch_address: str | None = None
    city: str | None = None
    upi_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "BankAccount":
        return cls(
            id=extract_id(data),
            bank_name=_text(data, "bankName"),
            account_number=_text(data, "accountNumber"),
            ifsc_code=_text(data, "ifscCode"),
            branch_address=_text(data, "branchAddress"),
            city=_text(data, "city"),
            upi_id=_text(data, "upiId"),
        )


@dataclass(frozen=True)
class Company:
    """The business entity issuing the invoice."""

    id: str | None
    business_name: str | None = None
    registration_number: str | None = None
    gstin: str | None = None
    pan: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    pincode: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    logo: str | None = None
    client: Ref[Client] | None = None

    @property
    def display_name(self) -> str:
        return self.business_name or "Your Company"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Company":
        return cls(
            id=extract_id(data),
            business_name=_text(data, "businessName", "companyName"),
            registration_number=_text(data, "registrationNumber"),
            gstin=_text(data, "gstin"),
            pan=_text(data, "PANNumber"),
            address=_text(data, "address"),
            city=_text(data, "City"),
            state=_text(data, "addressState", "gstState"),
            country=_text(data, "Country"),
            pincode=_text(data, "Pincode"),
            phone=_text(data, "mobileNumber", "contactNumber", "Telephone"),
            email=_text(data, "emailId"),
            website=_text(data, "Website"),
            logo=_text(data, "logo"),
            client=Ref.parse(data.get("client") or data.get("selectedClient"), Client.from_api),
        )


@dataclass(frozen=True)
class ShippingAddress:
    """Ship-to block; only used when it carries an actual address."""

    label: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    contact_number: str | None = None

    @property
    def is_usable(self) -> bool:
        return bool(self.address or self.city or self.state)

    @classmethod
    def from_api(cls, data: Any) -> "ShippingAddress | None":
        if not isinstance(data, dict):
            return None
        address = cls(
            label=_text(data, "label"),
            address=_text(data, "address"),
            city=_text(data, "city"),
            state=_text(data, "state"),
            pincode=_text(data, "pincode"),
            contact_number=_text(data, "contactNumber"),
        )
        return address if address.is_usable else None


@dataclass(frozen=True)
class LineItem:
    """A product or service line on a transaction."""

    kind: Literal["product", "service"]
    name: str | None = None
    reference_id: str | None = None
    quantity: Decimal = Decimal("1")
    unit: str | None = None
    unit_price: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    tax_rate: Decimal | None = None
    tax: Decimal | None = None
    code: str | None = None
    description: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.amount + (self.tax or Decimal("0"))

    @classmethod
    def from_api(cls, row: dict[str, Any], kind: Literal["product", "service"]) -> "LineItem":
        is_service = kind == "service"
        ref_raw = row.get("service") if is_service else row.get("product")
        ref_id = extract_id(ref_raw) or _text(row, "serviceId" if is_service else "productId")

        name = _text(row, "name", "productName")
        if name is None and isinstance(ref_raw, dict):
            name = _text(ref_raw, "serviceName" if is_service else "name")
        if name is None and is_service and isinstance(row.get("serviceName"), str):
            name = _text(row, "serviceName")

        quantity = Decimal("1") if is_service else to_decimal(row.get("quantity"), Decimal("1"))
        amount = to_decimal(row.get("amount"))
        unit_price = to_decimal(row.get("pricePerUnit"))
        if not amount:
            amount = unit_price * quantity
        if not unit_price and quantity:
            unit_price = amount / quantity

        if row.get("unitType") == "Other" and row.get("otherUnit"):
            unit = _text(row, "otherUnit")
        else:
            unit = _text(row, "unitType", "unit", "unitName")

        tax_rate = to_decimal(row.get("gstPercentage"))
        tax = to_decimal(row.get("lineTax"))
        return cls(
            kind=kind,
            name=name,
            reference_id=ref_id,
            quantity=quantity,
            unit=unit,
            unit_price=unit_price,
            amount=amount,
            tax_rate=tax_rate if tax_rate > 0 else None,
            tax=tax if tax > 0 else None,
            code=_text(row, "sac", "sacCode") if is_service else _text(row, "hsn", "hsnCode"),
            description=_text(row, "description"),
        )


@dataclass(frozen=True)
class Transaction:
    """A financial transaction as fetched from the data service."""

    id: str
    type: TransactionType
    date: date | None = None
    total_amount: Decimal = Decimal("0")
    payment_method: str | None = None
    lines: tuple[LineItem, ...] = ()
    counterparty: Ref[Counterparty] | None = None
    counterparty_kind: CounterpartyKind = "customer"
    company: Ref[Company] | None = None
    bank: Ref[BankAccount] | None = None
    shipping_address: ShippingAddress | None = None
    invoice_number: str | None = None
    reference_number: str | None = None
    description: str | None = None
    notes: str | None = None
    due_date: date | None = None
    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None

    @property
    def document_number(self) -> str | None:
        return self.invoice_number or self.reference_number

    @property
    def document_filename(self) -> str:
        """Deterministic download name for this transaction's invoice."""
        number = self.document_number or (self.id or "INV")[-6:].upper()
        return f"Invoice-{number}.pdf"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Transaction":
        tx_id = extract_id(data)
        if tx_id is None:
            raise ValueError("Transaction record has no id")
        tx_type = TransactionType(str(data.get("type", "")).lower())

        lines: list[LineItem] = []
        for row in data.get("products") or []:
            if isinstance(row, dict):
                lines.append(LineItem.from_api(row, "product"))
        services = data.get("services") or []
        legacy = data.get("service")
        if isinstance(legacy, list):
            services = [*services, *legacy]
        for row in services:
            if isinstance(row, dict):
                lines.append(LineItem.from_api(row, "service"))

        kind: CounterpartyKind = "customer"
        counterparty_raw = data.get("party")
        if not counterparty_raw and data.get("vendor"):
            kind = "vendor"
            counterparty_raw = data.get("vendor")

        subtotal = data.get("subtotal")
        tax_amount = data.get("taxAmount")
        total = data.get("totalAmount", data.get("invoiceTotal"))
        if total is None:
            total = data.get("amount")

        return cls(
            id=tx_id,
            type=tx_type,
            date=parse_date(data.get("date")),
            total_amount=to_decimal(total),
            payment_method=_text(data, "paymentMethod"),
            lines=tuple(lines),
            counterparty=Ref.parse(counterparty_raw, lambda d: parse_counterparty(d, kind)),
            counterparty_kind=kind,
            company=Ref.parse(data.get("company"), Company.from_api),
            bank=Ref.parse(data.get("bank"), BankAccount.from_api),
            shipping_address=ShippingAddress.from_api(data.get("shippingAddress")),
            invoice_number=_text(data, "invoiceNumber"),
            reference_number=_text(data, "referenceNumber"),
            description=_text(data, "description", "narration"),
            notes=_text(data, "notes"),
            due_date=parse_date(data.get("dueDate")),
            subtotal=to_decimal(subtotal) if subtotal is not None else None,
            tax_amount=to_decimal(tax_amount) if tax_amount is not None else None,
        )


@dataclass(frozen=True)
class RenderedDocument:
    """Bytes produced by a template plus the name to present them under."""

    content: bytes
    filename: str
    template: str
    media_type: str = "application/pdf"

    @property
    def size(self) -> int:
        return len(self.content)
