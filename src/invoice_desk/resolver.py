"""Entity resolution: hydrate the records a transaction only references.

A transaction may carry its counterparty, company and bank account as full
embedded objects, as partial objects, or as bare ids. The resolver looks up
whatever is missing, concurrently, and degrades a failed optional lookup to
``None`` instead of failing the attempt.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from invoice_desk.api.client import APIError, InvoiceAPIClient
from invoice_desk.delivery.errors import ResolutionFailedError
from invoice_desk.models import (
    BankAccount,
    Client,
    Company,
    Counterparty,
    Ref,
    ShippingAddress,
    Transaction,
    TransactionType,
    parse_counterparty,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Transaction types whose documents are meaningless without a counterparty
COUNTERPARTY_REQUIRED = frozenset({TransactionType.SALES, TransactionType.PROFORMA})

# Fields an embedded record must carry before it is used without a lookup
_COUNTERPARTY_FIELDS = ("name", "address")
_COMPANY_FIELDS = ("business_name", "address")
_CLIENT_FIELDS = ("contact_name",)
_BANK_FIELDS = ("bank_name",)


@dataclass(frozen=True)
class ResolvedEntities:
    """Everything a template needs beyond the transaction itself."""

    counterparty: Counterparty | None = None
    company: Company | None = None
    bank: BankAccount | None = None
    owner_client: Client | None = None
    shipping_address: ShippingAddress | None = None


def has_fields(record: Any, fields: tuple[str, ...]) -> bool:
    """Shape check: every named attribute is present and non-empty."""
    return record is not None and all(getattr(record, name, None) for name in fields)


class EntityResolver:
    """Fetches and normalises the records referenced by a transaction."""

    def __init__(self, client: InvoiceAPIClient):
        self.client = client
        self._logger = logger.bind(component="entity_resolver")

    async def resolve(
        self, transaction: Transaction, contact_field: str | None = None
    ) -> ResolvedEntities:
        """Resolve every related slot of ``transaction``.

        Args:
            transaction: The transaction being delivered.
            contact_field: Counterparty attribute the caller needs (``email``
                or ``phone``); an embedded counterparty without it is fetched.

        Raises:
            ResolutionFailedError: A counterparty is required for this
                transaction type and none could be identified.
        """
        counterparty_fields = _COUNTERPARTY_FIELDS + ((contact_field,) if contact_field else ())

        counterparty, company_and_client, bank = await asyncio.gather(
            self._resolve_counterparty(transaction, counterparty_fields),
            self._resolve_company(transaction.company),
            self._resolve_ref(
                "bank", transaction.bank, _BANK_FIELDS, self.client.get_bank_detail, BankAccount.from_api
            ),
        )
        company, owner_client = company_and_client

        if counterparty is None and transaction.type in COUNTERPARTY_REQUIRED:
            self._logger.warning(
                "required_counterparty_missing",
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
            )
            raise ResolutionFailedError("Counterparty information missing")

        return ResolvedEntities(
            counterparty=counterparty,
            company=company,
            bank=bank,
            owner_client=owner_client,
            shipping_address=transaction.shipping_address,
        )

    async def _resolve_counterparty(
        self, transaction: Transaction, fields: tuple[str, ...]
    ) -> Counterparty | None:
        kind = transaction.counterparty_kind
        fetch = self.client.get_vendor if kind == "vendor" else self.client.get_party
        return await self._resolve_ref(
            kind,
            transaction.counterparty,
            fields,
            fetch,
            lambda data: parse_counterparty(data, kind),
        )

    async def _resolve_company(
        self, ref: Ref[Company] | None
    ) -> tuple[Company | None, Client | None]:
        # The owner client hangs off the company, so it is chained here rather
        # than fanned out alongside the other slots.
        company = await self._resolve_ref(
            "company", ref, _COMPANY_FIELDS, self.client.get_company, Company.from_api
        )
        if company is None:
            return None, None
        owner_client = await self._resolve_ref(
            "client", company.client, _CLIENT_FIELDS, self.client.get_client, Client.from_api
        )
        return company, owner_client

    async def _resolve_ref(
        self,
        slot: str,
        ref: Ref[T] | None,
        fields: tuple[str, ...],
        fetch: Callable[[str], Awaitable[dict[str, Any]]],
        parse: Callable[[dict[str, Any]], T],
    ) -> T | None:
        """Use an embedded record that passes the shape check, else look it up.

        A failed lookup falls back to whatever partial record was embedded.
        """
        if ref is None:
            return None
        if has_fields(ref.value, fields):
            return ref.value
        if ref.id is None:
            return ref.value

        try:
            data = await fetch(ref.id)
        except APIError as e:
            self._logger.warning(
                "lookup_failed",
                slot=slot,
                ref_id=ref.id,
                status=e.status_code,
                error=str(e),
            )
            return ref.value

        record = parse(data)
        self._logger.debug("lookup_succeeded", slot=slot, ref_id=ref.id)
        return record


async def load_item_names(client: InvoiceAPIClient) -> dict[str, str]:
    """Build the product/service id -> display name lookup.

    Either collection failing just leaves its names out; lines then fall back
    to the names embedded on the transaction.
    """
    products, services = await asyncio.gather(
        client.list_products(), client.list_services(), return_exceptions=True
    )
    names: dict[str, str] = {}
    for label, result, name_key in (
        ("products", products, "name"),
        ("services", services, "serviceName"),
    ):
        if isinstance(result, BaseException):
            logger.warning("item_names_unavailable", collection=label, error=str(result))
            continue
        for item in result:
            item_id = item.get("_id") or item.get("id")
            name = item.get(name_key) or item.get("name")
            if isinstance(item_id, str) and isinstance(name, str) and name:
                names[item_id] = name
    return names
