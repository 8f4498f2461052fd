"""Receipt, line item, customer and store records consumed by the aggregators.

The data layer owns these entities; the aggregation core only ever sees
immutable, fully materialised snapshots of them. Raw mappings coming from
the data layer are turned into records by :func:`coerce_receipts`, which
skips malformed rows instead of failing the whole batch so that one bad
receipt never blanks an entire dashboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

from retail_analytics.foundation.money import (
    CENT,
    InvalidAmountError,
    sum_amounts,
    to_decimal,
)

logger = logging.getLogger(__name__)

#: Label used for line items that carry no category.
DEFAULT_CATEGORY_LABEL = "Divers"

#: Display name used for receipts whose store has no name.
UNKNOWN_STORE_NAME = "Magasin inconnu"


class MalformedRecordError(ValueError):
    """Raised when a raw receipt mapping cannot be turned into a Receipt."""


class ReceiptStatus(str, Enum):
    """Lifecycle status of a receipt, valued as stored by the data layer."""

    ISSUED = "EMIS"
    CLAIMED = "RECLAME"
    REFUNDED = "REMBOURSE"
    CANCELLED = "ANNULE"

    @classmethod
    def parse(cls, value: "ReceiptStatus | str") -> "ReceiptStatus":
        """Accept a member, a member name or a stored value (any case)."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Receipt status must be a string, got {value!r}")
        normalised = value.strip().upper()
        for member in cls:
            if normalised in (member.name, member.value):
                return member
        raise ValueError(f"Unknown receipt status: {value!r}")


class Category:
    """Normalised, free-text product category.

    Labels are trimmed and internal whitespace collapsed; equality and
    hashing use the casefolded label so that ``"Hi-Tech"`` and
    ``" hi-tech "`` are the same category. The display label keeps the
    casing it was first created with.

    A category only compares equal to another ``Category``; wrap raw labels
    before using them as keys or in membership tests.
    """

    __slots__ = ("label", "key")

    def __init__(self, label: str | None) -> None:
        if label is not None and not isinstance(label, str):
            raise ValueError(f"Category label must be a string, got {label!r}")
        cleaned = " ".join((label or "").split())
        if not cleaned:
            cleaned = DEFAULT_CATEGORY_LABEL
        self.label = cleaned
        self.key = cleaned.casefold()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Category):
            return self.key == other.key
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"Category({self.label!r})"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class LineItem:
    """One product line of a receipt."""

    category: Category
    product_name: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Line item quantity must be positive: {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(
                f"Line item unit price cannot be negative: {self.unit_price}"
            )

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Customer:
    """A known customer a receipt can be linked to.

    Attributes
    ----------
    customer_id:
        Unique customer identifier.
    first_name, last_name, email:
        Contact fields as held by the data layer.
    created_at:
        When the customer record was created, used to flag new customers.
    has_loyalty_account:
        Whether the customer holds a loyalty account.
    """

    customer_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    created_at: datetime | None = None
    has_loyalty_account: bool = False


@dataclass(frozen=True)
class Store:
    store_id: str
    name: str = UNKNOWN_STORE_NAME
    city: str = ""


@dataclass(frozen=True)
class Receipt:
    """A completed transaction.

    Notes
    -----
    ``total`` is what the store charged. It is expected to equal the sum of
    the line totals but the two are not forced to agree; ingestion logs (or
    optionally rejects) receipts where they diverge.

    ``created_at`` is always timezone-aware.
    """

    receipt_id: str
    store: Store
    total: Decimal
    status: ReceiptStatus
    created_at: datetime
    line_items: tuple[LineItem, ...] = ()
    customer: Customer | None = None

    def __post_init__(self) -> None:
        if self.created_at.tzinfo is None:
            raise ValueError(
                f"Receipt {self.receipt_id} created_at must be timezone-aware"
            )

    @property
    def customer_id(self) -> str | None:
        return self.customer.customer_id if self.customer is not None else None

    @property
    def is_identified(self) -> bool:
        return self.customer is not None

    @property
    def is_digital(self) -> bool:
        """Claimed receipts are the ones the customer retrieved digitally."""
        return self.status is ReceiptStatus.CLAIMED

    @property
    def line_items_total(self) -> Decimal:
        return sum_amounts(item.line_total for item in self.line_items)


@dataclass(frozen=True)
class SkippedRecord:
    index: int
    reason: str


@dataclass
class IngestionResult:
    """Receipts accepted by ingestion plus a trace of what was skipped."""

    receipts: list[Receipt]
    skipped: list[SkippedRecord] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise MalformedRecordError(f"Invalid timestamp: {value!r}") from exc
    if not isinstance(value, datetime):
        raise MalformedRecordError(
            f"created_at must be a datetime or ISO 8601 string, got {value!r}"
        )
    if value.tzinfo is None:
        # The data layer stores UTC
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedRecordError(f"Invalid quantity: {value!r}")
    try:
        quantity = to_decimal(value)
    except InvalidAmountError as exc:
        raise MalformedRecordError(f"Invalid quantity: {value!r}") from exc
    if quantity != quantity.to_integral_value():
        raise MalformedRecordError(f"Quantity must be a whole number, got {value!r}")
    return int(quantity)


def _coerce_line_item(raw: Mapping[str, Any]) -> LineItem:
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"Invalid line item: {raw!r}")
    quantity = _parse_quantity(raw.get("quantity", 1))
    try:
        unit_price = to_decimal(raw.get("unit_price", raw.get("unitPrice")))
    except (InvalidAmountError, TypeError, ValueError) as exc:
        raise MalformedRecordError(f"Invalid line item: {exc}") from exc
    try:
        return LineItem(
            category=Category(raw.get("category")),
            product_name=str(raw.get("product_name", raw.get("productName", ""))),
            quantity=quantity,
            unit_price=unit_price,
        )
    except (TypeError, ValueError) as exc:
        raise MalformedRecordError(str(exc)) from exc


def _coerce_customer(raw: Mapping[str, Any]) -> Customer | None:
    customer = raw.get("customer")
    if isinstance(customer, Customer):
        return customer
    if isinstance(customer, Mapping):
        customer_id = customer.get("customer_id", customer.get("id")) or raw.get(
            "customer_id", raw.get("customerId")
        )
        if not customer_id:
            raise MalformedRecordError("Linked customer is missing its id")
        created_at = customer.get("created_at", customer.get("createdAt"))
        return Customer(
            customer_id=str(customer_id),
            first_name=str(customer.get("first_name", customer.get("firstName", ""))),
            last_name=str(customer.get("last_name", customer.get("lastName", ""))),
            email=str(customer.get("email", "")),
            created_at=_parse_timestamp(created_at) if created_at else None,
            has_loyalty_account=bool(
                customer.get("has_loyalty_account", customer.get("loyaltyAccount"))
            ),
        )
    if customer is not None:
        raise MalformedRecordError(f"Invalid linked customer: {customer!r}")
    customer_id = raw.get("customer_id", raw.get("customerId"))
    if customer_id:
        return Customer(customer_id=str(customer_id))
    return None


def _coerce_store(raw: Mapping[str, Any]) -> Store:
    store = raw.get("store")
    if isinstance(store, Store):
        return store
    if isinstance(store, Mapping):
        store_id = store.get("store_id", store.get("id", raw.get("store_id")))
        name = store.get("name") or UNKNOWN_STORE_NAME
        city = store.get("city", "")
    elif store is not None:
        raise MalformedRecordError(f"Invalid store: {store!r}")
    else:
        store_id = raw.get("store_id", raw.get("storeId"))
        name = raw.get("store_name") or UNKNOWN_STORE_NAME
        city = ""
    if not store_id:
        raise MalformedRecordError("Receipt is missing its store reference")
    return Store(store_id=str(store_id), name=str(name), city=str(city or ""))


def coerce_receipt(raw: Mapping[str, Any]) -> Receipt:
    """Build a :class:`Receipt` from a raw mapping.

    Accepts both snake_case keys and the camelCase keys used by the data
    layer (``totalAmount``, ``createdAt``, ``lineItems``...).

    Raises
    ------
    MalformedRecordError
        If a required field is missing or cannot be interpreted.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"Expected a mapping, got {type(raw).__name__}")

    receipt_id = raw.get("receipt_id", raw.get("id"))
    if not receipt_id:
        raise MalformedRecordError("Receipt is missing its id")

    created_at = raw.get("created_at", raw.get("createdAt"))
    if created_at is None:
        raise MalformedRecordError(f"Receipt {receipt_id} has no timestamp")

    try:
        total = to_decimal(raw.get("total", raw.get("totalAmount")))
        status = ReceiptStatus.parse(raw.get("status", ReceiptStatus.ISSUED))
    except ValueError as exc:
        raise MalformedRecordError(f"Receipt {receipt_id}: {exc}") from exc

    raw_items = raw.get("line_items", raw.get("lineItems")) or ()
    if not isinstance(raw_items, (list, tuple)):
        raise MalformedRecordError(
            f"Receipt {receipt_id}: line items must be a list, got {raw_items!r}"
        )
    try:
        line_items = tuple(
            item if isinstance(item, LineItem) else _coerce_line_item(item)
            for item in raw_items
        )
    except (TypeError, ValueError) as exc:
        raise MalformedRecordError(f"Receipt {receipt_id}: {exc}") from exc

    return Receipt(
        receipt_id=str(receipt_id),
        store=_coerce_store(raw),
        total=total,
        status=status,
        created_at=_parse_timestamp(created_at),
        line_items=line_items,
        customer=_coerce_customer(raw),
    )


def coerce_receipts(
    records: Iterable[Receipt | Mapping[str, Any]],
    *,
    total_tolerance: Decimal = CENT,
    reject_inconsistent: bool = False,
) -> IngestionResult:
    """Coerce-or-skip a batch of raw records.

    Parameters
    ----------
    records:
        :class:`Receipt` instances (passed through) or raw mappings.
    total_tolerance:
        Maximum accepted gap between ``total`` and the sum of line totals.
    reject_inconsistent:
        Skip receipts whose total and line items disagree beyond the
        tolerance instead of only logging them.
    """
    receipts: list[Receipt] = []
    skipped: list[SkippedRecord] = []

    for idx, record in enumerate(records):
        if isinstance(record, Receipt):
            receipt = record
        else:
            try:
                receipt = coerce_receipt(record)
            except MalformedRecordError as exc:
                logger.warning(f"Skipping malformed receipt at index {idx}: {exc}")
                skipped.append(SkippedRecord(index=idx, reason=str(exc)))
                continue

        if receipt.line_items:
            gap = abs(receipt.total - receipt.line_items_total)
            if gap > total_tolerance:
                message = (
                    f"Receipt {receipt.receipt_id} total {receipt.total} differs "
                    f"from line items {receipt.line_items_total} by {gap}"
                )
                if reject_inconsistent:
                    logger.warning(f"Rejecting inconsistent receipt: {message}")
                    skipped.append(SkippedRecord(index=idx, reason=message))
                    continue
                logger.warning(message)

        receipts.append(receipt)

    if skipped:
        logger.info(
            f"Ingested {len(receipts)} receipts, skipped {len(skipped)} records"
        )
    return IngestionResult(receipts=receipts, skipped=skipped)
