"""Data models for stored invoices and review drafts."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")


class InvoiceValidationError(ValueError):
    """Raised when an invoice payload cannot be turned into storable items."""


def parse_calendar_date(raw: str | date | None) -> date | None:
    """
    Parse a calendar date from ``YYYY-MM-DD`` or a full ISO timestamp.

    Timestamps keep only their date part. A trailing ``Z`` is accepted, and so
    is a timezone whose ``+`` was turned into a space by URL encoding
    (``2024-01-05T10:00:00 02:00``).
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    text = str(raw).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if " " in text and "T" in text:
        text = text.replace(" ", "+", 1)

    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise InvoiceValidationError(f"Invalid date: {raw!r}") from exc


def to_amount(raw: Any, field_name: str) -> Decimal:
    """Convert a currency value to a 2-place Decimal."""
    if raw is None or isinstance(raw, bool):
        raise InvoiceValidationError(f"{field_name} is required")
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise InvoiceValidationError(f"{field_name} must be a number, got {raw!r}") from exc
    if not value.is_finite():
        raise InvoiceValidationError(f"{field_name} must be finite, got {raw!r}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(raw: Any) -> float:
    if raw is None or isinstance(raw, bool):
        raise InvoiceValidationError("quantity is required")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise InvoiceValidationError(f"quantity must be a number, got {raw!r}") from exc
    if not math.isfinite(value) or value < 0:
        raise InvoiceValidationError(f"quantity must be non-negative, got {raw!r}")
    return value


def _required_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        raise InvoiceValidationError(f"{key} is required")
    return str(value)


@dataclass(frozen=True)
class NewItem:
    """A line item about to be written; the store assigns ``id`` and ``invoice_id``."""

    name: str
    category: str
    unit: str
    unit_price: Decimal
    quantity: float
    price: Decimal
    date: date | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> NewItem:
        """Build from a JSON item (``unit_price`` snake case, ``date`` as string)."""
        if not isinstance(payload, Mapping):
            raise InvoiceValidationError(f"Item must be an object, got {type(payload).__name__}")
        return cls(
            name=_required_text(payload, "name"),
            category=_required_text(payload, "category"),
            unit=_required_text(payload, "unit"),
            unit_price=to_amount(payload.get("unit_price"), "unit_price"),
            quantity=to_quantity(payload.get("quantity")),
            price=to_amount(payload.get("price"), "price"),
            date=parse_calendar_date(payload.get("date")),
        )


@dataclass(frozen=True)
class InvoiceItem:
    """A persisted invoice line item."""

    id: int
    invoice_id: int
    name: str
    category: str
    unit: str
    unit_price: Decimal
    quantity: float
    price: Decimal
    date: date

    def to_payload(self, include_invoice_id: bool = True) -> dict[str, Any]:
        """Plain JSON-ready record; amounts as numbers, date as YYYY-MM-DD."""
        record: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "unit_price": float(self.unit_price),
            "quantity": self.quantity,
            "price": float(self.price),
            "date": self.date.isoformat(),
        }
        if include_invoice_id:
            record["invoice_id"] = self.invoice_id
        return record

    def to_history_entry(self) -> dict[str, Any]:
        """Reduced record sent with receipt dispatches."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "date": self.date.isoformat(),
        }


def resolve_item_dates(items: Sequence[NewItem], invoice_date: date | None, today: date | None = None) -> list[NewItem]:
    """
    Give every item a date and check they agree.

    Missing item dates fall back to ``invoice_date``, then to ``today``.
    All items of one invoice must end up on the same calendar date.
    """
    fallback = invoice_date or today or date.today()
    resolved = [item if item.date is not None else replace(item, date=fallback) for item in items]

    distinct = {item.date for item in resolved}
    if len(distinct) > 1:
        dates = ", ".join(sorted(d.isoformat() for d in distinct if d is not None))
        raise InvoiceValidationError(f"Items of one invoice must share a date, got: {dates}")
    return resolved


@dataclass(frozen=True)
class DraftItem:
    """An editable line from the workflow response."""

    name: str
    unit: str
    quantity: float
    category: str
    unit_price: Decimal
    price: Decimal
    original_category: str = ""

    @property
    def category_changed(self) -> bool:
        return self.category != self.original_category


@dataclass(frozen=True)
class InvoiceDraft:
    """Review copy of a receipt, independent from stored rows until saved."""

    date: date | None
    items: tuple[DraftItem, ...] = field(default_factory=tuple)

    @classmethod
    def from_workflow_items(cls, payload: Any) -> InvoiceDraft:
        """
        Build a draft from the receipt workflow response.

        The first element is a header whose ``crtd`` field holds the invoice
        timestamp; the remaining elements are line items priced after VAT.
        """
        if not isinstance(payload, list):
            raise InvoiceValidationError("Workflow response must be a list")
        if not payload:
            return cls(date=None)

        header = payload[0] if isinstance(payload[0], Mapping) else {}
        crtd = header.get("crtd")
        invoice_date = parse_calendar_date(crtd) if crtd else None

        items: list[DraftItem] = []
        for raw in payload[1:]:
            if not isinstance(raw, Mapping):
                raise InvoiceValidationError("Workflow items must be objects")
            category = str(raw.get("category") or "")
            items.append(
                DraftItem(
                    name=_required_text(raw, "name"),
                    unit=str(raw.get("unit") or ""),
                    quantity=to_quantity(raw.get("quantity")),
                    category=category,
                    unit_price=to_amount(raw.get("unitPriceAfterVat"), "unitPriceAfterVat"),
                    price=to_amount(raw.get("priceAfterVat"), "priceAfterVat"),
                    original_category=category,
                )
            )
        return cls(date=invoice_date, items=tuple(items))

    def with_category(self, index: int, category: str) -> InvoiceDraft:
        """Return a copy with one item's category replaced."""
        if not 0 <= index < len(self.items):
            raise IndexError(f"No draft item at index {index}")
        items = list(self.items)
        items[index] = replace(items[index], category=category)
        return replace(self, items=tuple(items))

    def to_new_items(self, today: date | None = None) -> list[NewItem]:
        """Items ready for commit, all stamped with the draft date (or today)."""
        item_date = self.date or today or date.today()
        return [
            NewItem(
                name=item.name,
                category=item.category,
                unit=item.unit,
                unit_price=item.unit_price,
                quantity=item.quantity,
                price=item.price,
                date=item_date,
            )
            for item in self.items
        ]
