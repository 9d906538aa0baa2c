"""Tests for invoice payload parsing and review drafts."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from qrledger.domain.invoice import (
    InvoiceDraft,
    InvoiceItem,
    InvoiceValidationError,
    NewItem,
    parse_calendar_date,
)

WORKFLOW_RESPONSE = [
    {"crtd": "2024-01-05T10:15:00 01:00"},
    {
        "id": 1,
        "name": "Milk 2.8%",
        "code": "001",
        "unit": "L",
        "quantity": 2,
        "category": "Dairy",
        "unitPriceAfterVat": 1.2,
        "priceAfterVat": 2.4,
    },
    {
        "id": 2,
        "name": "Apples",
        "code": "002",
        "unit": "kg",
        "quantity": 0.85,
        "category": "Fruit",
        "unitPriceAfterVat": 2.99,
        "priceAfterVat": 2.54,
    },
]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2024-01-05", date(2024, 1, 5)),
        ("2024-01-05T23:30:00.000Z", date(2024, 1, 5)),
        ("2024-01-05T10:15:00+01:00", date(2024, 1, 5)),
        ("2024-01-05T10:15:00 01:00", date(2024, 1, 5)),
        (date(2024, 1, 5), date(2024, 1, 5)),
        (None, None),
        ("", None),
    ],
)
def test_parse_calendar_date(raw: object, expected: date | None) -> None:
    assert parse_calendar_date(raw) == expected  # type: ignore[arg-type]


def test_parse_calendar_date_rejects_garbage() -> None:
    with pytest.raises(InvoiceValidationError):
        parse_calendar_date("5th of January")


def test_new_item_from_payload() -> None:
    item = NewItem.from_payload(
        {
            "name": "Milk",
            "category": "Dairy",
            "unit": "L",
            "unit_price": 1.2,
            "quantity": 2,
            "price": 2.4,
            "date": "2024-01-05",
        }
    )

    assert item.unit_price == Decimal("1.20")
    assert item.price == Decimal("2.40")
    assert item.quantity == 2.0
    assert item.date == date(2024, 1, 5)


@pytest.mark.parametrize(
    "override",
    [
        {"name": None},
        {"unit_price": "abc"},
        {"price": None},
        {"quantity": -1},
        {"quantity": "many"},
        {"date": "not a date"},
    ],
)
def test_new_item_rejects_bad_fields(override: dict[str, object]) -> None:
    payload: dict[str, object] = {
        "name": "Milk",
        "category": "Dairy",
        "unit": "L",
        "unit_price": 1.2,
        "quantity": 2,
        "price": 2.4,
        "date": "2024-01-05",
    }
    payload.update(override)

    with pytest.raises(InvoiceValidationError):
        NewItem.from_payload(payload)


def test_invoice_item_payloads() -> None:
    item = InvoiceItem(
        id=7,
        invoice_id=3,
        name="Milk",
        category="Dairy",
        unit="L",
        unit_price=Decimal("1.20"),
        quantity=2.0,
        price=Decimal("2.40"),
        date=date(2024, 1, 5),
    )

    assert item.to_payload() == {
        "id": 7,
        "invoice_id": 3,
        "name": "Milk",
        "category": "Dairy",
        "unit": "L",
        "unit_price": 1.2,
        "quantity": 2.0,
        "price": 2.4,
        "date": "2024-01-05",
    }
    assert "invoice_id" not in item.to_payload(include_invoice_id=False)
    assert item.to_history_entry() == {"id": 7, "name": "Milk", "category": "Dairy", "date": "2024-01-05"}


def test_draft_from_workflow_items() -> None:
    draft = InvoiceDraft.from_workflow_items(WORKFLOW_RESPONSE)

    assert draft.date == date(2024, 1, 5)
    assert [item.name for item in draft.items] == ["Milk 2.8%", "Apples"]
    assert draft.items[1].unit_price == Decimal("2.99")
    assert draft.items[1].quantity == pytest.approx(0.85)


def test_draft_category_edit_keeps_original() -> None:
    draft = InvoiceDraft.from_workflow_items(WORKFLOW_RESPONSE)

    edited = draft.with_category(1, "Groceries")

    assert edited.items[1].category == "Groceries"
    assert edited.items[1].original_category == "Fruit"
    assert edited.items[1].category_changed
    assert draft.items[1].category == "Fruit"
    with pytest.raises(IndexError):
        draft.with_category(5, "Other")


def test_draft_to_new_items_stamps_date() -> None:
    draft = InvoiceDraft.from_workflow_items(WORKFLOW_RESPONSE)
    undated = InvoiceDraft.from_workflow_items([{}] + WORKFLOW_RESPONSE[1:])

    assert {item.date for item in draft.to_new_items()} == {date(2024, 1, 5)}
    assert {item.date for item in undated.to_new_items(today=date(2024, 2, 1))} == {date(2024, 2, 1)}


def test_draft_rejects_non_list_response() -> None:
    with pytest.raises(InvoiceValidationError):
        InvoiceDraft.from_workflow_items({"items": []})
    assert InvoiceDraft.from_workflow_items([]).items == ()
