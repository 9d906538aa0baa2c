"""Shared pytest fixtures and fakes for qrledger tests."""

from __future__ import annotations

import io
from collections.abc import Iterator, Sequence
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from qrledger.domain.invoice import NewItem
from qrledger.domain.qr import NOT_FOUND, DecodeResult, Found, RawImageFrame
from qrledger.runtime.invoice_store import InvoiceStore, create_store_engine
from qrledger.runtime.workflow_client import WorkflowServiceError

RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)


def frame_with_markers(width: int, height: int, *markers: tuple[int, int]) -> RawImageFrame:
    """White frame with red pixels at the given (x, y) positions."""
    pixels = bytearray()
    for y in range(height):
        for x in range(width):
            pixels.extend(RED if (x, y) in markers else WHITE)
    return RawImageFrame(width=width, height=height, samples=bytes(pixels))


def png_with_markers(width: int, height: int, *markers: tuple[int, int]) -> bytes:
    frame = frame_with_markers(width, height, *markers)
    img = Image.frombytes("RGBA", (width, height), frame.samples)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


class MarkerDecoder:
    """Fake decode primitive: "finds" ``text`` when the top-left pixel is red."""

    def __init__(self, text: str = "https://receipts.example.com/r/42") -> None:
        self.text = text
        self.seen: list[tuple[int, int]] = []

    def __call__(self, frame: RawImageFrame) -> DecodeResult:
        self.seen.append((frame.width, frame.height))
        if frame.pixel(0, 0) == RED:
            return Found(text=self.text, points=((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)))
        return NOT_FOUND


class StubWorkflow:
    """In-memory stand-in for the external workflow service."""

    def __init__(
        self,
        receipt_result: Any = None,
        answer: str = "You spent 2.40 on Dairy.",
        error: Exception | None = None,
    ) -> None:
        self.receipt_result = receipt_result if receipt_result is not None else [{"crtd": "2024-01-05T10:00:00Z"}]
        self.answer = answer
        self.error = error
        self.receipt_calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.question_calls: list[tuple[str, list[dict[str, Any]]]] = []

    async def process_receipt(self, qr_url: str, items: Sequence[dict[str, Any]]) -> Any:
        self.receipt_calls.append((qr_url, list(items)))
        if self.error:
            raise self.error
        return self.receipt_result

    async def answer_question(self, question: str, items: Sequence[dict[str, Any]]) -> str:
        self.question_calls.append((question, list(items)))
        if self.error:
            raise self.error
        return self.answer


class CountingReader:
    """InvoiceReader fake that records how often it was read."""

    def __init__(self, items: list[Any] | None = None) -> None:
        self.items = items or []
        self.reads = 0

    def list_items(self) -> list[Any]:
        self.reads += 1
        return list(self.items)


def make_item(name: str = "Milk", category: str = "Dairy", item_date: date | None = date(2024, 1, 5)) -> NewItem:
    return NewItem(
        name=name,
        category=category,
        unit="L",
        unit_price=Decimal("1.20"),
        quantity=2.0,
        price=Decimal("2.40"),
        date=item_date,
    )


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def store(db_url: str) -> Iterator[InvoiceStore]:
    invoice_store = InvoiceStore(create_store_engine(db_url))
    invoice_store.init_schema()
    yield invoice_store
    invoice_store.dispose()


@pytest.fixture
def workflow() -> StubWorkflow:
    return StubWorkflow()


@pytest.fixture
def workflow_down() -> StubWorkflow:
    return StubWorkflow(error=WorkflowServiceError("Receipt webhook unavailable: connection refused"))
