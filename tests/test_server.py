"""HTTP tests for the FastAPI app."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from conftest import MarkerDecoder, StubWorkflow, png_with_markers
from fastapi.testclient import TestClient

from qrledger.receipt.qr_locator import QrLocator
from qrledger.runtime.config import AppConfig
from qrledger.runtime.invoice_store import InvoiceStore, StorageError
from qrledger.runtime.server import create_app

MILK_INVOICE = {
    "date": "2024-01-05",
    "items": [
        {
            "name": "Milk",
            "category": "Dairy",
            "unit": "L",
            "unit_price": 1.20,
            "quantity": 2,
            "price": 2.40,
            "date": "2024-01-05",
        }
    ],
}


def _client(store: InvoiceStore, workflow: StubWorkflow) -> TestClient:
    app = create_app(AppConfig(), store=store, workflow=workflow, locator=QrLocator(MarkerDecoder()))
    return TestClient(app)


@pytest.fixture
def client(store: InvoiceStore, workflow: StubWorkflow) -> Iterator[TestClient]:
    with _client(store, workflow) as test_client:
        yield test_client


def test_commit_then_list(client: TestClient) -> None:
    response = client.post("/api/invoice", json=MILK_INVOICE)

    assert response.status_code == 201
    invoice_id = response.json()["invoiceId"]
    assert isinstance(invoice_id, int)

    rows = client.get("/api/invoice").json()
    assert len(rows) == 1
    assert rows[0]["name"] == "Milk"
    assert rows[0]["invoice_id"] == invoice_id
    assert rows[0]["unit_price"] == 1.2
    assert rows[0]["price"] == 2.4
    assert rows[0]["date"] == "2024-01-05"


def test_commit_accepts_iso_timestamp_and_empty_items(client: TestClient) -> None:
    response = client.post("/api/invoice", json={"date": "2024-01-05T09:00:00.000Z", "items": []})

    assert response.status_code == 201
    assert response.json() == {"invoiceId": 1}
    assert client.get("/api/invoice").json() == []


def test_commit_rejects_invalid_item(client: TestClient) -> None:
    bad = {"date": None, "items": [dict(MILK_INVOICE["items"][0], quantity=-3)]}

    response = client.post("/api/invoice", json=bad)

    assert response.status_code == 400
    assert "quantity" in response.json()["detail"]
    assert client.get("/api/invoice").json() == []


def test_storage_failure_is_500_without_traceback(store: InvoiceStore, workflow: StubWorkflow) -> None:
    class BrokenStore(InvoiceStore):
        def list_items(self) -> list:
            raise StorageError("Failed to read invoice items: (OperationalError) disk I/O error")

    broken = BrokenStore(store.engine)
    with _client(broken, workflow) as client:
        response = client.get("/api/invoice")

    assert response.status_code == 500
    assert response.json() == {"detail": "Database operation failed"}


def test_analytics_blank_question(client: TestClient, workflow: StubWorkflow) -> None:
    response = client.post("/api/analytics", json={"question": "   "})

    assert response.status_code == 400
    assert response.json() == {"answer": "Question is required."}
    assert workflow.question_calls == []


def test_analytics_answers(client: TestClient, workflow: StubWorkflow) -> None:
    client.post("/api/invoice", json=MILK_INVOICE)

    response = client.post("/api/analytics", json={"question": "How much on dairy?"})

    assert response.status_code == 200
    assert response.json() == {"answer": workflow.answer}
    assert len(workflow.question_calls[0][1]) == 1


def test_analytics_failure_still_200(store: InvoiceStore, workflow_down: StubWorkflow) -> None:
    with _client(store, workflow_down) as client:
        response = client.post("/api/analytics", json={"question": "How much?"})

    assert response.status_code == 200
    assert response.json()["answer"].startswith("Error: ")


def test_scan_upload_dispatches(client: TestClient, workflow: StubWorkflow) -> None:
    image = png_with_markers(3, 2, (0, 1))

    response = client.post("/api/receipt/scan", files={"file": ("receipt.png", image, "image/png")})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "dispatched"
    assert body["rotation"] == 90
    assert body["qr_text"] == "https://receipts.example.com/r/42"
    assert body["invoice"] == workflow.receipt_result


def test_scan_upload_without_code(client: TestClient) -> None:
    response = client.post("/api/receipt/scan", files={"file": ("receipt.png", png_with_markers(3, 2), "image/png")})

    assert response.status_code == 200
    assert response.json()["status"] == "no_qr"
    assert response.json()["qr_text"] == "No QR code detected"


def test_scan_upload_dispatch_failure(store: InvoiceStore, workflow_down: StubWorkflow) -> None:
    image = png_with_markers(3, 2, (0, 0))
    with _client(store, workflow_down) as client:
        response = client.post("/api/receipt/scan", files={"file": ("receipt.png", image, "image/png")})

    assert response.status_code == 502
    assert response.json()["status"] == "dispatch_failed"
    assert response.json()["qr_text"] == "https://receipts.example.com/r/42"


def test_scan_requires_readable_file(client: TestClient) -> None:
    assert client.post("/api/receipt/scan", data={"note": "no file"}).status_code == 400
    response = client.post("/api/receipt/scan", files={"file": ("receipt.png", b"garbage", "image/png")})
    assert response.status_code == 400


def test_dispatch_endpoint(client: TestClient, workflow: StubWorkflow) -> None:
    rejected = client.post("/api/receipt/dispatch", json={"qrText": "just text"})
    accepted = client.post("/api/receipt/dispatch", json={"qrText": "https://receipts.example.com/r/7"})

    assert rejected.status_code == 400
    assert rejected.json()["status"] == "not_url"
    assert accepted.status_code == 200
    assert accepted.json()["invoice"] == workflow.receipt_result
    assert [call[0] for call in workflow.receipt_calls] == ["https://receipts.example.com/r/7"]


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
