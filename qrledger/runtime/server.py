"""FastAPI server: invoice storage, receipt scanning and analytics endpoints."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from qrledger.application.analytics import AnalyticsForwarder
from qrledger.application.receipts.dispatch import InvalidReceiptUrl, ReceiptDispatcher
from qrledger.application.receipts.scan import run_receipt_scan
from qrledger.domain.invoice import InvoiceValidationError, NewItem, parse_calendar_date
from qrledger.receipt.qr_locator import QrLocator
from qrledger.runtime.config import AppConfig
from qrledger.runtime.invoice_store import InvoiceStore, StorageError
from qrledger.runtime.logging import get_logger
from qrledger.runtime.workflow_client import WorkflowClient, WorkflowService, WorkflowServiceError

logger = get_logger(__name__)


class InvoiceCommitRequest(BaseModel):
    date: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)


class AnalyticsRequest(BaseModel):
    question: str | None = None


class DispatchRequest(BaseModel):
    qrText: str


def _default_locator() -> QrLocator:
    from qrledger.receipt.qr_decoder import OpenCvQrDecoder

    return QrLocator(OpenCvQrDecoder())


def create_app(
    config: AppConfig,
    store: InvoiceStore | None = None,
    workflow: WorkflowService | None = None,
    locator: QrLocator | None = None,
) -> FastAPI:
    """Build the app; collaborators default to ones derived from ``config``."""
    store = store or InvoiceStore.from_config(config)
    workflow = workflow or WorkflowClient.from_config(config)
    locator = locator or _default_locator()

    dispatcher = ReceiptDispatcher(store, workflow)
    forwarder = AnalyticsForwarder(store, workflow)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create tables on startup, release the pool on shutdown."""
        store.init_schema()
        yield
        store.dispose()

    app = FastAPI(title="QR Ledger", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"detail": "Database operation failed"}, status_code=500)

    @app.exception_handler(InvoiceValidationError)
    async def validation_error_handler(request: Request, exc: InvoiceValidationError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.get("/api/invoice")
    def list_invoice_items() -> list[dict[str, Any]]:
        """Every stored invoice item, dates as YYYY-MM-DD."""
        return [item.to_payload() for item in store.list_items()]

    @app.post("/api/invoice", status_code=201)
    def commit_invoice(body: InvoiceCommitRequest) -> dict[str, int]:
        """Save one reviewed invoice; all items share a new invoice id."""
        invoice_date = parse_calendar_date(body.date)
        items = [NewItem.from_payload(raw) for raw in body.items]
        invoice_id = store.commit_invoice(items, invoice_date)
        return {"invoiceId": invoice_id}

    @app.post("/api/analytics")
    async def analytics(body: AnalyticsRequest) -> JSONResponse:
        """Answer a spending question; failures are reported inside ``answer``."""
        result = await forwarder.ask(body.question)
        status_code = 400 if result.status == "question_required" else 200
        return JSONResponse({"answer": result.answer}, status_code=status_code)

    @app.post("/api/receipt/dispatch")
    async def dispatch_receipt(body: DispatchRequest) -> JSONResponse:
        """Forward already-decoded QR text to the receipt workflow."""
        try:
            result = await dispatcher.dispatch(body.qrText)
        except InvalidReceiptUrl:
            return JSONResponse(
                {"status": "not_url", "qr_text": body.qrText, "message": "QR code is not a URL"},
                status_code=400,
            )
        except WorkflowServiceError as e:
            return JSONResponse(
                {"status": "dispatch_failed", "qr_text": body.qrText, "message": str(e)},
                status_code=502,
            )
        return JSONResponse({"status": "dispatched", "qr_text": body.qrText, "invoice": result})

    @app.post("/api/receipt/scan")
    async def scan_receipt(request: Request) -> JSONResponse:
        """Decode a QR code from an uploaded receipt image and dispatch it."""
        form = await request.form()

        file = None
        for value in form.values():
            if hasattr(value, "read"):
                file = value
                break

        if file is None:
            return JSONResponse({"status": "error", "message": "No file found in request"}, status_code=400)

        contents = await file.read()
        try:
            result = await run_receipt_scan(contents, locator, dispatcher)
        except ValueError as e:
            logger.info("Rejected upload: %s", e)
            return JSONResponse({"status": "error", "message": "Uploaded file is not a readable image"}, status_code=400)

        payload: dict[str, Any] = {
            "status": result.status,
            "qr_text": result.display_text,
            "rotation": result.rotation,
        }
        if result.status == "dispatched":
            payload["invoice"] = result.workflow_result
        if result.error:
            payload["message"] = result.error

        status_code = 502 if result.status == "dispatch_failed" else 200
        return JSONResponse(payload, status_code=status_code)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app
