"""Command handlers used by the unified CLI.

Each handler takes the parsed arguments plus the loaded AppConfig and returns
a process exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from pathlib import Path

from qrledger.domain.invoice import InvoiceDraft
from qrledger.runtime import AppConfig
from qrledger.runtime.invoice_store import InvoiceStore, StorageError


def cmd_serve(args: argparse.Namespace, config: AppConfig) -> int:
    """Start the FastAPI server."""
    import uvicorn

    from qrledger.runtime.server import create_app

    host = args.host or config.server_host
    port = args.port or config.server_port
    print(f"Starting qrledger server on http://{host}:{port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(create_app(config), host=host, port=port)
    return 0


def cmd_init_db(args: argparse.Namespace, config: AppConfig) -> int:
    store = InvoiceStore.from_config(config)
    try:
        store.init_schema()
    except StorageError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.dispose()
    print("Tables are ready")
    return 0


def cmd_list(args: argparse.Namespace, config: AppConfig) -> int:
    """Print every stored invoice item."""
    store = InvoiceStore.from_config(config)
    try:
        items = store.list_items()
    except StorageError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.dispose()

    if args.json:
        print(json.dumps([item.to_payload() for item in items], indent=2))
        return 0

    if not items:
        print("No invoice items stored.")
        return 0

    for item in items:
        print(
            f"#{item.invoice_id:<4} {item.date.isoformat()}  {item.name:<30} "
            f"{item.quantity:g} {item.unit} x {item.unit_price:.2f} = {item.price:.2f}  [{item.category}]"
        )
    return 0


def cmd_save(args: argparse.Namespace, config: AppConfig) -> int:
    """Commit a ``{date, items}`` JSON document as one invoice."""
    from qrledger.domain.invoice import InvoiceValidationError, NewItem, parse_calendar_date

    path = Path(args.file)
    if not path.exists():
        print(f"Error: file not found: {path}")
        return 1

    try:
        document = json.loads(path.read_text())
        invoice_date = parse_calendar_date(document.get("date"))
        items = [NewItem.from_payload(raw) for raw in document.get("items", [])]
    except (json.JSONDecodeError, AttributeError, InvoiceValidationError) as e:
        print(f"Error: invalid invoice document: {e}")
        return 1

    store = InvoiceStore.from_config(config)
    try:
        invoice_id = store.commit_invoice(items, invoice_date)
    except (StorageError, InvoiceValidationError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.dispose()

    print(f"Saved invoice {invoice_id} with {len(items)} items")
    return 0


def apply_category_overrides(draft: InvoiceDraft, overrides: Sequence[tuple[int, str]]) -> InvoiceDraft:
    """Apply ``(item number, category)`` edits; numbers are 1-based as printed to the user."""
    for number, category in overrides:
        if number < 1:
            raise IndexError(f"No draft item at number {number}")
        draft = draft.with_category(number - 1, category)
    return draft


def cmd_scan(args: argparse.Namespace, config: AppConfig) -> int:
    """Decode the QR code in an image, dispatch it and optionally save the result."""
    from qrledger.application.receipts import ReceiptDispatcher, run_receipt_scan
    from qrledger.domain.invoice import InvoiceValidationError
    from qrledger.receipt.qr_decoder import OpenCvQrDecoder
    from qrledger.receipt.qr_locator import QrLocator
    from qrledger.runtime.workflow_client import WorkflowClient

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: receipt file not found: {image_path}")
        return 1
    if args.category and not args.save:
        print("Error: --category only applies together with --save")
        return 1

    store = InvoiceStore.from_config(config)
    try:
        dispatcher = None if args.no_dispatch else ReceiptDispatcher(store, WorkflowClient.from_config(config))
        try:
            result = asyncio.run(run_receipt_scan(image_path.read_bytes(), QrLocator(OpenCvQrDecoder()), dispatcher))
        except ValueError as e:
            print(f"Error: {e}")
            return 1

        print(f"QR Code: {result.display_text}")
        if result.status == "no_qr":
            return 1
        if result.status == "not_url":
            print("QR code is not a URL; not sent to the workflow service.")
            return 0
        if result.status == "dispatch_failed":
            print(f"Dispatch failed: {result.error}")
            return 1
        if result.status == "decoded":
            return 0

        print(json.dumps(result.workflow_result, indent=2, ensure_ascii=False))
        if not args.save:
            return 0

        try:
            draft = apply_category_overrides(InvoiceDraft.from_workflow_items(result.workflow_result), args.category)
        except (InvoiceValidationError, IndexError) as e:
            print(f"Error: could not save invoice: {e}")
            return 1

        for item in draft.items:
            if item.category_changed:
                print(f"Category of {item.name}: {item.original_category or '-'} -> {item.category}")

        try:
            invoice_id = store.commit_invoice(draft.to_new_items(), draft.date)
        except (InvoiceValidationError, StorageError) as e:
            print(f"Error: could not save invoice: {e}")
            return 1
        print(f"Saved invoice {invoice_id} with {len(draft.items)} items")
        return 0
    finally:
        store.dispose()


def cmd_ask(args: argparse.Namespace, config: AppConfig) -> int:
    """Ask a spending question and print the answer."""
    from qrledger.application.analytics import AnalyticsForwarder
    from qrledger.runtime.workflow_client import WorkflowClient

    store = InvoiceStore.from_config(config)
    try:
        result = asyncio.run(AnalyticsForwarder(store, WorkflowClient.from_config(config)).ask(args.question))
    finally:
        store.dispose()

    print(result.answer)
    return 0 if result.status == "answered" else 1
