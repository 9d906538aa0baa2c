"""Receipt scan workflow: image -> QR text -> workflow dispatch."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal

from qrledger.application.receipts.dispatch import ReceiptDispatcher
from qrledger.domain.qr import Found, is_valid_url
from qrledger.receipt.frames import frame_from_image_bytes
from qrledger.receipt.qr_locator import QrLocator
from qrledger.runtime import get_logger
from qrledger.runtime.invoice_store import StorageError
from qrledger.runtime.workflow_client import WorkflowServiceError

logger = get_logger(__name__)

NO_QR_MESSAGE = "No QR code detected"

ScanStatus = Literal[
    "no_qr",
    "not_url",
    "decoded",
    "dispatched",
    "dispatch_failed",
]


@dataclass(frozen=True)
class ReceiptScanResult:
    """Outcome from receipt scan workflow."""

    status: ScanStatus
    qr_text: str | None = None
    rotation: int | None = None
    workflow_result: Any = None
    error: str | None = None

    @property
    def display_text(self) -> str:
        """What the user is shown: the raw QR text, or the no-QR message."""
        return self.qr_text if self.qr_text is not None else NO_QR_MESSAGE


async def run_receipt_scan(
    image_bytes: bytes,
    locator: QrLocator,
    dispatcher: ReceiptDispatcher | None,
) -> ReceiptScanResult:
    """
    Locate a QR code in an uploaded image and dispatch it when it is a URL.

    With ``dispatcher=None`` the scan stops after decoding (status "decoded").

    Raises:
        ValueError: If ``image_bytes`` is not a readable image.
    """
    # Image decoding and QR search are CPU-bound
    frame = await asyncio.to_thread(frame_from_image_bytes, image_bytes)
    result = await asyncio.to_thread(locator.locate, frame)

    if not isinstance(result, Found):
        logger.info("No QR code found in %dx%d image", frame.width, frame.height)
        return ReceiptScanResult(status="no_qr")

    logger.info("QR code decoded at %d degrees", result.rotation)
    if not is_valid_url(result.text):
        # Shown to the user, never forwarded
        return ReceiptScanResult(status="not_url", qr_text=result.text, rotation=result.rotation)

    if dispatcher is None:
        return ReceiptScanResult(status="decoded", qr_text=result.text, rotation=result.rotation)

    try:
        workflow_result = await dispatcher.dispatch(result.text)
    except (WorkflowServiceError, StorageError) as e:
        logger.error("Receipt dispatch failed: %s", e)
        return ReceiptScanResult(
            status="dispatch_failed",
            qr_text=result.text,
            rotation=result.rotation,
            error=str(e),
        )

    return ReceiptScanResult(
        status="dispatched",
        qr_text=result.text,
        rotation=result.rotation,
        workflow_result=workflow_result,
    )
