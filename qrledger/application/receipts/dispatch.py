"""Forward a decoded receipt URL, with item history, to the workflow service."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from qrledger.domain.invoice import InvoiceItem
from qrledger.domain.qr import is_valid_url
from qrledger.runtime import get_logger
from qrledger.runtime.workflow_client import WorkflowService

logger = get_logger(__name__)


class InvoiceReader(Protocol):
    def list_items(self) -> list[InvoiceItem]: ...


class InvalidReceiptUrl(ValueError):
    """Raised when decoded QR text is not an absolute URL."""


class ReceiptDispatcher:
    """Validate decoded QR text and send it to the receipt workflow."""

    def __init__(self, reader: InvoiceReader, workflow: WorkflowService) -> None:
        self._reader = reader
        self._workflow = workflow

    async def dispatch(self, raw_text: str) -> Any:
        """
        Send ``raw_text`` plus the stored item history to the workflow.

        Returns:
            The workflow response body, unmodified.

        Raises:
            InvalidReceiptUrl: If ``raw_text`` is not a URL; nothing is sent.
            WorkflowServiceError: On network failure, non-2xx or malformed body.
            StorageError: If the item history cannot be read.
        """
        if not is_valid_url(raw_text):
            raise InvalidReceiptUrl(f"Not a URL: {raw_text!r}")

        qr_url = raw_text.strip()
        # Store access is blocking; keep it off the event loop
        stored = await asyncio.to_thread(self._reader.list_items)
        history = [item.to_history_entry() for item in stored]

        logger.info("Dispatching receipt URL with %d history items", len(history))
        return await self._workflow.process_receipt(qr_url, history)
