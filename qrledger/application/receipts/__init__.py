"""Receipt workflows."""

from qrledger.application.receipts.dispatch import InvalidReceiptUrl, InvoiceReader, ReceiptDispatcher
from qrledger.application.receipts.scan import NO_QR_MESSAGE, ReceiptScanResult, run_receipt_scan

__all__ = [
    "InvalidReceiptUrl",
    "InvoiceReader",
    "ReceiptDispatcher",
    "NO_QR_MESSAGE",
    "ReceiptScanResult",
    "run_receipt_scan",
]
