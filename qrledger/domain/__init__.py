"""Pure data models for qrledger (no I/O)."""

from qrledger.domain.invoice import (
    DraftItem,
    InvoiceDraft,
    InvoiceItem,
    InvoiceValidationError,
    NewItem,
    parse_calendar_date,
    resolve_item_dates,
)
from qrledger.domain.qr import NOT_FOUND, DecodeResult, Found, NotFound, RawImageFrame, is_valid_url

__all__ = [
    # Invoices
    "DraftItem",
    "InvoiceDraft",
    "InvoiceItem",
    "InvoiceValidationError",
    "NewItem",
    "parse_calendar_date",
    "resolve_item_dates",
    # QR
    "DecodeResult",
    "Found",
    "NotFound",
    "NOT_FOUND",
    "RawImageFrame",
    "is_valid_url",
]
