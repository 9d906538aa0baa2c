"""qrledger: receipt QR scanning, invoice storage and spending analytics."""

__version__ = "0.1.0"
