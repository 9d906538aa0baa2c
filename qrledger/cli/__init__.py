"""Command-line entry point for qrledger."""
