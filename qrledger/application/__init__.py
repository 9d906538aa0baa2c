"""Application workflows that combine storage, QR decoding and the workflow service."""
