"""Locate a QR code in a frame whose orientation is unknown."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

from qrledger.domain.qr import NOT_FOUND, DecodeResult, Found, RawImageFrame
from qrledger.receipt.frames import rotate_frame

# Native first, then clockwise quarter turns. First hit wins.
ROTATION_ORDER: tuple[int, ...] = (0, 90, 180, 270)

QrDecoder = Callable[[RawImageFrame], DecodeResult]


class QrLocator:
    """
    Decode a QR code by retrying at fixed rotations.

    The decoder is injected so the retry order can be exercised without a real
    image decoder. Rotated copies are scratch buffers owned by one call.
    """

    def __init__(self, decoder: QrDecoder, rotations: tuple[int, ...] = ROTATION_ORDER) -> None:
        self._decoder = decoder
        self._rotations = rotations

    def locate(self, frame: RawImageFrame) -> DecodeResult:
        if frame.is_empty:
            return NOT_FOUND

        for degrees in self._rotations:
            candidate = frame if degrees % 360 == 0 else rotate_frame(frame, degrees)
            result = self._decoder(candidate)
            if isinstance(result, Found):
                return replace(result, rotation=degrees)

        return NOT_FOUND


def locate_qr(frame: RawImageFrame, decoder: QrDecoder) -> DecodeResult:
    """Convenience wrapper around ``QrLocator(decoder).locate(frame)``."""
    return QrLocator(decoder).locate(frame)
