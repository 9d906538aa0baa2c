"""QR decode primitive backed by OpenCV's QRCodeDetector."""

from __future__ import annotations

from typing import Any

import cv2
import numpy as np
from PIL import Image

from qrledger.domain.qr import NOT_FOUND, DecodeResult, Found, RawImageFrame
from qrledger.receipt.frames import frame_to_image


def frame_to_luminance(frame: RawImageFrame) -> np.ndarray:
    """
    Flatten an RGBA frame onto white and return an 8-bit grayscale grid.

    Transparent regions (e.g. left over from rotation) become white, which
    reads as quiet zone to the detector.
    """
    img = frame_to_image(frame)
    background = Image.new("RGBA", img.size, (255, 255, 255, 255))
    flattened = Image.alpha_composite(background, img)
    return np.asarray(flattened.convert("L"), dtype=np.uint8)


def _corner_points(points: Any) -> tuple[tuple[float, float], ...]:
    if points is None:
        return ()
    corners = np.asarray(points, dtype=float).reshape(-1, 2)
    return tuple((float(x), float(y)) for x, y in corners)


class OpenCvQrDecoder:
    """Decode at most one QR code from a frame at its given orientation."""

    def __init__(self) -> None:
        self._detector = cv2.QRCodeDetector()

    def __call__(self, frame: RawImageFrame) -> DecodeResult:
        if frame.is_empty:
            return NOT_FOUND

        grid = frame_to_luminance(frame)
        try:
            text, points, _ = self._detector.detectAndDecode(grid)
        except cv2.error:
            # OpenCV raises on degenerate detections (e.g. collinear corners)
            return NOT_FOUND

        if not text:
            return NOT_FOUND
        return Found(text=text, points=_corner_points(points))
