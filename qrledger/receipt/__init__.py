"""QR localization for captured and uploaded receipt images.

The decode primitive (OpenCV) is imported lazily from
``qrledger.receipt.qr_decoder`` so the rotation logic stays usable without it.
"""

from qrledger.receipt.frames import frame_from_image, frame_from_image_bytes, frame_to_image, rotate_frame
from qrledger.receipt.qr_locator import ROTATION_ORDER, QrDecoder, QrLocator, locate_qr

__all__ = [
    "QrDecoder",
    "QrLocator",
    "ROTATION_ORDER",
    "frame_from_image",
    "frame_from_image_bytes",
    "frame_to_image",
    "locate_qr",
    "rotate_frame",
]
