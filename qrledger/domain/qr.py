"""Data models for QR code capture and decoding."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

BYTES_PER_PIXEL = 4  # RGBA


@dataclass(frozen=True)
class RawImageFrame:
    """A rectangular RGBA pixel buffer from a capture or upload."""

    width: int
    height: int
    samples: bytes

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Frame dimensions must be non-negative, got {self.width}x{self.height}")
        expected = self.width * self.height * BYTES_PER_PIXEL
        if len(self.samples) != expected:
            raise ValueError(
                f"Frame {self.width}x{self.height} needs {expected} RGBA bytes, got {len(self.samples)}"
            )

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        """RGBA sample at column ``x``, row ``y``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} frame")
        offset = (y * self.width + x) * BYTES_PER_PIXEL
        r, g, b, a = self.samples[offset : offset + BYTES_PER_PIXEL]
        return r, g, b, a


@dataclass(frozen=True)
class Found:
    """A decoded QR payload.

    ``points`` are the approximate corner coordinates reported by the decoder,
    in the rotated frame that produced the hit. ``rotation`` is the clockwise
    angle (0, 90, 180 or 270) that frame was turned by.
    """

    text: str
    points: tuple[tuple[float, float], ...] = ()
    rotation: int = 0


@dataclass(frozen=True)
class NotFound:
    """No QR code could be decoded."""


NOT_FOUND = NotFound()

DecodeResult = Found | NotFound


def is_valid_url(text: str | None) -> bool:
    """True when ``text`` is an absolute URL with a scheme and an authority."""
    if not text:
        return False
    candidate = text.strip()
    if not candidate or any(c.isspace() for c in candidate):
        return False
    try:
        parts = urlsplit(candidate)
        # Raises ValueError on a non-numeric or out-of-range port
        _ = parts.port
    except ValueError:
        return False
    if not parts.scheme or not parts.netloc:
        return False
    if not parts.scheme[0].isalpha():
        return False
    return parts.hostname is not None and parts.hostname != ""
