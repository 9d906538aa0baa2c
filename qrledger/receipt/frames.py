"""Conversions between uploads, Pillow images and RawImageFrame buffers."""

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from qrledger.domain.qr import RawImageFrame


def frame_from_image(img: Image.Image) -> RawImageFrame:
    """Copy a Pillow image into an RGBA frame."""
    rgba = img if img.mode == "RGBA" else img.convert("RGBA")
    width, height = rgba.size
    return RawImageFrame(width=width, height=height, samples=rgba.tobytes())


def frame_to_image(frame: RawImageFrame) -> Image.Image:
    """Wrap a frame's samples as an RGBA Pillow image."""
    return Image.frombytes("RGBA", (frame.width, frame.height), frame.samples)


def frame_from_image_bytes(image_bytes: bytes) -> RawImageFrame:
    """
    Decode an uploaded image file into an RGBA frame.

    EXIF orientation is applied first, so the frame matches what the user saw.

    Raises:
        ValueError: If the bytes are not a readable image.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unreadable image: {e}") from e

    img = ImageOps.exif_transpose(img)
    return frame_from_image(img)


def rotate_frame(frame: RawImageFrame, degrees: int) -> RawImageFrame:
    """
    Rotate a frame clockwise about its center.

    The canvas grows to fit, so 90 and 270 swap width and height and 180
    keeps them. Areas not covered by the source are transparent.
    """
    if frame.is_empty:
        return frame

    img = frame_to_image(frame)
    # Pillow rotates counter-clockwise for positive angles
    rotated = img.rotate(-degrees, expand=True, fillcolor=(0, 0, 0, 0))
    return frame_from_image(rotated)
