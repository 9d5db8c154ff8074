"""
Raster helpers for the command encoder.

- render_qr: the QR-bitmap collaborator (payload + module size -> raster bytes)
- rasterize_image: encoded image file bytes -> raster bytes at paper width

Both return complete ESC/POS `GS v 0` raster blocks built from Pillow images
packed by python-escpos' EscposImage, so output is deterministic for a given
input.
"""

from __future__ import annotations

import io
import logging
from typing import List

import qrcode
from escpos.constants import GS
from escpos.image import EscposImage
from PIL import Image, UnidentifiedImageError
from qrcode.exceptions import DataOverflowError

from .errors import EncodingError

logger = logging.getLogger(__name__)

# Rows per GS v 0 block; taller images are sent as several stacked blocks.
FRAGMENT_HEIGHT = 960

QR_EC_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


def _int_low_high(value: int, length: int) -> bytes:
    return value.to_bytes(length, "little")


def _raster_block(img: Image.Image) -> bytes:
    im = EscposImage(img)
    header = GS + b"v0" + b"\x00" + _int_low_high(im.width_bytes, 2) + _int_low_high(im.height, 2)
    return header + im.to_raster_format()


def raster_blocks(img: Image.Image) -> bytes:
    """
    Pack a Pillow image into one or more GS v 0 raster blocks.
    """
    out: List[bytes] = []
    for top in range(0, img.height, FRAGMENT_HEIGHT):
        box = (0, top, img.width, min(img.height, top + FRAGMENT_HEIGHT))
        out.append(_raster_block(img.crop(box)))
    return b"".join(out)


def _qr_matrix(payload: str, ec_level: str) -> List[List[bool]]:
    qr = qrcode.QRCode(version=None, error_correction=QR_EC_LEVELS[ec_level], box_size=1, border=2)
    qr.add_data(payload)
    try:
        qr.make(fit=True)
    except DataOverflowError as e:
        raise EncodingError(f"QR payload exceeds symbol capacity ({len(payload)} chars)") from e
    return qr.get_matrix()


def check_qr_fits(payload: str, *, ec_level: str = "M", max_width: int = 384) -> None:
    """
    Raise EncodingError if the payload cannot be drawn on the paper even at one
    dot per module.
    """
    side = len(_qr_matrix(payload, ec_level))
    if side > max_width:
        raise EncodingError(f"QR code needs {side}px but paper width is {max_width}px")


def render_qr(payload: str, module_size: int, *, ec_level: str = "M", max_width: int = 384) -> bytes:
    """
    Render a QR code as raster bytes, one printer dot per module pixel scaled by
    module_size. The module size shrinks until the symbol fits the paper.
    Raises EncodingError when the payload does not fit a QR symbol or the symbol
    is wider than the paper at one dot per module.
    """
    matrix = _qr_matrix(payload, ec_level)
    side = len(matrix)
    if side > max_width:
        raise EncodingError(f"QR code needs {side}px but paper width is {max_width}px")
    if side * module_size > max_width:
        logger.debug("QR module size %d too wide for %dpx paper; using %d", module_size, max_width, max_width // side)
        module_size = max_width // side
    width = side * module_size

    img = Image.new("L", (side, side), 255)
    img.putdata([0 if cell else 255 for row in matrix for cell in row])
    img = img.resize((width, width), Image.NEAREST)
    return raster_blocks(img)


def rasterize_image(data: bytes, max_width: int) -> bytes:
    """
    Decode an image file and return raster bytes, downscaled to the paper width
    keeping aspect ratio. Raises EncodingError for unreadable image data.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise EncodingError(f"unreadable image data: {e}") from e

    if img.width > max_width:
        height = max(1, round(img.height * max_width / img.width))
        logger.debug("Resizing image %dx%d -> %dx%d", img.width, img.height, max_width, height)
        img = img.resize((max_width, height), Image.LANCZOS)
    return raster_blocks(img)


__all__ = ["FRAGMENT_HEIGHT", "QR_EC_LEVELS", "check_qr_fits", "raster_blocks", "rasterize_image", "render_qr"]
