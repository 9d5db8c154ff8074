"""
Command encoder: JobDescription -> ordered ESC/POS command frames.

Pure and deterministic. One frame is produced per segment; the first frame also
carries printer initialization and code page selection, and the last frame
carries the automatic trailing cut (and drawer pulse) when the description does
not end with an explicit Cut.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from escpos.constants import (
    CTL_LF,
    ESC,
    GS,
    HW_INIT,
    PAPER_FULL_CUT,
    PAPER_PART_CUT,
    TXT_STYLE,
)

from .errors import EncodingError, ValidationError
from .models import Cut, Feed, ImageBlock, JobDescription, QRBlock, Segment, TextLine
from .raster import check_qr_fits, rasterize_image, render_qr

# ESC t n table for the code pages we know how to select.
CODEPAGES = {
    "cp437": 0,
    "cp850": 2,
    "cp860": 3,
    "cp863": 4,
    "cp865": 5,
    "cp1252": 16,
    "cp866": 17,
    "cp852": 18,
    "cp858": 19,
}

QR_MODULE_MIN = 1
QR_MODULE_MAX = 16

# Byte-mode capacity of a version 40 symbol per error correction level.
QR_NATIVE_CAPACITY = {"L": 2953, "M": 2331, "Q": 1663, "H": 1273}
QR_EC_CODES = {"L": 48, "M": 49, "Q": 50, "H": 51}

ALIGN = TXT_STYLE["align"]
TXT_ALIGN_LT = ALIGN["left"]
TXT_ALIGN_CT = ALIGN["center"]
TXT_BOLD_ON = TXT_STYLE["bold"][True]
TXT_BOLD_OFF = TXT_STYLE["bold"][False]

SIZE_NORMAL = GS + b"!\x00"
SIZE_DOUBLE = GS + b"!\x11"
DRAWER_PULSE = ESC + b"p\x00\x19\xfa"


@dataclass(frozen=True)
class EncoderOptions:
    codepage: str = "cp850"
    qr_mode: str = "native"
    qr_ec_level: str = "M"
    qr_max_payload: int = 512
    paper_width_px: int = 384
    cut_feed_lines: int = 3

    def __post_init__(self) -> None:
        if self.codepage not in CODEPAGES:
            raise ValueError(f"Unsupported codepage: {self.codepage}")

    @classmethod
    def from_settings(cls, settings: Any) -> "EncoderOptions":
        return cls(
            codepage=settings.codepage,
            qr_mode=settings.qr_mode,
            qr_ec_level=settings.qr_ec_level,
            qr_max_payload=settings.qr_max_payload,
            paper_width_px=settings.paper_width_px,
            cut_feed_lines=settings.cut_feed_lines,
        )


def clamp_module_size(size: int) -> int:
    return max(QR_MODULE_MIN, min(QR_MODULE_MAX, int(size)))


def _feed(lines: int) -> bytes:
    return ESC + b"d" + bytes((max(0, min(255, lines)),))


def _qr_function(fn: int, params: bytes) -> bytes:
    # GS ( k pL pH cn fn [params], cn=49 selects QR code
    body = bytes((49, fn)) + params
    return GS + b"(k" + len(body).to_bytes(2, "little") + body


def _encode_text(seg: TextLine, opts: EncoderOptions) -> bytes:
    try:
        data = seg.content.encode(opts.codepage)
    except UnicodeEncodeError as e:
        bad = seg.content[e.start : e.end]
        raise EncodingError(f"character {bad!r} not printable in code page {opts.codepage}") from e

    out = ALIGN[seg.alignment]
    if seg.emphasis:
        out += TXT_BOLD_ON
    if seg.double_size:
        out += SIZE_DOUBLE
    out += data + CTL_LF
    if seg.double_size:
        out += SIZE_NORMAL
    if seg.emphasis:
        out += TXT_BOLD_OFF
    if seg.alignment != "left":
        out += TXT_ALIGN_LT
    return out


def check_qr(seg: QRBlock, opts: EncoderOptions) -> None:
    """Raise EncodingError if the QR block cannot be printed with these options."""
    if len(seg.payload) > opts.qr_max_payload:
        raise EncodingError(f"QR payload too long ({len(seg.payload)} > {opts.qr_max_payload})")
    if opts.qr_mode == "raster":
        check_qr_fits(seg.payload, ec_level=opts.qr_ec_level, max_width=opts.paper_width_px)
        return
    size = len(seg.payload.encode("utf-8"))
    if size > QR_NATIVE_CAPACITY[opts.qr_ec_level]:
        raise EncodingError(
            f"QR payload exceeds native symbol capacity ({size} > {QR_NATIVE_CAPACITY[opts.qr_ec_level]} bytes)"
        )


def check_capacity(description: JobDescription, options: EncoderOptions = EncoderOptions()) -> None:
    """
    Reject QR blocks the printer could never render. Raises ValidationError so
    oversize payloads are refused at submission.
    """
    for idx, seg in enumerate(description.segments, start=1):
        if isinstance(seg, QRBlock):
            try:
                check_qr(seg, options)
            except EncodingError as e:
                raise ValidationError(f"segment {idx}: {e}") from e


def _encode_qr(seg: QRBlock, opts: EncoderOptions) -> bytes:
    check_qr(seg, opts)
    size = clamp_module_size(seg.module_size)

    if opts.qr_mode == "raster":
        image = render_qr(seg.payload, size, ec_level=opts.qr_ec_level, max_width=opts.paper_width_px)
        return TXT_ALIGN_CT + image + TXT_ALIGN_LT

    data = seg.payload.encode("utf-8")
    return (
        TXT_ALIGN_CT
        + _qr_function(65, b"\x32\x00")  # model 2
        + _qr_function(67, bytes((size,)))  # module size
        + _qr_function(69, bytes((QR_EC_CODES[opts.qr_ec_level],)))  # error correction
        + _qr_function(80, b"\x30" + data)  # store
        + _qr_function(81, b"\x30")  # print
        + CTL_LF
        + TXT_ALIGN_LT
    )


def _encode_cut(seg: Cut, opts: EncoderOptions) -> bytes:
    out = _feed(opts.cut_feed_lines) if opts.cut_feed_lines > 0 else b""
    return out + (PAPER_PART_CUT if seg.partial else PAPER_FULL_CUT)


def _encode_segment(seg: Segment, opts: EncoderOptions) -> bytes:
    if isinstance(seg, TextLine):
        return _encode_text(seg, opts)
    if isinstance(seg, QRBlock):
        return _encode_qr(seg, opts)
    if isinstance(seg, Cut):
        return _encode_cut(seg, opts)
    if isinstance(seg, Feed):
        return _feed(seg.lines)
    if isinstance(seg, ImageBlock):
        return TXT_ALIGN_CT + rasterize_image(seg.data, opts.paper_width_px) + TXT_ALIGN_LT
    raise EncodingError(f"unsupported segment type {type(seg).__name__}")


def encode(description: JobDescription, options: EncoderOptions = EncoderOptions()) -> List[bytes]:
    """
    Render a job description into an ordered list of command frames.

    Raises EncodingError when any segment exceeds the device's capability.
    """
    if not description.segments:
        raise EncodingError("job has no segments")

    frames = [_encode_segment(seg, options) for seg in description.segments]
    frames[0] = HW_INIT + ESC + b"t" + bytes((CODEPAGES[options.codepage],)) + frames[0]

    if not isinstance(description.segments[-1], Cut):
        frames[-1] += _encode_cut(Cut(), options)
    if description.open_drawer:
        frames[-1] += DRAWER_PULSE
    return frames


__all__ = ["CODEPAGES", "EncoderOptions", "check_capacity", "check_qr", "clamp_module_size", "encode"]
