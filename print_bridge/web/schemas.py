from __future__ import annotations

"""
Pydantic schemas for the Print Bridge API (v1).

These models validate incoming job submissions and convert them into the
engine's immutable JobDescription. Limits are applied via the validation
context passed at runtime, allowing env-driven constraints without circular
imports.
"""

import base64
import binascii
import re
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from print_bridge.printing.models import (
    ALIGNMENTS,
    Cut,
    Feed,
    ImageBlock,
    JobDescription,
    QRBlock,
    Segment,
    TextLine,
)

_DATA_URI = re.compile(r"^data:[\w/+.-]+;base64,")


def _has_control_chars(s: str) -> bool:
    return any((ord(c) < 32 and c not in "\t") or ord(c) == 127 for c in s)


def _limit(info: ValidationInfo, name: str, default: int) -> int:
    limits = (info.context or {}).get("limits", {})
    return int(limits.get(name, default))


def _clean_base64(s: str) -> str:
    # Browsers often send canvas exports as data URIs with line breaks.
    return re.sub(r"\s", "", _DATA_URI.sub("", s.strip()))


class TextSegment(BaseModel):
    """A line of receipt text."""
    type: Literal["text"]
    content: str = Field(description="Text to print on one line", examples=["TOTAL  12.50"])
    alignment: str = Field(default="left", description="left, center or right")
    emphasis: bool = Field(default=False, description="Print in bold")
    double_size: bool = Field(default=False, description="Double width and height")

    @field_validator("content")
    @classmethod
    def _content_rules(cls, v: str, info: ValidationInfo) -> str:
        max_len = _limit(info, "MAX_TEXT_LEN", 512)
        if len(v) > max_len:
            raise ValueError(f"text too long (max {max_len})")
        if _has_control_chars(v):
            raise ValueError("control characters not allowed")
        return v

    @field_validator("alignment")
    @classmethod
    def _alignment_norm(cls, v: str) -> str:
        v = (v or "left").strip().lower()
        if v not in ALIGNMENTS:
            raise ValueError(f"invalid alignment: {v}")
        return v

    def to_segment(self) -> Segment:
        return TextLine(self.content, self.alignment, self.emphasis, self.double_size)


class QRSegment(BaseModel):
    """A QR code block; module size is clamped to what the printer supports."""
    type: Literal["qr"]
    payload: str = Field(min_length=1, description="Data to encode", examples=["https://example.com"])
    module_size: int = Field(default=4, ge=1, le=255, description="Dots per QR module")

    @field_validator("payload")
    @classmethod
    def _payload_rules(cls, v: str, info: ValidationInfo) -> str:
        max_len = _limit(info, "MAX_QR_LEN", 512)
        if len(v) > max_len:
            raise ValueError(f"QR payload too long (max {max_len})")
        if _has_control_chars(v):
            raise ValueError("qr value invalid")
        return v

    def to_segment(self) -> Segment:
        return QRBlock(self.payload, self.module_size)


class FeedSegment(BaseModel):
    type: Literal["feed"]
    lines: int = Field(default=1, ge=1, le=255)

    def to_segment(self) -> Segment:
        return Feed(self.lines)


class CutSegment(BaseModel):
    type: Literal["cut"]
    partial: bool = False

    def to_segment(self) -> Segment:
        return Cut(self.partial)


class ImageSegment(BaseModel):
    """A base64-encoded PNG/JPEG/BMP image, optionally as a data URI."""
    type: Literal["image"]
    data: str = Field(min_length=1, description="Base64 image bytes")

    @field_validator("data")
    @classmethod
    def _data_rules(cls, v: str, info: ValidationInfo) -> str:
        v = _clean_base64(v)
        try:
            raw = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("image data is not valid base64")
        max_bytes = _limit(info, "MAX_IMAGE_BYTES", 1024 * 1024)
        if len(raw) > max_bytes:
            raise ValueError(f"image too large (max {max_bytes} bytes)")
        return v

    def to_segment(self) -> Segment:
        return ImageBlock(base64.b64decode(self.data))


SegmentIn = Annotated[
    Union[TextSegment, QRSegment, FeedSegment, CutSegment, ImageSegment],
    Field(discriminator="type"),
]


class JobSubmitRequest(BaseModel):
    """Request to print one receipt."""
    segments: List[SegmentIn] = Field(
        min_length=1,
        description="Ordered receipt content",
        examples=[[{"type": "text", "content": "Hello"}, {"type": "qr", "payload": "https://example.com"}]],
    )
    open_drawer: bool = Field(default=False, description="Pulse the cash drawer after printing")
    wait: Optional[float] = Field(
        default=None,
        description="Seconds to wait for the job to finish before responding (0-30); omit to return immediately",
    )

    @field_validator("segments")
    @classmethod
    def _segments_rules(cls, v: list, info: ValidationInfo) -> list:
        max_segments = _limit(info, "MAX_SEGMENTS", 200)
        if len(v) > max_segments:
            raise ValueError(f"too many segments (max {max_segments})")
        return v

    @field_validator("wait")
    @classmethod
    def _clamp_wait(cls, v: Optional[float]) -> Optional[float]:
        if v is None or v <= 0:
            return None
        return min(float(v), 30.0)

    def to_description(self) -> JobDescription:
        return JobDescription(tuple(s.to_segment() for s in self.segments), open_drawer=self.open_drawer)


class Links(BaseModel):
    """Hypermedia links for API navigation."""
    self: str = Field(description="Link to this job's status resource")


class JobAcceptedResponse(BaseModel):
    """Response when a print job is accepted."""
    id: int = Field(description="Monotonic job identifier")
    status: str = Field(description="Current job status", examples=["Pending"])
    links: Links
