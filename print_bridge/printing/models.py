"""
Value types shared by the encoder, dispatcher and status registry.

Segments and job descriptions are immutable; a Job is mutated only by the
dispatcher and handed out to everyone else as a copy.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from .errors import ValidationError

ALIGNMENTS = ("left", "center", "right")


@dataclass(frozen=True)
class TextLine:
    content: str
    alignment: str = "left"
    emphasis: bool = False
    double_size: bool = False


@dataclass(frozen=True)
class QRBlock:
    payload: str
    module_size: int = 4


@dataclass(frozen=True)
class Cut:
    partial: bool = False


@dataclass(frozen=True)
class Feed:
    lines: int = 1


@dataclass(frozen=True)
class ImageBlock:
    """Encoded image file bytes (PNG/JPEG/BMP), rasterized at encode time."""

    data: bytes


Segment = Union[TextLine, QRBlock, Cut, Feed, ImageBlock]


@dataclass(frozen=True)
class JobDescription:
    segments: Tuple[Segment, ...]
    open_drawer: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable but store a tuple so the value stays hashable.
        object.__setattr__(self, "segments", tuple(self.segments))


class JobStatus(str, enum.Enum):
    PENDING = "Pending"
    EXECUTING = "Executing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


# Allowed forward transitions; terminal states have none.
TRANSITIONS: Dict[JobStatus, Tuple[JobStatus, ...]] = {
    JobStatus.PENDING: (JobStatus.EXECUTING, JobStatus.CANCELLED),
    JobStatus.EXECUTING: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
    JobStatus.CANCELLED: (),
}


class LinkState(str, enum.Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    DEGRADED = "Degraded"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class Job:
    id: int
    description: JobDescription
    status: JobStatus = JobStatus.PENDING
    submitted_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    def copy(self) -> "Job":
        return dataclasses.replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """JSON status view returned to callers."""
        out: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "submittedAt": _iso(self.submitted_at),
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "segments": len(self.description.segments),
        }
        if self.failure_reason:
            out["failureReason"] = self.failure_reason
        return out


def validate_description(
    description: JobDescription,
    *,
    qr_max_payload: int,
    max_image_bytes: int,
) -> None:
    """
    Reject descriptions that can never print. Raises ValidationError.

    Only shape and hardware-capacity checks live here; code page coverage is
    left to the encoder so it surfaces as a failed job.
    """
    if not isinstance(description, JobDescription):
        raise ValidationError("expected a JobDescription")
    if not description.segments:
        raise ValidationError("job must contain at least one segment")
    for idx, seg in enumerate(description.segments, start=1):
        if isinstance(seg, TextLine):
            if seg.alignment not in ALIGNMENTS:
                raise ValidationError(f"segment {idx}: invalid alignment {seg.alignment!r}")
        elif isinstance(seg, QRBlock):
            if not seg.payload:
                raise ValidationError(f"segment {idx}: QR payload required")
            if len(seg.payload) > qr_max_payload:
                raise ValidationError(
                    f"segment {idx}: QR payload too long ({len(seg.payload)} > {qr_max_payload})"
                )
        elif isinstance(seg, Feed):
            if not 1 <= seg.lines <= 255:
                raise ValidationError(f"segment {idx}: feed lines must be within 1..255")
        elif isinstance(seg, ImageBlock):
            if not seg.data:
                raise ValidationError(f"segment {idx}: image data required")
            if len(seg.data) > max_image_bytes:
                raise ValidationError(f"segment {idx}: image too large (max {max_image_bytes} bytes)")
        elif not isinstance(seg, Cut):
            raise ValidationError(f"segment {idx}: unsupported segment type {type(seg).__name__}")


__all__ = [
    "ALIGNMENTS",
    "Cut",
    "Feed",
    "ImageBlock",
    "Job",
    "JobDescription",
    "JobStatus",
    "LinkState",
    "QRBlock",
    "Segment",
    "TextLine",
    "TRANSITIONS",
    "utc_now",
    "validate_description",
]
