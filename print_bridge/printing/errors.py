"""
Error taxonomy for the print job dispatch engine.

Every failure the dispatch worker can observe maps to one of these types; the
worker records them as a job's terminal failure reason and keeps running.
"""

from __future__ import annotations


class PrintBridgeError(Exception):
    """Base class for all engine errors."""

    def reason(self) -> str:
        msg = str(self)
        return f"{type(self).__name__}: {msg}" if msg else type(self).__name__


class ValidationError(PrintBridgeError):
    """Malformed job description; rejected at submission, never enqueued."""


class QueueFull(PrintBridgeError):
    """Pending queue is at capacity; the caller should retry later."""


class LinkUnavailable(PrintBridgeError):
    """No healthy printer link could be obtained within the timeout."""


class EncodingError(PrintBridgeError):
    """Job content exceeds what the device can print."""


class WriteFailure(PrintBridgeError):
    """The hardware failed while frames were being transmitted."""


class JobNotFound(PrintBridgeError, KeyError):
    """Unknown or evicted job id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


__all__ = [
    "EncodingError",
    "JobNotFound",
    "LinkUnavailable",
    "PrintBridgeError",
    "QueueFull",
    "ValidationError",
    "WriteFailure",
]
