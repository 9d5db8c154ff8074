"""
Printing subsystem for Print Bridge: the print job dispatch engine.

- models/errors: job and segment types, error taxonomy
- encoder/raster: JobDescription -> ESC/POS command frames
- driver/connection: hardware access and the single printer link
- registry/dispatcher: job status store and the FIFO dispatch worker
- engine: PrintEngine facade wiring it all from settings
"""

from .connection import ConnectionManager, LinkHandle
from .dispatcher import Dispatcher
from .driver import EscposDriver, PrinterDriver
from .encoder import EncoderOptions, encode
from .engine import PrintEngine
from .errors import (
    EncodingError,
    JobNotFound,
    LinkUnavailable,
    PrintBridgeError,
    QueueFull,
    ValidationError,
    WriteFailure,
)
from .models import (
    Cut,
    Feed,
    ImageBlock,
    Job,
    JobDescription,
    JobStatus,
    LinkState,
    QRBlock,
    TextLine,
)
from .registry import StatusRegistry

__all__ = [
    "ConnectionManager",
    "Cut",
    "Dispatcher",
    "EncoderOptions",
    "EncodingError",
    "EscposDriver",
    "Feed",
    "ImageBlock",
    "Job",
    "JobDescription",
    "JobNotFound",
    "JobStatus",
    "LinkHandle",
    "LinkState",
    "LinkUnavailable",
    "PrintBridgeError",
    "PrintEngine",
    "PrinterDriver",
    "QRBlock",
    "QueueFull",
    "StatusRegistry",
    "TextLine",
    "ValidationError",
    "WriteFailure",
    "encode",
]
