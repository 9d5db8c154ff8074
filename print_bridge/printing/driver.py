"""
Hardware interface consumed by the connection manager.

A driver knows how to open a handle to the physical printer, write raw bytes to
it, probe it, and close it. EscposDriver backs this with python-escpos printer
classes (USB, network, serial, or the in-memory Dummy for bench testing).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class PrinterDriver(Protocol):
    def open(self) -> Any: ...

    def write(self, handle: Any, data: bytes) -> None: ...

    def close(self, handle: Any) -> None: ...

    def probe(self, handle: Any) -> bool: ...


class EscposDriver:
    """
    Driver that creates an ESC/POS printer instance based on the settings.
    Supports USB, Network, Serial and Dummy with optional 'printer_profile'.
    """

    def __init__(self, settings: Any) -> None:
        self.settings = settings

    def describe(self) -> str:
        s = self.settings
        if s.printer_type == "usb":
            return f"usb:{s.usb_vendor_id}:{s.usb_product_id}"
        if s.printer_type == "network":
            return f"network:{s.network_ip}:{s.network_port}"
        if s.printer_type == "serial":
            return f"serial:{s.serial_port}@{s.serial_baudrate}"
        return s.printer_type

    def _create(self):
        s = self.settings
        kwargs = {"profile": s.printer_profile} if s.printer_profile else {}
        ptype = s.printer_type

        if ptype == "usb":
            from escpos.printer import Usb

            return Usb(int(str(s.usb_vendor_id), 16), int(str(s.usb_product_id), 16), **kwargs)
        if ptype == "network":
            from escpos.printer import Network

            return Network(s.network_ip, int(s.network_port), **kwargs)
        if ptype == "serial":
            from escpos.printer import Serial

            return Serial(s.serial_port, baudrate=int(s.serial_baudrate), **kwargs)
        if ptype == "dummy":
            from escpos.printer import Dummy

            return Dummy(**kwargs)
        raise RuntimeError(f"Unsupported printer type: {ptype}")

    def open(self):
        printer = self._create()
        opener = getattr(printer, "open", None)
        if callable(opener):
            opener()
        logger.info("Printer connection opened (%s)", self.describe())
        return printer

    def write(self, handle, data: bytes) -> None:
        handle._raw(data)

    def close(self, handle) -> None:
        handle.close()
        logger.info("Printer connection closed (%s)", self.describe())

    def probe(self, handle) -> bool:
        usable = getattr(handle, "is_usable", None)
        if callable(usable):
            return bool(usable())
        return True


__all__ = ["EscposDriver", "PrinterDriver"]
