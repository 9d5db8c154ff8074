"""
PrintEngine: wires the status registry, connection manager and dispatcher
from one settings object and exposes the caller-facing operations.

It is Flask-agnostic and is driven from the web blueprints,
a CLI, or tests alike.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from print_bridge.core.config import EngineSettings

from .connection import ConnectionManager
from .dispatcher import Dispatcher
from .driver import PrinterDriver
from .encoder import EncoderOptions
from .models import Job, JobDescription
from .registry import StatusRegistry

logger = logging.getLogger(__name__)


class PrintEngine:
    def __init__(self, settings: EngineSettings, driver: Optional[PrinterDriver] = None) -> None:
        self.settings = settings
        self.registry = StatusRegistry(
            retention_count=settings.retention_count,
            retention_seconds=settings.retention_seconds,
        )
        self.connections = ConnectionManager.from_settings(settings, driver)
        self.dispatcher = Dispatcher(
            self.connections,
            self.registry,
            queue_capacity=settings.queue_capacity,
            pending_timeout=settings.pending_timeout,
            acquire_timeout=settings.acquire_timeout,
            encoder_options=EncoderOptions.from_settings(settings),
            max_image_bytes=settings.max_image_bytes,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]] = None,
        driver: Optional[PrinterDriver] = None,
    ) -> "PrintEngine":
        return cls(EngineSettings.from_config(config), driver)

    def start(self) -> None:
        self.dispatcher.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.dispatcher.stop(timeout)
        self.connections.close()

    def submit(self, description: JobDescription) -> int:
        return self.dispatcher.submit(description)

    def get(self, job_id: int) -> Job:
        return self.registry.get(job_id)

    def wait(self, job_id: int, timeout: Optional[float] = None) -> Job:
        return self.registry.wait(job_id, timeout)

    def cancel(self, job_id: int) -> bool:
        return self.dispatcher.cancel(job_id)

    def health(self) -> Dict[str, Any]:
        """
        Status summary for health reporting. Never touches the hardware.
        """
        status: Dict[str, Any] = {"status": "ok"}
        status.update(self.dispatcher.status())
        status["printer_ok"] = self.connections.is_healthy()
        status["link"] = self.connections.snapshot()
        if not status["worker_alive"]:
            status["status"] = "degraded"
            status["reason"] = "worker_not_running"
        elif not status["printer_ok"]:
            status["status"] = "degraded"
            status["reason"] = f"printer_{self.connections.state.value.lower()}"
        return status


__all__ = ["PrintEngine"]
