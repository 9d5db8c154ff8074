"""
Config utilities for Print Bridge.

Responsibilities:
- Resolve the config path with environment and XDG support
- Provide JSON load/save helpers for the bridge's config
- Turn a loaded config mapping (plus PRINTBRIDGE_* env overrides) into
  typed EngineSettings for the dispatch engine
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

ENV_PREFIX = "PRINTBRIDGE_"


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/printbridge/config.json
    2) ~/.config/printbridge/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "printbridge" / "config.json")
    return str(Path.home() / ".config" / "printbridge" / "config.json")


def get_config_path() -> str:
    """
    Return the config path honoring PRINTBRIDGE_CONFIG_PATH override.
    """
    return os.environ.get("PRINTBRIDGE_CONFIG_PATH", default_config_path())


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


@dataclass(frozen=True)
class EngineSettings:
    """Typed view over the recognized configuration options."""

    # Printer link
    printer_type: str = "usb"
    usb_vendor_id: str = "0x04b8"
    usb_product_id: str = "0x0e28"
    network_ip: str = ""
    network_port: int = 9100
    serial_port: str = ""
    serial_baudrate: int = 19200
    printer_profile: Optional[str] = None

    # Queue and dispatch
    queue_capacity: int = 32
    pending_timeout: float = 120.0
    acquire_timeout: float = 10.0

    # Reconnect backoff
    backoff_base: float = 0.2
    backoff_cap: float = 5.0
    backoff_jitter: float = 0.1
    health_check_interval: float = 30.0

    # Status retention
    retention_count: int = 200
    retention_seconds: float = 3600.0

    # Encoding
    codepage: str = "cp850"
    qr_mode: str = "native"
    qr_ec_level: str = "M"
    qr_max_payload: int = 512
    paper_width_px: int = 384
    cut_feed_lines: int = 3
    max_image_bytes: int = 1024 * 1024

    def __post_init__(self) -> None:
        if self.printer_type not in ("usb", "network", "serial", "dummy"):
            raise ValueError(f"Unsupported printer type: {self.printer_type}")
        if self.queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")
        if self.pending_timeout <= 0 or self.acquire_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.backoff_base <= 0 or self.backoff_cap < self.backoff_base:
            raise ValueError("backoff_cap must be >= backoff_base > 0")
        if not 0 <= self.backoff_jitter <= 1:
            raise ValueError("backoff_jitter must be within [0, 1]")
        if self.retention_count < 1 or self.retention_seconds <= 0:
            raise ValueError("retention limits must be positive")
        if self.qr_mode not in ("native", "raster"):
            raise ValueError(f"Unsupported qr_mode: {self.qr_mode}")
        if self.qr_ec_level not in ("L", "M", "Q", "H"):
            raise ValueError(f"Unsupported qr_ec_level: {self.qr_ec_level}")
        if self.qr_max_payload < 1 or self.paper_width_px < 8:
            raise ValueError("qr_max_payload and paper_width_px must be positive")

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None, env: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """
        Build settings from a config mapping, letting PRINTBRIDGE_<KEY> env vars
        override file values. Unknown keys are ignored.
        """
        config = config or {}
        env = os.environ if env is None else env
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper(), config.get(f.name))
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, f.default, raw)
        return cls(**values)


def _coerce(name: str, default: Any, raw: Any) -> Any:
    try:
        if isinstance(default, bool):
            return str(raw).lower() in ("1", "true", "yes")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e
    return str(raw) if raw is not None else None


__all__ = [
    "EngineSettings",
    "default_config_path",
    "get_config_path",
    "load_config",
    "save_config",
]
