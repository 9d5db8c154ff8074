"""
Core utilities for Print Bridge.

This package groups non-Flask helpers used across the bridge:
- config: config path, JSON load/save, typed engine settings
- logging: Request ID aware logging filters/formatters and root logger config
"""

from .config import (
    EngineSettings,
    default_config_path,
    get_config_path,
    load_config,
    save_config,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "EngineSettings",
    "default_config_path",
    "get_config_path",
    "load_config",
    "save_config",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
