"""
Print Bridge package

This module provides an application factory with minimal wiring:
- Configures logging via print_bridge.core.logging
- Builds the PrintEngine from the saved config (or uses one passed in)
- Creates a Flask app exposing the job API and health endpoint to the LAN
- Adds permissive CORS headers so browser-based POS screens can submit jobs
- Optionally starts the dispatch worker
"""

from __future__ import annotations

import importlib
import logging
import os
import uuid
from collections.abc import Sequence
from typing import Optional

from flask import Flask, g

from print_bridge.core.config import load_config
from print_bridge.core.logging import configure_logging
from print_bridge.printing.engine import PrintEngine

logger = logging.getLogger(__name__)

DEFAULT_BLUEPRINTS = [
    ("print_bridge.web.api", "api_bp"),  # versioned JSON API
    ("print_bridge.web.api", "legacy_bp"),  # POST /print
    ("print_bridge.web.health", "health_bp"),  # health endpoint
]


def _register_blueprint(app: Flask, import_path: str, attr: str) -> None:
    mod = importlib.import_module(import_path)
    app.register_blueprint(getattr(mod, attr))
    app.logger.debug("Registered blueprint: %s.%s", import_path, attr)


def _set_request_id() -> None:
    """
    Assign a request ID for logging if not already set.
    """
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def _add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def create_app(
    config_overrides: Optional[dict] = None,
    engine: Optional[PrintEngine] = None,
    blueprints: Optional[Sequence[tuple[str, str]]] = None,
    start_engine: bool = True,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: values to inject into app.config after defaults
    - engine: a prebuilt PrintEngine; if None one is built from the saved config
    - blueprints: optional list of (import_path, attribute) tuples to register
    - start_engine: if True, starts the dispatch worker

    Returns:
    - Flask app instance
    """
    configure_logging()

    app = Flask("print_bridge")
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("PRINTBRIDGE_MAX_CONTENT_LENGTH", 4 * 1024 * 1024))
    app.url_map.strict_slashes = False

    if engine is None:
        cfg = load_config()
        if cfg is None:
            app.logger.warning("No config found; using default printer settings")
        engine = PrintEngine.from_config(cfg)
    app.extensions["print_bridge"] = engine

    @app.before_request
    def _before_request():
        _set_request_id()

    @app.after_request
    def _after_request(response):
        return _add_cors_headers(response)

    for import_path, attr in blueprints or DEFAULT_BLUEPRINTS:
        _register_blueprint(app, import_path, attr)

    if start_engine:
        engine.start()
        app.logger.info("Dispatch worker ensured")

    if config_overrides:
        app.config.update(config_overrides)

    app.logger.info("Print Bridge app created (printer_type=%s)", engine.settings.printer_type)
    return app


__all__ = ["create_app"]
