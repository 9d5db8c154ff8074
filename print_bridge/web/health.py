from __future__ import annotations

"""
Health endpoint for Print Bridge.

`/healthz` reports:
- Overall status ("ok" or "degraded") and a short reason code
- Dispatch worker status and queue size
- Printer link state, last health check and consecutive failure count

It never opens or probes the printer itself; the link state comes from the
connection manager's non-blocking view.
"""

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    engine = current_app.extensions["print_bridge"]
    return engine.health(), 200
