"""
Web module for Print Bridge.

Exposes blueprints for:
- Versioned JSON job API: api_bp
- Legacy POST /print endpoint: legacy_bp
- Health endpoint: health_bp
"""

from .api import api_bp, legacy_bp
from .health import health_bp

__all__ = ["api_bp", "health_bp", "legacy_bp"]
