"""
HTTP API for the auto discount engine.

This package provides a FastAPI application that exposes:
- Full passes and the out-of-stock cleanup for schedulers
- The read-only preview for the rule editor
- Settings, product exclusion and statistics endpoints for admins
"""

from api.main import app, create_app

__all__ = ["app", "create_app"]
