"""
Repair Bay Server - Handlers Package

This package contains the HTTP handlers organized by functionality:
- cors.py: CORS headers and preflight short-circuit for every request
- routes.py: Status, repair bay, teapot and set-index endpoints
- error_handlers.py: Centralized HTTP error handling
"""

from repair_bay.handlers.cors import register_cors
from repair_bay.handlers.error_handlers import register_error_handlers
from repair_bay.handlers.routes import register_routes

__all__ = ["register_cors", "register_error_handlers", "register_routes"]
