"""
Repair Bay Server - Services Package

Shared services used by the route handlers.
"""

from repair_bay.services.error_service import ErrorService, ErrorType

__all__ = ["ErrorService", "ErrorType"]
