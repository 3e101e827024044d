"""
Repair Bay Server - Error Service

This service provides structured error handling with client-safe messages
and proper logging for the different kinds of request errors.
"""

import logging
from enum import Enum
from typing import Dict, Optional

from flask import Response, current_app

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Different types of errors a request can run into."""

    CLIENT_ERROR = "client_error"  # Malformed or out-of-range input
    TEMPLATE_ERROR = "template_error"  # Template could not be loaded
    RENDER_ERROR = "render_error"  # Template failed while rendering
    SYSTEM_ERROR = "system_error"  # Anything unexpected


class ErrorService:
    """Service for turning errors into logged, plain-text HTTP responses."""

    STATUS_CODES: Dict[ErrorType, int] = {
        ErrorType.CLIENT_ERROR: 400,
        ErrorType.TEMPLATE_ERROR: 500,
        ErrorType.RENDER_ERROR: 500,
        ErrorType.SYSTEM_ERROR: 500,
    }

    GENERIC_MESSAGE = "Internal server error"

    @classmethod
    def status_for(cls, error_type: ErrorType, legacy: bool = False) -> int:
        """Status code for an error type. Legacy mode reports client errors as 500."""
        if legacy and error_type == ErrorType.CLIENT_ERROR:
            return 500
        return cls.STATUS_CODES[error_type]

    @classmethod
    def handle_error(
        cls,
        error_type: ErrorType,
        error: Exception,
        custom_message: Optional[str] = None,
    ) -> Response:
        """
        Handle an error with structured logging and a client response.

        Client errors echo their own message back, every other type gets a
        generic body so internal details stay in the server log.

        Args:
            error_type: Type of error that occurred
            error: The actual exception
            custom_message: Message to send instead of the default (optional)

        Returns:
            Plain-text Flask response
        """
        error_msg = f"{error_type.value}: {error}"

        if error_type == ErrorType.CLIENT_ERROR:
            logger.info(error_msg)
            body = custom_message or str(error)
        else:
            logger.error(error_msg, exc_info=error)
            body = custom_message or cls.GENERIC_MESSAGE

        config = current_app.config.get("SERVER_CONFIG")
        legacy = bool(config and config.legacy_error_status)

        return Response(body, status=cls.status_for(error_type, legacy), mimetype="text/plain")


def handle_invalid_index(error: Exception) -> Response:
    """Handle a rejected system index."""
    return ErrorService.handle_error(ErrorType.CLIENT_ERROR, error)
