"""
Repair Bay Server - HTTP Error Handlers

Plain-text responses for routing errors and anything a handler failed to
catch.
"""

import logging

from flask import Flask, Response, request
from werkzeug.exceptions import HTTPException

from repair_bay.services.error_service import ErrorService, ErrorType

logger = logging.getLogger(__name__)


def _plain_text(error: HTTPException, body: str) -> Response:
    # Keep headers such as Allow from the original error response
    response = error.get_response()
    response.set_data(body)
    response.mimetype = "text/plain"
    return response


def register_error_handlers(app: Flask) -> None:
    """
    Register Flask error handlers.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        logger.warning(f"404 Not Found: {request.method} {request.url}")
        return _plain_text(error, "Endpoint not found")

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 Method Not Allowed errors."""
        logger.warning(f"405 Method Not Allowed: {request.method} {request.url}")
        return _plain_text(error, "Method not allowed")

    @app.errorhandler(HTTPException)
    def http_error(error):
        logger.warning(f"{error.code} {error.name}: {request.method} {request.url}")
        return _plain_text(error, f"{error.code} {error.name}")

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle all unhandled exceptions."""
        return ErrorService.handle_error(ErrorType.SYSTEM_ERROR, e)
