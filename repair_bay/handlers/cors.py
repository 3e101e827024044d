"""
Repair Bay Server - CORS Handling

Adds permissive cross-origin headers to every response and answers
preflight OPTIONS requests before any route is dispatched.
"""

import logging
from typing import Dict, Optional

from flask import Flask, Response, current_app, request

logger = logging.getLogger(__name__)

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def register_cors(app: Flask) -> None:
    """
    Register the CORS hooks.

    Args:
        app: Flask application instance
    """

    @app.before_request
    def short_circuit_preflight() -> Optional[Response]:
        # Runs before routing errors are raised, so unknown paths are covered too
        if request.method == "OPTIONS":
            logger.debug(f"CORS preflight for {request.path}")
            return current_app.response_class(status=200)
        return None

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        return response
