"""
Repair Bay Server - Route Handlers

The four endpoints of the server. Handlers read and write the fault state
that the application factory stores in ``app.extensions``.
"""

import logging

from flask import Flask, Response, current_app, jsonify, render_template
from jinja2 import TemplateError
from werkzeug.routing import BaseConverter

from repair_bay.models import FaultState, InvalidSystemIndexError
from repair_bay.services.error_service import ErrorService, ErrorType, handle_invalid_index

logger = logging.getLogger(__name__)

TEAPOT_BODY = "I'm a teapot"


class DigitsConverter(BaseConverter):
    """Matches unsigned decimal literals and passes them on unparsed."""

    regex = "[0-9]+"


def _fault_state() -> FaultState:
    return current_app.extensions["fault_state"]


def register_routes(app: Flask) -> None:
    """
    Register all endpoints.

    Args:
        app: Flask application instance
    """
    app.url_map.converters["digits"] = DigitsConverter

    @app.route("/status", methods=["GET"])
    def status():
        """
        Report the damaged system by name.

        Returns:
            JSON response with the damaged system
        """
        return jsonify(_fault_state().damaged_system_name().to_dict())

    @app.route("/repair-bay", methods=["GET"])
    def repair_bay():
        """
        Render the repair bay page for the damaged system's code.

        The template is looked up on every request; a missing or broken
        template yields a 500 while the server keeps running.
        """
        template_name = current_app.config["REPAIR_BAY_TEMPLATE"]

        try:
            template = current_app.jinja_env.get_template(template_name)
        except (TemplateError, OSError) as e:
            return ErrorService.handle_error(ErrorType.TEMPLATE_ERROR, e)

        try:
            html = render_template(template, status=_fault_state().damaged_system_code())
        except Exception as e:
            return ErrorService.handle_error(ErrorType.RENDER_ERROR, e)

        return Response(html, status=200, mimetype="text/html")

    @app.route("/teapot", methods=["POST"])
    def teapot():
        return Response(TEAPOT_BODY, status=418, mimetype="text/plain")

    @app.route("/set-system-idx/<digits:system_id>", methods=["PUT"])
    def set_system_idx(system_id: str):
        """
        Select the damaged system by registry position.

        Returns:
            Empty 204 on success, plain-text client error otherwise
        """
        try:
            index = int(system_id)
        except ValueError as e:
            return ErrorService.handle_error(ErrorType.CLIENT_ERROR, e, "invalid system index")

        try:
            _fault_state().set_index(index)
        except InvalidSystemIndexError as e:
            return handle_invalid_index(e)

        return Response(status=204)
