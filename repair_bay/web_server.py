"""
Repair Bay Server - Flask Application

This module builds the Flask application using the factory pattern and wires
the fault state, CORS layer, routes and error handlers together.
"""

import logging
import os
from typing import Optional

from flask import Flask

from repair_bay.config import ServerConfig, validate_config
from repair_bay.handlers import register_cors, register_error_handlers, register_routes
from repair_bay.models import FaultState, SystemRegistry

logger = logging.getLogger(__name__)


def create_fault_state(config: ServerConfig) -> FaultState:
    """Build the shared fault state from the configured registry."""
    registry = SystemRegistry(config.system_names, config.system_codes)
    return FaultState(registry, initial_index=config.default_system_idx)


def create_flask_app(
    config: Optional[ServerConfig] = None, state: Optional[FaultState] = None
) -> Flask:
    """
    Create Flask application using factory pattern.

    Args:
        config: Server configuration, read from the environment when omitted
        state: Fault state to serve, built from the configuration when omitted

    Returns:
        Configured Flask application
    """
    if config is None:
        config = ServerConfig.from_env()
    else:
        validate_config(config)

    template_dir, template_name = os.path.split(os.path.abspath(config.template_path))

    app = Flask(__name__, template_folder=template_dir)
    app.config["SERVER_CONFIG"] = config
    app.config["REPAIR_BAY_TEMPLATE"] = template_name
    # Re-check the template file on every request
    app.config["TEMPLATES_AUTO_RELOAD"] = True

    app.extensions["fault_state"] = state if state is not None else create_fault_state(config)

    register_cors(app)
    register_routes(app)
    register_error_handlers(app)

    logger.info(
        f"✅ Flask app initialized with {len(app.extensions['fault_state'].registry)} systems, "
        f"template {config.template_path}"
    )
    return app
