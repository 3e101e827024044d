"""
Repair Bay Server - Core Package

This package contains the application logic for the Repair Bay server,
including the fault state, route handlers, CORS layer, configuration and
the server lifecycle manager.
"""

__version__ = "1.0.0"
__author__ = "Repair Bay Team"
