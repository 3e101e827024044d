"""
Repair Bay Server - Server Lifecycle

Runs the Flask application on a threaded werkzeug server, enforces the
per-connection read and write timeouts, traps SIGINT/SIGTERM and performs a bounded
graceful shutdown.

States move strictly forward: CREATED -> LISTENING -> SHUTTING_DOWN -> STOPPED.
"""

import logging
import signal
import sys
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Optional

from flask import Flask
from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server

from repair_bay.config import ConfigurationError, ServerConfig
from repair_bay.web_server import create_flask_app

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ServerLifecycleError(Exception):
    """Raised when a lifecycle operation is called in the wrong state."""

    pass


class ServerStartupError(ServerLifecycleError):
    """Raised when the listener cannot be bound."""

    pass


class ServerState(Enum):
    CREATED = "created"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class InFlightRequests:
    """
    Counts requests being handled so shutdown can wait for them.

    werkzeug answers every request with ``Connection: close``, so a
    connection never sits idle between requests and only running requests
    need tracking.
    """

    def __init__(self):
        self._count = 0
        self._condition = threading.Condition()

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    @contextmanager
    def track(self):
        """Count one request for the duration of the block."""
        with self._condition:
            self._count += 1
        try:
            yield
        finally:
            with self._condition:
                self._count -= 1
                self._condition.notify_all()

    def wait_idle(self, timeout: float) -> bool:
        """Block until no request is in flight. Returns False on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout=timeout)


class TimeoutRequestHandler(WSGIRequestHandler):
    """
    Request handler applying read and write socket timeouts.

    Everything read from the client, request line, headers and body, runs
    under the read timeout. Once the response status goes out, writes run
    under the write timeout. Each connection carries a single request.
    """

    def handle_one_request(self) -> None:
        self.connection.settimeout(self.server.server_config.read_timeout)
        super().handle_one_request()

    def send_response(self, code, message=None) -> None:
        self.connection.settimeout(self.server.server_config.write_timeout)
        super().send_response(code, message)

    def run_wsgi(self) -> None:
        with self.server.in_flight.track():
            super().run_wsgi()


class ServerLifecycle:
    """Single-shot owner of the HTTP listener and its shutdown."""

    def __init__(self, app: Flask, config: ServerConfig):
        self.app = app
        self.config = config
        self.in_flight = InFlightRequests()

        self._state = ServerState.CREATED
        self._state_lock = threading.Lock()
        self._server: Optional[BaseWSGIServer] = None
        self._serve_thread: Optional[threading.Thread] = None
        self._signal_received = threading.Event()
        self._signal_number: Optional[int] = None

    @property
    def state(self) -> ServerState:
        with self._state_lock:
            return self._state

    @property
    def port(self) -> int:
        """Port actually bound, useful when configured with port 0."""
        if self._server is None:
            raise ServerLifecycleError("Server is not listening")
        return self._server.server_port

    def _transition(self, expected: ServerState, new: ServerState) -> None:
        with self._state_lock:
            if self._state != expected:
                raise ServerLifecycleError(
                    f"Cannot move to {new.value} from {self._state.value}"
                )
            self._state = new

    def start(self) -> None:
        """
        Bind the listener and serve on a background thread.

        Raises:
            ServerStartupError: If the address cannot be bound
            ServerLifecycleError: If the server was already started
        """
        if self.state != ServerState.CREATED:
            raise ServerLifecycleError(f"Cannot start from {self.state.value}")

        try:
            server = make_server(
                self.config.host,
                self.config.port,
                self.app,
                threaded=True,
                request_handler=TimeoutRequestHandler,
            )
        except (OSError, SystemExit) as e:
            # werkzeug reports bind failures by printing and exiting
            self._transition(ServerState.CREATED, ServerState.STOPPED)
            raise ServerStartupError(
                f"Could not bind {self.config.host}:{self.config.port}: {e}"
            ) from e

        server.in_flight = self.in_flight
        server.server_config = self.config
        self._server = server

        self._serve_thread = threading.Thread(
            target=server.serve_forever, name="repair-bay-accept", daemon=True
        )
        self._transition(ServerState.CREATED, ServerState.LISTENING)
        self._serve_thread.start()

        logger.info(f"🚀 Starting server on port {server.server_port}")

    def _handle_signal(self, signum: int, frame) -> None:
        self._signal_number = signum
        self._signal_received.set()

    def install_signal_handlers(self) -> None:
        """Trap interrupt and termination signals. Must run on the main thread."""
        for sig in HANDLED_SIGNALS:
            signal.signal(sig, self._handle_signal)

    def wait_for_signal(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Block until a trapped signal arrives.

        Returns:
            The signal number, or None if the timeout elapsed first
        """
        if not self._signal_received.wait(timeout):
            return None
        return self._signal_number

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting connections and wait for in-flight requests.

        Args:
            timeout: Seconds to wait in total, defaults to the configured shutdown timeout

        Returns:
            True if every request finished in time, False if some were abandoned
        """
        self._transition(ServerState.LISTENING, ServerState.SHUTTING_DOWN)
        deadline = time.monotonic() + (
            timeout if timeout is not None else self.config.shutdown_timeout
        )

        logger.info("🛑 Shutting down: no longer accepting connections")

        # Stops the accept loop; werkzeug closes the listening socket on exit
        self._server.shutdown()
        self._serve_thread.join(max(0.0, deadline - time.monotonic()))
        self._server.server_close()

        clean = self.in_flight.wait_idle(max(0.0, deadline - time.monotonic()))

        with self._state_lock:
            self._state = ServerState.STOPPED

        if clean:
            logger.info("✅ Server stopped cleanly")
        else:
            logger.warning(
                f"⚠️ Shutdown deadline elapsed with {self.in_flight.count} request(s) "
                "still in flight; abandoning them"
            )
        return clean

    def run(self) -> bool:
        """Start, wait for a signal, then shut down gracefully."""
        self.start()
        self.install_signal_handlers()

        signum = self.wait_for_signal()
        logger.info(f"Got signal: {signal.Signals(signum).name}")

        return self.shutdown()


def main() -> int:
    """Command line entry point."""
    try:
        config = ServerConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"Configuration validation failed: {e}")
        return 1

    app = create_flask_app(config)
    lifecycle = ServerLifecycle(app, config)

    try:
        lifecycle.run()
    except ServerStartupError as e:
        logger.error(f"Error starting server: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
