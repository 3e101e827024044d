"""
Server lifecycle tests for the Repair Bay server.

These tests bind a real listener on an ephemeral port and talk to it over
HTTP to verify start-up, signal handling and graceful shutdown.
"""

import unittest
import sys
import os
import signal
import socket
import threading
import time
from unittest.mock import patch

import requests
from flask import request

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from repair_bay.config import ConfigurationError, ServerConfig
from repair_bay.lifecycle import (
    InFlightRequests,
    ServerLifecycle,
    ServerLifecycleError,
    ServerStartupError,
    ServerState,
    main,
)
from repair_bay.web_server import create_flask_app


def local_config(**overrides) -> ServerConfig:
    options = {"host": "127.0.0.1", "port": 0, "shutdown_timeout": 5.0}
    options.update(overrides)
    return ServerConfig(**options)


class LifecycleTestCase(unittest.TestCase):
    config_overrides = {}

    def setUp(self):
        self.config = local_config(**self.config_overrides)
        self.app = create_flask_app(self.config)
        self.lifecycle = ServerLifecycle(self.app, self.config)

    def tearDown(self):
        if self.lifecycle.state == ServerState.LISTENING:
            self.lifecycle.shutdown(timeout=1.0)

    def url(self, path: str) -> str:
        return f"http://127.0.0.1:{self.lifecycle.port}{path}"


class TestServerLifecycle(LifecycleTestCase):
    """Test the CREATED -> LISTENING -> SHUTTING_DOWN -> STOPPED sequence."""

    def test_serves_requests_after_start(self):
        self.assertEqual(self.lifecycle.state, ServerState.CREATED)
        self.lifecycle.start()
        self.assertEqual(self.lifecycle.state, ServerState.LISTENING)

        response = requests.get(self.url("/status"), timeout=5)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"damaged_system": "engines"})
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

        response = requests.put(self.url("/set-system-idx/1"), timeout=5)
        self.assertEqual(response.status_code, 204)
        self.assertIn("COM-02", requests.get(self.url("/repair-bay"), timeout=5).text)

    def test_clean_shutdown_stops_accepting(self):
        self.lifecycle.start()
        url = self.url("/status")

        self.assertTrue(self.lifecycle.shutdown())
        self.assertEqual(self.lifecycle.state, ServerState.STOPPED)

        with self.assertRaises(requests.ConnectionError):
            requests.get(url, timeout=1)

    def test_cannot_restart(self):
        self.lifecycle.start()
        with self.assertRaises(ServerLifecycleError):
            self.lifecycle.start()

        self.lifecycle.shutdown()
        with self.assertRaises(ServerLifecycleError):
            self.lifecycle.start()
        with self.assertRaises(ServerLifecycleError):
            self.lifecycle.shutdown()

    def test_shutdown_before_start_rejected(self):
        with self.assertRaises(ServerLifecycleError):
            self.lifecycle.shutdown()

    def test_bind_failure(self):
        self.lifecycle.start()
        taken = local_config(port=self.lifecycle.port)
        other = ServerLifecycle(create_flask_app(taken), taken)

        with self.assertRaises(ServerStartupError):
            other.start()
        self.assertEqual(other.state, ServerState.STOPPED)


class TestGracefulShutdown(LifecycleTestCase):
    """Test waiting for, and giving up on, in-flight requests."""

    def setUp(self):
        super().setUp()
        self.entered = threading.Event()
        self.release = threading.Event()

        @self.app.route("/hold")
        def hold():
            self.entered.set()
            self.release.wait(10)
            return "released"

        self.responses = []
        self.lifecycle.start()
        self.client = threading.Thread(target=self._hold_request)
        self.client.start()
        self.assertTrue(self.entered.wait(5))

    def tearDown(self):
        self.release.set()
        self.client.join(10)
        super().tearDown()

    def _hold_request(self):
        self.responses.append(requests.get(self.url("/hold"), timeout=15))

    def test_waits_for_in_flight_request(self):
        results = []
        shutdown = threading.Thread(target=lambda: results.append(self.lifecycle.shutdown()))
        shutdown.start()

        shutdown.join(0.8)
        self.assertTrue(shutdown.is_alive())
        self.assertEqual(self.lifecycle.state, ServerState.SHUTTING_DOWN)

        self.release.set()
        shutdown.join(5)
        self.client.join(5)

        self.assertEqual(results, [True])
        self.assertEqual(self.lifecycle.state, ServerState.STOPPED)
        self.assertEqual(self.responses[0].status_code, 200)
        self.assertEqual(self.responses[0].text, "released")

    def test_deadline_abandons_request(self):
        with self.assertLogs("repair_bay.lifecycle", level="WARNING"):
            clean = self.lifecycle.shutdown(timeout=0.2)

        self.assertFalse(clean)
        self.assertEqual(self.lifecycle.state, ServerState.STOPPED)
        self.assertEqual(self.lifecycle.in_flight.count, 1)


class TestSignals(LifecycleTestCase):
    def test_wait_for_signal_times_out(self):
        self.assertIsNone(self.lifecycle.wait_for_signal(timeout=0.01))

    def test_handler_records_signal(self):
        self.lifecycle._handle_signal(signal.SIGTERM, None)
        self.assertEqual(self.lifecycle.wait_for_signal(timeout=1), signal.SIGTERM)

    @unittest.skipIf(os.name == "nt", "POSIX signals only")
    def test_installed_handlers_catch_sigterm(self):
        for sig in (signal.SIGINT, signal.SIGTERM):
            self.addCleanup(signal.signal, sig, signal.getsignal(sig))

        self.lifecycle.install_signal_handlers()
        os.kill(os.getpid(), signal.SIGTERM)

        self.assertEqual(self.lifecycle.wait_for_signal(timeout=5), signal.SIGTERM)

    def test_run_shuts_down_on_signal(self):
        timer = threading.Timer(0.3, self.lifecycle._handle_signal, args=(signal.SIGINT, None))

        with patch.object(self.lifecycle, "install_signal_handlers"):
            timer.start()
            clean = self.lifecycle.run()

        self.assertTrue(clean)
        self.assertEqual(self.lifecycle.state, ServerState.STOPPED)


class TestInFlightRequests(unittest.TestCase):
    def test_tracking(self):
        tracker = InFlightRequests()

        with tracker.track():
            self.assertEqual(tracker.count, 1)
            self.assertFalse(tracker.wait_idle(0.01))

        self.assertEqual(tracker.count, 0)
        self.assertTrue(tracker.wait_idle(0.01))


class TestConnectionHandling(LifecycleTestCase):
    """Talk to the listener over raw sockets to check connection behaviour."""

    config_overrides = {"read_timeout": 5.0, "write_timeout": 0.2}

    def setUp(self):
        super().setUp()

        @self.app.route("/echo", methods=["POST"])
        def echo():
            return request.get_data(as_text=True)

        self.lifecycle.start()

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.lifecycle.port), timeout=5)
        self.addCleanup(sock.close)
        return sock

    def read_until_closed(self, sock: socket.socket) -> bytes:
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def test_connection_closes_after_one_response(self):
        sock = self.connect()
        sock.sendall(b"GET /status HTTP/1.1\r\nHost: localhost\r\n\r\n")

        reply = self.read_until_closed(sock)

        self.assertTrue(reply.startswith(b"HTTP/1.1 200"))
        self.assertIn(b"Connection: close", reply)
        self.assertTrue(reply.endswith(b'{"damaged_system":"engines"}\n'))

    def test_slow_body_is_read_under_read_timeout(self):
        sock = self.connect()
        sock.sendall(
            b"POST /echo HTTP/1.1\r\nHost: localhost\r\n"
            b"Content-Type: text/plain\r\nContent-Length: 5\r\n\r\n"
        )
        # Longer than the write timeout, well inside the read timeout
        time.sleep(0.6)
        sock.sendall(b"hello")

        reply = self.read_until_closed(sock)

        self.assertTrue(reply.startswith(b"HTTP/1.1 200"))
        self.assertTrue(reply.endswith(b"hello"))


class TestReadTimeout(LifecycleTestCase):
    config_overrides = {"read_timeout": 0.3}

    def test_stalled_request_is_dropped(self):
        self.lifecycle.start()
        sock = socket.create_connection(("127.0.0.1", self.lifecycle.port), timeout=5)
        self.addCleanup(sock.close)

        started = time.monotonic()
        sock.sendall(b"GET /status HTTP/1.1\r\nHost: loc")

        self.assertEqual(sock.recv(4096), b"")
        self.assertLess(time.monotonic() - started, 4)


class TestMain(unittest.TestCase):
    def test_configuration_error_exits_nonzero(self):
        with patch.object(ServerConfig, "from_env", side_effect=ConfigurationError("bad")):
            self.assertEqual(main(), 1)

    def test_bind_error_exits_nonzero(self):
        with patch.object(ServerConfig, "from_env", return_value=local_config()), \
                patch("repair_bay.lifecycle.make_server", side_effect=OSError("in use")):
            self.assertEqual(main(), 1)


if __name__ == "__main__":
    unittest.main()
