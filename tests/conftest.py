"""
Shared fixtures: a loopback stand-in for the WireMock Admin API.
"""

import threading
import time
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List, Tuple

import pytest


@dataclass
class Recorded:
    method: str
    path: str
    headers: Dict[str, str]
    body: bytes


@dataclass
class Canned:
    status: int = 200
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    delay: float = 0.0


class _AdminHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _handle(self):
        stub: "AdminStub" = self.server.stub  # type: ignore
        length = int(self.headers.get("Content-Length", 0) or 0)
        body = self.rfile.read(length) if length else b""
        stub.calls.append(Recorded(self.command, self.path, dict(self.headers), body))

        canned = stub.routes.get((self.command, self.path))
        if canned is None:
            canned = Canned(404, [("Content-Type", "application/json")], b'{"error":"not found"}')
        if canned.delay:
            time.sleep(canned.delay)

        self.send_response(canned.status)
        for k, v in canned.headers:
            self.send_header(k, v)
        self.send_header("Content-Length", str(len(canned.body)))
        self.end_headers()
        if canned.body:
            self.wfile.write(canned.body)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_DELETE = _handle


class AdminStub:
    """Records every call and answers from ``routes[(method, path)]``."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Canned] = {}
        self.calls: List[Recorded] = []
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _AdminHandler)
        self._server.daemon_threads = True
        self._server.stub = self  # type: ignore
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def base_url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}"

    def add(self, method: str, path: str, status: int = 200, headers=None, body: bytes = b"", delay: float = 0.0):
        self.routes[(method, path)] = Canned(status, list(headers or []), body, delay)

    def start(self):
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()


@pytest.fixture
def admin_stub():
    stub = AdminStub()
    stub.start()
    yield stub
    stub.stop()
