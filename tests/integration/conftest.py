r"""A local downstream service for the integration tests.

The service listens on a random port of the loopback interface and
speaks HTTP/1.1 with keep-alive, so that the tests exercise real
sockets, connection reuse and timeouts.
"""

from __future__ import annotations

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Generator


class DownstreamServer(ThreadingHTTPServer):
    block_on_close = False

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), DownstreamHandler)
        self.lock = threading.Lock()
        self.peers: set[tuple[str, int]] = set()
        self.requests: list[tuple[str, str, dict[str, str]]] = []

    @property
    def base_url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"


class DownstreamHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server: DownstreamServer

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass

    def do_GET(self) -> None:  # noqa: N802
        self._record()
        if self.path.startswith("/orders/"):
            order_id = int(self.path.rsplit("/", 1)[1])
            self._send(200, {"code": "OK", "id": order_id})
        elif self.path == "/orders":
            self._send(200, [{"code": "A", "id": 1}, {"code": "B", "id": 2}])
        elif self.path == "/orders.ndjson":
            body = b'{"code": "A", "id": 1}\n{"code": "B", "id": 2}\n'
            self._send_raw(200, body, "application/x-ndjson")
        elif self.path == "/slow":
            time.sleep(0.5)
            self._send(200, {"code": "SLOW", "id": 0})
        elif self.path == "/broken":
            self._send_raw(500, b"", "text/plain")
        else:
            self._send(404, {"code": "NOT_FOUND", "id": 0})

    def do_POST(self) -> None:  # noqa: N802
        self._record()
        length = int(self.headers.get("Content-Length", 0))
        payload = json.loads(self.rfile.read(length) or b"null")
        if self.path == "/orders" and payload.get("sku") == "DUP":
            self._send(409, {"code": "DUP", "id": 42})
        else:
            self._send(201, {"code": payload.get("sku", ""), "id": 1})

    def _record(self) -> None:
        with self.server.lock:
            self.server.peers.add(self.client_address[:2])
            self.server.requests.append((self.command, self.path, dict(self.headers)))

    def _send(self, status: int, body: object) -> None:
        self._send_raw(status, json.dumps(body).encode(), "application/json")

    def _send_raw(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


@pytest.fixture
def downstream() -> Generator[DownstreamServer, None, None]:
    server = DownstreamServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join()
