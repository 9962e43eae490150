"""
Shared fixtures: proxy-free environment, local HTTP(S) echo servers and a test CA.
"""
import ssl
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import trustme

PROXY_ENV_VARS = (
    "HTTP_PROXY", "HTTPS_PROXY", "NO_PROXY", "PROXY_URL",
    "http_proxy", "https_proxy", "no_proxy",
)


@pytest.fixture(autouse=True)
def no_proxy_env(monkeypatch):
    """Keep proxy settings of the host out of the tests."""
    for name in PROXY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class EchoHandler(BaseHTTPRequestHandler):
    """Echoes the request body back; method and path go in response headers."""

    def _reply(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        self.send_header("X-Method", self.command)
        self.send_header("X-Path", self.path)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = _reply

    def log_message(self, format, *args):
        pass


class StalledHandler(BaseHTTPRequestHandler):
    """Waits before sending the response headers."""

    delay = 3.0

    def do_GET(self):
        time.sleep(self.delay)
        try:
            self.send_response(200)
            self.send_header("Content-Length", "0")
            self.end_headers()
        except OSError:
            # client gave up
            pass

    def log_message(self, format, *args):
        pass


class DrippingHandler(BaseHTTPRequestHandler):
    """Sends the headers at once, then the body one byte at a time."""

    size = 20
    interval = 0.25

    def do_GET(self):
        try:
            self.send_response(200)
            self.send_header("Content-Length", str(self.size))
            self.end_headers()
            for _ in range(self.size):
                self.wfile.write(b"x")
                time.sleep(self.interval)
        except OSError:
            pass

    def log_message(self, format, *args):
        pass


def _serve(server: ThreadingHTTPServer):
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


@pytest.fixture
def http_server():
    """Base URL of a plain HTTP echo server on loopback."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), EchoHandler)
    thread = _serve(server)
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join()


@pytest.fixture(scope="session")
def ca():
    return trustme.CA()


@pytest.fixture
def https_server(ca):
    """Base URL of an HTTPS echo server whose certificate is issued by ``ca``."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), EchoHandler)
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ca.issue_cert("127.0.0.1").configure_cert(context)
    server.socket = context.wrap_socket(server.socket, server_side=True)
    thread = _serve(server)
    host, port = server.server_address[:2]
    yield f"https://{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join()


def _local_server(handler):
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = _serve(server)
    host, port = server.server_address[:2]
    return server, thread, f"http://{host}:{port}"


@pytest.fixture
def stalled_server():
    """Base URL of a server that takes seconds to start its response."""
    server, thread, url = _local_server(StalledHandler)
    yield url
    server.shutdown()
    server.server_close()
    thread.join()


@pytest.fixture
def dripping_server():
    """Base URL of a server that answers at once but sends its body slowly."""
    server, thread, url = _local_server(DrippingHandler)
    yield url
    server.shutdown()
    server.server_close()
    thread.join()
