from __future__ import annotations

import logging
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterator, Tuple

import pytest
import requests

from httpwatch.local.supervisor import health
from httpwatch.local.supervisor.health import build_probe_url, probe_http


def _serve(status: int) -> Tuple[ThreadingHTTPServer, threading.Thread]:
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            self.send_response(status)
            self.send_header("Content-Length", "2")
            self.end_headers()
            self.wfile.write(b"ok")

        def log_message(self, format, *args) -> None:
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


@pytest.fixture
def http_server(request) -> Iterator[str]:
    server, thread = _serve(getattr(request, "param", 200))
    try:
        yield build_probe_url("127.0.0.1", server.server_address[1])
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


def _records(caplog) -> list:
    return [r for r in caplog.records if r.name == health.__name__]


def test_build_probe_url() -> None:
    assert build_probe_url("127.0.0.1", 9001) == "http://127.0.0.1:9001/"


def test_probe_healthy_server(http_server: str, caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger=health.__name__):
        assert probe_http("demo", http_server, timeout=5) is True

    [record] = _records(caplog)
    assert record.levelno == logging.DEBUG


@pytest.mark.parametrize("http_server", [500, 404], indirect=True)
def test_probe_error_status_is_unhealthy(http_server: str, caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger=health.__name__):
        assert probe_http("demo", http_server, timeout=5) is False

    [record] = _records(caplog)
    assert record.levelno == logging.WARNING
    assert "status" in record.getMessage()


def test_probe_nothing_listening_is_unreachable(free_port: int, caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger=health.__name__):
        assert probe_http("demo", build_probe_url("127.0.0.1", free_port), timeout=5) is False

    [record] = _records(caplog)
    assert record.levelno == logging.WARNING
    assert "not reachable" in record.getMessage()


def test_probe_times_out_within_bound(caplog) -> None:
    # Accepts connections into the backlog but never answers.
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(5)
    url = build_probe_url("127.0.0.1", listener.getsockname()[1])
    try:
        started = time.monotonic()
        with caplog.at_level(logging.DEBUG, logger=health.__name__):
            assert probe_http("demo", url, timeout=0.5) is False
        elapsed = time.monotonic() - started
    finally:
        listener.close()

    assert elapsed < 3.0
    [record] = _records(caplog)
    assert record.levelno == logging.WARNING
    assert "timed out" in record.getMessage()


def test_probe_unexpected_error_is_logged_as_error(monkeypatch, caplog) -> None:
    def _boom(*args, **kwargs):
        raise requests.exceptions.InvalidHeader("garbage")

    monkeypatch.setattr(health.requests.Session, "get", _boom)

    with caplog.at_level(logging.DEBUG, logger=health.__name__):
        assert probe_http("demo", "http://127.0.0.1:1/", timeout=1) is False

    [record] = _records(caplog)
    assert record.levelno == logging.ERROR


def test_probe_never_raises_on_arbitrary_exceptions(monkeypatch) -> None:
    def _boom(*args, **kwargs):
        raise RuntimeError("unforeseen")

    monkeypatch.setattr(health.requests.Session, "get", _boom)

    assert probe_http("demo", "http://127.0.0.1:1/", timeout=1) is False


def test_trickling_headers_are_cut_off_at_deadline(caplog) -> None:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(5)
    done = threading.Event()

    def _trickle() -> None:
        conn, _ = listener.accept()
        try:
            conn.sendall(b"HTTP/1.1 200 OK\r\nX-Slow: ")
            while not done.is_set():
                conn.sendall(b"a")
                time.sleep(0.2)
        except OSError:
            pass
        finally:
            conn.close()

    thread = threading.Thread(target=_trickle, daemon=True)
    thread.start()
    url = build_probe_url("127.0.0.1", listener.getsockname()[1])
    try:
        started = time.monotonic()
        with caplog.at_level(logging.DEBUG, logger=health.__name__):
            assert probe_http("demo", url, timeout=0.5) is False
        elapsed = time.monotonic() - started
    finally:
        done.set()
        listener.close()
        thread.join(timeout=5)

    assert elapsed < 0.5 + health.PROBE_DEADLINE_MARGIN + 1.0
    [record] = _records(caplog)
    assert record.levelno == logging.WARNING
    assert "timed out" in record.getMessage()
