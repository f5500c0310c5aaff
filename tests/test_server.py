"""Tests for the graceful shutdown server wrapper."""

from __future__ import annotations

import threading

from conftest import build_app
from server import GracefulServer


def _start(server: GracefulServer) -> tuple[threading.Thread, dict]:
    result = {}
    thread = threading.Thread(target=lambda: result.update(code=server.serve()))
    thread.start()
    return thread, result


def test_stop_closes_server_with_exit_code():
    server = GracefulServer(build_app(), host="127.0.0.1", port=0)
    assert server.server.daemon_threads is False
    assert server.server.block_on_close is True

    thread, result = _start(server)
    server.stop(0)
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert result["code"] == 0


def test_uncaught_exception_stops_with_failure_code():
    server = GracefulServer(build_app(), host="127.0.0.1", port=0)
    thread, result = _start(server)

    try:
        raise RuntimeError("fatal")
    except RuntimeError as exc:
        server._on_uncaught(type(exc), exc, exc.__traceback__)
    server.stop(0)
    thread.join(timeout=5)

    assert result["code"] == 1
