from __future__ import annotations

import http.client
import threading

import pytest

from config.gmail_config import GmailConfig
from tools.callback_server import SUCCESS_HTML, CallbackServer


class _Exchange:
    def __init__(self, result="1//refresh-token", error=None):
        self.result = result
        self.error = error
        self.codes = []

    def __call__(self, code):
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def serve():
    started = []

    def _serve(exchange):
        server = CallbackServer(exchange, GmailConfig(callback_host="127.0.0.1"), port=0)
        result = {}
        thread = threading.Thread(target=lambda: result.setdefault("state", server.wait_for_callback()))
        thread.daemon = True
        thread.start()
        started.append((server, thread))
        return server, thread, result

    yield _serve

    for server, thread in started:
        if thread.is_alive():
            # Unblock handle_request with a request that finishes the exchange
            server.exchange = lambda code: "cleanup"
            _get(server, "/callback?code=cleanup")
        thread.join(timeout=5)


def _get(server, path, method="GET"):
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    try:
        conn.request(method, path)
        resp = conn.getresponse()
        return resp.status, resp.getheader("Content-Type"), resp.read().decode("utf-8")
    finally:
        conn.close()


def test_successful_callback(serve):
    exchange = _Exchange(result="1//abc")
    server, thread, result = serve(exchange)

    status, content_type, body = _get(server, "/callback?code=abc123")
    thread.join(timeout=5)

    assert status == 200
    assert content_type.startswith("text/html")
    assert body == SUCCESS_HTML
    assert exchange.codes == ["abc123"]
    assert result["state"] == "done"
    assert server.refresh_token == "1//abc"
    assert not thread.is_alive()


def test_unknown_path_is_404_and_stays_idle(serve):
    exchange = _Exchange()
    server, thread, _ = serve(exchange)

    status, _, _ = _get(server, "/other")

    assert status == 404
    assert server.state == "idle"
    assert thread.is_alive()
    assert exchange.codes == []


def test_missing_code_is_400_then_retry_succeeds(serve):
    exchange = _Exchange(result="1//retry")
    server, thread, result = serve(exchange)

    status, _, body = _get(server, "/callback")
    assert status == 400
    assert body == "Missing authorization code"
    assert server.state == "idle"
    assert thread.is_alive()

    status, _, _ = _get(server, "/callback?code=second")
    thread.join(timeout=5)

    assert status == 200
    assert result["state"] == "done"
    assert server.refresh_token == "1//retry"


def test_denied_consent_reports_provider_error(serve):
    server, thread, _ = serve(_Exchange())

    status, _, body = _get(server, "/callback?error=access_denied")

    assert status == 400
    assert body == "Authorization failed: access_denied"
    assert thread.is_alive()


def test_exchange_failure_is_500_and_stops(serve):
    exchange = _Exchange(error=RuntimeError("invalid_grant"))
    server, thread, result = serve(exchange)

    status, content_type, body = _get(server, "/callback?code=expired")
    thread.join(timeout=5)

    assert status == 500
    assert content_type.startswith("text/plain")
    assert body == "Failed to exchange code for tokens"
    assert result["state"] == "failed"
    assert server.error == "invalid_grant"
    assert server.refresh_token is None


@pytest.mark.parametrize("method", ["POST", "HEAD"])
def test_other_methods_on_unknown_path_are_404(serve, method):
    exchange = _Exchange()
    server, thread, _ = serve(exchange)

    status, _, body = _get(server, "/other", method=method)

    assert status == 404
    assert body == ("" if method == "HEAD" else "Not found")
    assert server.state == "idle"
    assert thread.is_alive()


def test_post_to_callback_does_not_exchange(serve):
    exchange = _Exchange()
    server, thread, _ = serve(exchange)

    status, _, _ = _get(server, "/callback?code=abc123", method="POST")

    assert status == 405
    assert exchange.codes == []
    assert server.state == "idle"
    assert thread.is_alive()
