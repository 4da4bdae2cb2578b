from __future__ import annotations

import logging
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable, Optional
from urllib.parse import parse_qs, urlparse

from config.gmail_config import GmailConfig
from utils.logger import Logger, log_event


SUCCESS_HTML = "<h1>Authorization successful!</h1><p>You can close this window.</p>"

# Terminal states; the loop in wait_for_callback stops on either
DONE = "done"
FAILED = "failed"


class _CallbackHandler(BaseHTTPRequestHandler):
    server: "CallbackServer"

    def do_GET(self) -> None:
        url = urlparse(self.path)
        if url.path != self.server.callback_path:
            self._reply(404, "text/plain", "Not found")
            return

        query = parse_qs(url.query)
        code = (query.get("code") or [""])[0]
        if not code:
            # Google sends ?error=access_denied when the user declines
            error = (query.get("error") or [""])[0]
            log_event(self.server.logger, "callback_without_code", level=logging.WARNING, error=error or None)
            body = f"Authorization failed: {error}" if error else "Missing authorization code"
            self._reply(400, "text/plain", body)
            return

        self.server.state = "exchanging"
        try:
            refresh_token = self.server.exchange(code)
        except Exception as e:
            self.server.state = FAILED
            self.server.error = str(e)
            log_event(self.server.logger, "token_exchange_failed", level=logging.ERROR, error=str(e))
            self._reply(500, "text/plain", "Failed to exchange code for tokens")
            return

        self.server.refresh_token = refresh_token
        self.server.state = DONE
        log_event(self.server.logger, "token_exchange_ok")
        self._reply(200, "text/html", SUCCESS_HTML)

    def do_POST(self) -> None:
        self._not_a_callback()

    def do_HEAD(self) -> None:
        self._not_a_callback(include_body=False)

    def _not_a_callback(self, include_body: bool = True) -> None:
        # Only GET /callback carries a code; nothing else moves the server out of idle
        if urlparse(self.path).path != self.server.callback_path:
            self._reply(404, "text/plain", "Not found", include_body)
        else:
            self._reply(405, "text/plain", "Method not allowed", include_body)

    def _reply(self, status: int, content_type: str, body: str, include_body: bool = True) -> None:
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        if status == 405:
            self.send_header("Allow", "GET")
        self.end_headers()
        if include_body:
            self.wfile.write(data)

    def log_message(self, format: str, *args) -> None:
        # Request lines carry the authorization code; keep them at debug level
        self.server.logger.debug(format, *args)


class CallbackServer(HTTPServer):
    """
    Single-shot OAuth redirect listener.

    States: idle -> exchanging -> done | failed. Requests to other paths and
    callbacks without a code are answered (404 / 400) and leave the server
    idle, so the operator can retry from the browser. `exchange` turns an
    authorization code into a refresh token and may raise.
    """

    def __init__(
        self,
        exchange: Callable[[str], str],
        cfg: GmailConfig,
        logger: Optional[logging.Logger] = None,
        port: Optional[int] = None,
    ) -> None:
        self.exchange = exchange
        self.callback_path = cfg.callback_path
        self.logger = logger or Logger().build()

        self.state = "idle"
        self.refresh_token: Optional[str] = None
        self.error: Optional[str] = None

        bind_port = cfg.callback_port if port is None else port
        super().__init__((cfg.callback_host, bind_port), _CallbackHandler)

    @property
    def finished(self) -> bool:
        return self.state in {DONE, FAILED}

    def wait_for_callback(self) -> str:
        """Serve requests one at a time until an exchange completes; returns the final state."""
        try:
            while not self.finished:
                self.handle_request()
        finally:
            self.server_close()
        return self.state
