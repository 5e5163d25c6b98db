"""Loopback receiver for the authorization redirect.

After the user approves access, the provider redirects the browser to the
registered ``redirect_uri``. When that URI points at this machine
(``http://127.0.0.1:<port>/callback``), a :class:`CallbackReceiver` listens
on it until the redirect arrives and returns the query parameters, which are
then handed to :meth:`~sonique.auth.flow.AuthorizationFlow.handle_callback`.

The receiver binds its port when it is created, so the browser should only
be sent to the provider once the receiver exists::

    with CallbackReceiver(redirect_uri) as receiver:
        navigator.navigate(flow.start_login())
        params = receiver.wait(timeout=120)
"""

from __future__ import annotations

import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

from sonique.exceptions import ConfigError

_SUCCESS_BODY = "Login complete. You can close this window and return to the terminal."
_FAILURE_BODY = "Login was not completed: {reason}"


class _CallbackServer(HTTPServer):
    received = False
    timed_out = False

    def handle_timeout(self) -> None:
        self.timed_out = True


def flatten_query(query: str) -> dict[str, str]:
    """Parse a query string keeping the first value of each parameter."""
    return {key: values[0] for key, values in parse_qs(query).items() if values}


def _handler_for(path: str, result: dict[str, str]) -> type[BaseHTTPRequestHandler]:
    class CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            request = urlsplit(self.path)
            if request.path != path:
                self.send_response(404)
                self.end_headers()
                return

            result.update(flatten_query(request.query))
            self.server.received = True  # type: ignore[attr-defined]
            if "code" in result:
                body = _SUCCESS_BODY
            else:
                body = _FAILURE_BODY.format(reason=result.get("error", "no code received"))

            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.end_headers()
            self.wfile.write(f"<html><body><h2>{body}</h2></body></html>".encode("utf-8"))

        def log_message(self, format: str, *args: Any) -> None:
            pass

    return CallbackHandler


class CallbackReceiver:
    """Listens on the host and port of *redirect_uri* for one redirect.

    Args:
        redirect_uri: The registered redirect target. Requests to any other
            path are answered with 404 and ignored.

    Raises:
        ConfigError: If *redirect_uri* is not an ``http`` loopback URL with
            an explicit port, or if that port cannot be bound.
    """

    def __init__(self, redirect_uri: str) -> None:
        parts = urlsplit(redirect_uri)
        if parts.scheme != "http" or parts.hostname not in ("127.0.0.1", "localhost") or not parts.port:
            raise ConfigError(
                f"Cannot listen on redirect_uri '{redirect_uri}': "
                "expected http://127.0.0.1:<port>/<path>"
            )
        self._params: dict[str, str] = {}
        handler = _handler_for(parts.path or "/", self._params)
        try:
            self._server: Optional[_CallbackServer] = _CallbackServer(
                (parts.hostname, parts.port), handler
            )
        except OSError as exc:
            raise ConfigError(
                f"Cannot listen on {parts.hostname}:{parts.port} for the login redirect "
                f"({exc.strerror or exc}). Free the port or change provider.redirect_uri."
            ) from exc

    def wait(self, timeout: float = 120.0) -> dict[str, str]:
        """Block until the redirect arrives and return its query parameters.

        Returns an empty dict when *timeout* seconds pass first. The
        receiver is closed afterwards either way.
        """
        server = self._server
        if server is None:
            raise RuntimeError("receiver is closed")
        deadline = time.monotonic() + timeout
        try:
            # A stray request (favicon, wrong path) must not end the wait.
            while not server.received and not server.timed_out:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                server.timeout = remaining
                server.handle_request()
        finally:
            self.close()
        return dict(self._params)

    def close(self) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None

    def __enter__(self) -> CallbackReceiver:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def wait_for_callback(redirect_uri: str, timeout: float = 120.0) -> dict[str, str]:
    """Bind *redirect_uri*, wait for the redirect, and return its query parameters.

    Returns an empty dict on timeout. Raises :class:`ConfigError` like
    :class:`CallbackReceiver`.
    """
    return CallbackReceiver(redirect_uri).wait(timeout)
