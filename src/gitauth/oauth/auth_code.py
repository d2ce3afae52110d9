"""OAuth2 Authorization Code flow with PKCE (:rfc:`7636`).

The browser flow:

1. Bind a loopback listener on ``127.0.0.1`` (configured port, or an
   ephemeral one), retrying for up to five seconds if the port is busy.
2. Generate a PKCE verifier/challenge pair (S256) and a random CSRF
   ``state``, and build the authorization URL with the listener as
   redirect URI.
3. Open the user's browser (best effort; the URL is printed otherwise).
4. Accept exactly one connection on the listener and read the redirect
   from its request line. There is no timeout: the flow waits until the
   user finishes in the browser or the process is stopped.
5. Reject provider errors, missing fields and CSRF mismatches before
   anything is sent to the token endpoint.
6. Exchange the code plus verifier for a :class:`~gitauth.auth.token.Token`.

Also exports :func:`generate_pkce_pair` and :func:`states_match`.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import socket
import time
import webbrowser
from typing import BinaryIO, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

from gitauth.auth.token import Token
from gitauth.exceptions import CsrfMismatch, ListenerBindTimeout, ProtocolError, ProviderError
from gitauth.models import OAuthConfig, ProviderConfig
from gitauth.oauth.client import parse_token_response, post_form
from gitauth.output import OutputManager

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
BIND_RETRY_INTERVAL = 0.5
BIND_TIMEOUT = 5.0
_MAX_REQUEST_LINE = 8192
_MAX_HEADER_LINES = 100


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


def generate_csrf_token() -> str:
    """Return a random, URL-safe ``state`` value."""
    return secrets.token_urlsafe(32)


def states_match(returned: str, expected: str) -> bool:
    """Compare two ``state`` values in constant time."""
    return hmac.compare_digest(returned.encode("utf-8"), expected.encode("utf-8"))


def bind_listener(port: int = 0) -> socket.socket:
    """Bind and listen on ``127.0.0.1:port``.

    A busy port is retried every :data:`BIND_RETRY_INTERVAL` seconds until
    :data:`BIND_TIMEOUT` seconds have passed.

    Raises:
        ListenerBindTimeout: If the port could not be bound in time.
    """
    start = time.monotonic()
    while True:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((LOOPBACK_HOST, port))
            sock.listen(1)
        except OSError as exc:
            sock.close()
            if time.monotonic() - start >= BIND_TIMEOUT:
                raise ListenerBindTimeout(
                    f"Could not bind redirect listener on {LOOPBACK_HOST}:{port} "
                    f"within {BIND_TIMEOUT:g}s: {exc}"
                ) from exc
            logger.debug("Bind on port %d failed (%s), retrying", port, exc)
            time.sleep(BIND_RETRY_INTERVAL)
            continue
        return sock


def build_authorization_url(
    provider: ProviderConfig,
    redirect_uri: str,
    code_challenge: str,
    state: str,
) -> str:
    """Assemble the authorization request URL.

    ``scope`` is only sent when the provider lists at least one scope.
    """
    params: dict[str, str] = {
        "response_type": "code",
        "client_id": provider.client_id,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "redirect_uri": redirect_uri,
    }
    if provider.scopes:
        params["scope"] = " ".join(provider.scopes)
    separator = "&" if urlsplit(provider.auth_url).query else "?"
    return f"{provider.auth_url}{separator}{urlencode(params)}"


def parse_request_line(request_line: str) -> dict[str, str]:
    """Return the query parameters of an HTTP request line.

    Raises:
        ProtocolError: If the line has no request target.
    """
    parts = request_line.split()
    if len(parts) < 2:
        raise ProtocolError("Malformed HTTP request on redirect listener")
    query = urlsplit(parts[1]).query
    return dict(parse_qsl(query, keep_blank_values=True))


def _drain_headers(reader: BinaryIO) -> None:
    # Unread request bytes would make close() reset the connection before
    # the browser reads our response.
    for _ in range(_MAX_HEADER_LINES):
        line = reader.readline(_MAX_REQUEST_LINE)
        if line in (b"", b"\r\n", b"\n"):
            return


def write_response(conn: socket.socket, body: str) -> None:
    """Send a minimal ``200 OK`` plain-text response."""
    payload = body.encode("utf-8")
    head = (
        "HTTP/1.1 200 OK\r\n"
        f"content-length: {len(payload)}\r\n"
        "content-type: text/plain; charset=utf-8\r\n"
        "connection: close\r\n"
        "\r\n"
    )
    conn.sendall(head.encode("ascii") + payload)


class AuthCodePkceFlow:
    """Obtain a token through the browser redirect flow.

    Args:
        provider: Provider endpoints and client registration.
        oauth_config: Supplies the listener ``port`` (``None``/``0`` means
            ephemeral).
        output: Where browser instructions are printed.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        oauth_config: Optional[OAuthConfig] = None,
        output: Optional[OutputManager] = None,
    ) -> None:
        self._provider = provider
        self._port = (oauth_config.port if oauth_config else None) or 0
        self._output = output or OutputManager()

    def run(self) -> Token:
        """Run the flow to completion.

        Raises:
            ListenerBindTimeout: If the redirect listener cannot be bound.
            ProviderError: If the provider redirects back with an error, or
                rejects the code exchange.
            ProtocolError: If the redirect lacks ``code`` or ``state``.
            CsrfMismatch: If the returned ``state`` is not the one we sent.
            NetworkError: On transport failures talking to the token endpoint.
        """
        listener = bind_listener(self._port)
        try:
            host, port = listener.getsockname()[:2]
            redirect_uri = f"http://{host}:{port}"
            code_verifier, code_challenge = generate_pkce_pair()
            state = generate_csrf_token()
            auth_url = build_authorization_url(
                self._provider, redirect_uri, code_challenge, state
            )
            self._open_browser(auth_url)
            code, returned_state = self._wait_for_code(listener)
        finally:
            listener.close()

        if not states_match(returned_state, state):
            raise CsrfMismatch("State validation failed: CSRF token mismatch")

        return self._exchange_code(code, code_verifier, redirect_uri)

    def _open_browser(self, auth_url: str) -> None:
        try:
            opened = webbrowser.open(auth_url)
        except webbrowser.Error as exc:
            logger.warning("Could not open browser: %s", exc)
            opened = False
        if opened:
            self._output.prompt("Check your browser to authorize access.")
        else:
            self._output.prompt(
                "Unable to open your browser automatically.\n"
                f"Open this URL in your browser: {self._output.highlight(auth_url)}"
            )

    def _wait_for_code(self, listener: socket.socket) -> tuple[str, str]:
        """Accept the single redirect connection and extract ``code`` and ``state``.

        Every outcome, including errors, answers the browser so the tab can
        be closed.
        """
        listener.settimeout(None)
        conn, peer = listener.accept()
        logger.debug("Redirect received from %s", peer)
        with conn:
            with conn.makefile("rb") as reader:
                request_line = reader.readline(_MAX_REQUEST_LINE).decode("latin-1")
                _drain_headers(reader)
            try:
                params = parse_request_line(request_line)
            except ProtocolError:
                write_response(conn, "Malformed request. You can close this window now.")
                raise

            if "error" in params:
                error = ProviderError(
                    params["error"],
                    params.get("error_description"),
                    params.get("error_uri"),
                )
                write_response(
                    conn,
                    f"Something went wrong. You can close this window now.\n{error}",
                )
                raise error

            for field in ("code", "state"):
                if field not in params:
                    write_response(
                        conn,
                        f"Missing '{field}' parameter. You can close this window now.",
                    )
                    raise ProtocolError(f"Missing '{field}' parameter in callback URL")

            write_response(conn, "Authorization complete. You can close this window now.")
            return params["code"], params["state"]

    def _exchange_code(self, code: str, code_verifier: str, redirect_uri: str) -> Token:
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
            "client_id": self._provider.client_id,
        }
        if self._provider.client_secret:
            data["client_secret"] = self._provider.client_secret

        response = post_form(self._provider.token_url, data, "Token exchange")
        return parse_token_response(response, "Token exchange")
