"""HTTP helpers shared by the OAuth flows.

Every request to an authorization server goes through :func:`post_form`,
which never follows redirects: a token endpoint that redirects is treated as
a protocol violation rather than silently re-posting credentials elsewhere.

:func:`parse_token_response` turns a token endpoint reply into a
:class:`~gitauth.auth.token.Token` or the matching typed error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from gitauth.auth.token import Token
from gitauth.exceptions import NetworkError, ProtocolError, ProviderError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0


def post_form(url: str, data: Mapping[str, str], what: str) -> httpx.Response:
    """POST *data* as ``application/x-www-form-urlencoded`` and ask for JSON.

    Args:
        url: Endpoint URL.
        data: Form fields.
        what: Short description used in error messages
            (e.g. ``"Token exchange"``).

    Raises:
        NetworkError: On transport failures (DNS, refused, timeout, TLS).
        ProtocolError: If the server answers with a redirect.
    """
    logger.debug("%s: POST %s", what, url)
    try:
        response = httpx.post(
            url,
            data=dict(data),
            headers={"Accept": "application/json"},
            timeout=REQUEST_TIMEOUT,
            follow_redirects=False,
        )
    except httpx.HTTPError as exc:
        raise NetworkError(f"{what} failed: {exc}") from exc

    if response.is_redirect:
        raise ProtocolError(
            f"{what} failed: endpoint answered with a redirect "
            f"(HTTP {response.status_code}), refusing to follow"
        )
    return response


def response_json(response: httpx.Response, what: str) -> dict[str, Any]:
    """Decode a JSON object body.

    Raises:
        ProtocolError: If the body is not a JSON object.
    """
    try:
        body = response.json()
    except ValueError as exc:
        raise ProtocolError(
            f"{what} failed: response is not JSON (HTTP {response.status_code})"
        ) from exc
    if not isinstance(body, dict):
        raise ProtocolError(f"{what} failed: expected a JSON object")
    return body


def oauth_error_from(body: Mapping[str, Any]) -> Optional[ProviderError]:
    """Return a :class:`ProviderError` if *body* carries an OAuth ``error`` field."""
    error = body.get("error")
    if not isinstance(error, str) or not error:
        return None
    description = body.get("error_description")
    uri = body.get("error_uri")
    return ProviderError(
        error,
        description if isinstance(description, str) else None,
        uri if isinstance(uri, str) else None,
    )


def expiry_from(expires_in: Any) -> Optional[datetime]:
    """Convert a reported lifetime in seconds into an absolute UTC instant."""
    if expires_in is None or isinstance(expires_in, bool):
        return None
    try:
        seconds = float(expires_in)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric expires_in %r", expires_in)
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def token_from_body(body: Mapping[str, Any], what: str) -> Token:
    """Build a :class:`Token` from a successful token response body.

    Raises:
        ProtocolError: If ``access_token`` is missing or not a string.
    """
    access_token = body.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise ProtocolError(f"{what} response missing 'access_token' field")
    refresh_token = body.get("refresh_token")
    return Token(
        access_token=access_token,
        refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
        expires_at=expiry_from(body.get("expires_in")),
    )


def parse_token_response(response: httpx.Response, what: str) -> Token:
    """Map a token endpoint response to a :class:`Token`.

    Raises:
        ProviderError: If the server returned an OAuth error, or any non-2xx
            status (the status and body text are reported when the body is
            not an OAuth error object).
        ProtocolError: If a 2xx body is not JSON or lacks ``access_token``.
    """
    if not response.is_success:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = oauth_error_from(body)
            if error is not None:
                raise error
        raise ProviderError(f"http_{response.status_code}", response.text.strip() or None)

    body = response_json(response, what)
    # Some providers report errors with HTTP 200.
    error = oauth_error_from(body)
    if error is not None:
        raise error
    return token_from_body(body, what)
