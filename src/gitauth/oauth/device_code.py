"""OAuth2 Device Authorization Grant (:rfc:`8628`).

For terminals where the browser runs elsewhere (SSH sessions, containers).

Flow:
    1. POST to ``device_auth_url`` to obtain ``device_code`` + ``user_code``.
    2. Print "Open {verification_uri} and enter the code {user_code}" and try
       to open the verification page locally. When the server supplies
       ``verification_uri_complete`` it is also drawn as a QR code.
    3. Poll ``token_url`` until the user authorizes or the server reports a
       terminal error.

Polling is a two-state machine (:class:`PollMode`):

``STANDARD``
    RFC 8628 section 3.5: pending and slow-down errors arrive as OAuth error
    bodies. A response that is neither a token nor an error body, but whose
    text mentions ``authorization_pending``, means the provider reports
    pending authorization with a non-error status (GitHub does this). That
    moves the machine to ``LEGACY`` -- once; it never moves back.

``LEGACY``
    The device code is POSTed as form data and the JSON body is inspected
    by hand: ``error`` decides between waiting and failing, otherwise the
    body is the token.

In both states only ``authorization_pending`` and ``slow_down`` are retried.
``slow_down`` adds five seconds to the interval for the rest of the flow.
There is no overall deadline; the server ends the flow with
``expired_token`` when the code lapses.
"""

from __future__ import annotations

import enum
import io
import logging
import time
import webbrowser
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx
import qrcode

from gitauth.auth.token import Token
from gitauth.exceptions import ProtocolError, ProviderError, UnsupportedFlow
from gitauth.models import ProviderConfig
from gitauth.oauth.client import (
    oauth_error_from,
    post_form,
    response_json,
    token_from_body,
)
from gitauth.output import OutputManager

logger = logging.getLogger(__name__)

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_INTERVAL = 5
SLOW_DOWN_INCREMENT = 5


class PollMode(enum.Enum):
    """Which token polling protocol the flow is speaking."""

    STANDARD = "standard"
    LEGACY = "legacy"


class _Wait(enum.Enum):
    """Non-terminal poll outcomes."""

    PENDING = "authorization_pending"
    SLOW_DOWN = "slow_down"
    SWITCH_TO_LEGACY = "switch_to_legacy"


@dataclass(frozen=True)
class DeviceAuthorization:
    """The device authorization response (:rfc:`8628#section-3.2`)."""

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    interval: int = DEFAULT_INTERVAL
    expires_in: Optional[int] = None

    def __repr__(self) -> str:
        return (
            f"DeviceAuthorization(user_code={self.user_code!r}, "
            f"verification_uri={self.verification_uri!r}, interval={self.interval})"
        )

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> DeviceAuthorization:
        """Validate and convert a device authorization response body.

        Raises:
            ProtocolError: If a required field is missing or mistyped.
        """
        for field in ("device_code", "user_code"):
            if not isinstance(body.get(field), str) or not body[field]:
                raise ProtocolError(f"Device authorization response missing '{field}'")
        verification_uri = body.get("verification_uri", body.get("verification_url"))
        if not isinstance(verification_uri, str) or not verification_uri:
            raise ProtocolError("Device authorization response missing 'verification_uri'")
        complete = body.get("verification_uri_complete")

        interval = body.get("interval", DEFAULT_INTERVAL)
        try:
            interval = max(int(interval), 1)
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"Invalid polling interval {interval!r}") from exc
        expires_in = body.get("expires_in")

        return cls(
            device_code=body["device_code"],
            user_code=body["user_code"],
            verification_uri=verification_uri,
            verification_uri_complete=complete if isinstance(complete, str) and complete else None,
            interval=interval,
            expires_in=expires_in if isinstance(expires_in, int) else None,
        )


class DeviceCodeFlow:
    """Obtain a token through the device authorization grant.

    Args:
        provider: Provider endpoints; ``device_auth_url`` must be set.
        output: Where the verification URI and user code are printed.

    Raises:
        UnsupportedFlow: If the provider has no ``device_auth_url``.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        output: Optional[OutputManager] = None,
    ) -> None:
        if not provider.device_auth_url:
            raise UnsupportedFlow(
                "Device flow requires 'device_auth_url' in the provider configuration"
            )
        self._provider = provider
        self._device_auth_url: str = provider.device_auth_url
        self._output = output or OutputManager()

    def run(self) -> Token:
        """Run the flow to completion.

        Raises:
            ProviderError: If the server rejects the request or the user
                denies access.
            ProtocolError: If a response cannot be interpreted.
            NetworkError: On transport failures.
        """
        details = self._request_codes()
        self._display(details)
        return self._poll_for_token(details)

    # ------------------------------------------------------------------ #
    # Step 1 & 2
    # ------------------------------------------------------------------ #

    def _request_codes(self) -> DeviceAuthorization:
        data: dict[str, str] = {"client_id": self._provider.client_id}
        if self._provider.scopes:
            data["scope"] = " ".join(self._provider.scopes)
        if self._provider.client_secret:
            data["client_secret"] = self._provider.client_secret

        what = "Device authorization request"
        response = post_form(self._device_auth_url, data, what)
        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = oauth_error_from(body) if isinstance(body, dict) else None
            if error is not None:
                raise error
            raise ProviderError(f"http_{response.status_code}", response.text.strip() or None)

        details = DeviceAuthorization.from_body(response_json(response, what))
        logger.debug("Received %r", details)
        return details

    def _display(self, details: DeviceAuthorization) -> None:
        """Show the verification URI and user code; open the browser if possible."""
        target = details.verification_uri_complete or details.verification_uri
        try:
            webbrowser.open(target)
        except webbrowser.Error as exc:
            logger.warning("Could not open browser: %s", exc)

        hl = self._output.highlight
        message = (
            f"Open this URL in your browser\n{hl(details.verification_uri)}\n"
            f"and enter the code {hl(details.user_code)}"
        )
        qr_code = None
        if details.verification_uri_complete:
            qr_code = render_qr_code(details.verification_uri_complete)
            message += f"\nor go directly to {hl(details.verification_uri_complete)}"
            if qr_code is not None:
                message += "\nor scan the QR code below"
        self._output.prompt(message)
        if qr_code is not None:
            self._output.block(qr_code)

    # ------------------------------------------------------------------ #
    # Step 3: polling
    # ------------------------------------------------------------------ #

    def _poll_for_token(self, details: DeviceAuthorization) -> Token:
        mode = PollMode.STANDARD
        interval = details.interval

        while True:
            if mode is PollMode.STANDARD:
                outcome = self._poll_standard(details)
            else:
                outcome = self._poll_legacy(details)

            if isinstance(outcome, Token):
                return outcome

            if outcome is _Wait.SWITCH_TO_LEGACY:
                logger.info("Provider does not follow RFC 8628 polling; using legacy polling")
                mode = PollMode.LEGACY
            elif outcome is _Wait.SLOW_DOWN:
                interval += SLOW_DOWN_INCREMENT
                logger.debug("Server asked to slow down, polling every %ds", interval)
            time.sleep(interval)

    def _poll_form(self, details: DeviceAuthorization) -> dict[str, str]:
        return {
            "client_id": self._provider.client_id,
            "grant_type": DEVICE_GRANT_TYPE,
            "device_code": details.device_code,
        }

    def _poll_standard(self, details: DeviceAuthorization) -> Union[Token, _Wait]:
        """One RFC 8628 token request."""
        data = self._poll_form(details)
        if self._provider.client_secret:
            data["client_secret"] = self._provider.client_secret
        what = "Device token request"
        response = post_form(self._provider.token_url, data, what)

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            if response.is_success and _is_token_body(body):
                return token_from_body(body, what)
            if not response.is_success and isinstance(body.get("error"), str):
                return _classify_error(body)

        return self._unparseable(response)

    def _poll_legacy(self, details: DeviceAuthorization) -> Union[Token, _Wait]:
        """One token request for providers that ignore RFC 8628 status codes."""
        what = "Device token request"
        response = post_form(self._provider.token_url, self._poll_form(details), what)
        body = response_json(response, what)
        if "error" in body:
            return _classify_error(body)
        return token_from_body(body, what)

    def _unparseable(self, response: httpx.Response) -> _Wait:
        if "authorization_pending" in response.text:
            return _Wait.SWITCH_TO_LEGACY
        raise ProtocolError(
            f"Device token response could not be parsed (HTTP {response.status_code})"
        )


def render_qr_code(data: str) -> Optional[str]:
    """Render *data* as a terminal QR code with a two-module light border.

    Returns ``None`` if the code cannot be drawn; the URI is printed anyway.
    """
    try:
        qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_L, border=2)
        qr.add_data(data)
        qr.make(fit=True)
        buffer = io.StringIO()
        qr.print_ascii(out=buffer, invert=True)
    except Exception as exc:
        logger.debug("Could not render QR code: %s", exc)
        return None
    return buffer.getvalue().rstrip("\n")


def _is_token_body(body: dict[str, Any]) -> bool:
    return isinstance(body.get("access_token"), str) and isinstance(body.get("token_type"), str)


def _classify_error(body: dict[str, Any]) -> _Wait:
    """Map a polling error body to a wait outcome, raising for terminal errors."""
    error = body.get("error")
    if error == "authorization_pending":
        return _Wait.PENDING
    if error == "slow_down":
        return _Wait.SLOW_DOWN
    provider_error = oauth_error_from(body)
    if provider_error is None:
        raise ProtocolError(f"Device token response has invalid 'error' value {error!r}")
    raise provider_error
