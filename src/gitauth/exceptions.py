"""Exception hierarchy for gitauth.

All exceptions inherit from :class:`GitAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`gitauth.exit_codes`.
Callers (the credential helper commands) catch ``GitAuthError`` and decide
how to present the failure; the engine itself never exits the process.

Subclass hierarchy::

    GitAuthError (exit 1)
    +-- ConfigError           (exit 1)
    +-- UnsupportedFlow       (exit 2)
    +-- ProviderError         (exit 3)
    +-- ProtocolError         (exit 3)
    +-- CsrfMismatch          (exit 3)
    +-- NoRefreshToken        (exit 3)
    +-- NotFoundError         (exit 4)
    +-- NetworkError          (exit 6)
    +-- ListenerBindTimeout   (exit 8)
    +-- SecretStoreError      (exit 9)
"""

from __future__ import annotations

from gitauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LISTENER_ERROR,
    EXIT_NOT_FOUND,
    EXIT_STORAGE_ERROR,
)


class GitAuthError(Exception):
    """Base exception for all gitauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`gitauth.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(GitAuthError):
    """Raised for configuration problems (unknown host, malformed registry file)."""

    exit_code = EXIT_GENERIC_FAILURE


class UnsupportedFlow(GitAuthError):
    """Raised when a flow is requested that the provider cannot perform.

    For example, forcing the device flow on a provider without a
    ``device_auth_url``.
    """

    exit_code = EXIT_INVALID_USAGE


class ProviderError(GitAuthError):
    """Raised when the authorization server explicitly rejects a request.

    The message is the summary ``error[: error_description][ (error_uri)]``;
    the individual parts are also available as attributes.

    Args:
        error: The OAuth error code (e.g. ``"access_denied"``).
        description: Optional ``error_description``.
        uri: Optional ``error_uri``.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        error: str,
        description: str | None = None,
        uri: str | None = None,
    ):
        self.error = error
        self.description = description or None
        self.uri = uri or None
        super().__init__(summarize_oauth_error(error, description, uri))


class ProtocolError(GitAuthError):
    """Raised for malformed or incomplete OAuth messages (missing fields, bad JSON)."""

    exit_code = EXIT_AUTH_FAILURE


class CsrfMismatch(GitAuthError):
    """Raised when the ``state`` returned to the redirect listener is not ours.

    The flow aborts before the authorization code is exchanged.
    """

    exit_code = EXIT_AUTH_FAILURE


class NoRefreshToken(GitAuthError):
    """Raised when a refresh is attempted on a token without a refresh token."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(GitAuthError):
    """Raised when no stored secret exists for a ``(credential, host)`` pair.

    This is recoverable: callers typically start a fresh login.
    """

    exit_code = EXIT_NOT_FOUND


class NetworkError(GitAuthError):
    """Raised on transport failures talking to the authorization server."""

    exit_code = EXIT_CONNECTION_ERROR


class ListenerBindTimeout(GitAuthError):
    """Raised when the loopback redirect listener cannot bind within its retry budget."""

    exit_code = EXIT_LISTENER_ERROR


class SecretStoreError(GitAuthError):
    """Raised when the OS secret vault fails for a reason other than a missing entry."""

    exit_code = EXIT_STORAGE_ERROR


def summarize_oauth_error(
    error: str,
    description: str | None = None,
    uri: str | None = None,
) -> str:
    """Build the ``error[: error_description][ (error_uri)]`` summary string.

    Empty description or URI values are treated as absent.
    """
    summary = error
    if description:
        summary += f": {description}"
    if uri:
        summary += f" ({uri})"
    return summary
