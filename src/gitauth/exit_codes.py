"""Numeric process exit codes for credential helper failures.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~gitauth.exceptions.GitAuthError` subclass. Git
ignores helper exit codes, but wrappers and scripts can use them to tell
failure classes apart without parsing stderr.
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The requested flow or operation is not supported by the provider configuration."""

EXIT_AUTH_FAILURE = 3
"""The authorization server rejected the request, or the OAuth exchange was invalid."""

EXIT_NOT_FOUND = 4
"""No stored credential exists for the requested host and name."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_LISTENER_ERROR = 8
"""The local redirect listener could not be bound."""

EXIT_STORAGE_ERROR = 9
"""The OS secret vault or the registry file could not be read or written."""
