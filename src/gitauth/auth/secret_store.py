"""Token persistence in the OS secret vault.

Each ``(credential, host)`` pair maps to exactly one keyring entry holding
the packed :class:`~gitauth.auth.token.Token` JSON. The entry is addressed
as::

    service = "gitauth:<host>"                 username = "<credential>"
    service = "gitauth:<credential>@<host>"    username = "<credential>"   (Windows)

Backends that address secrets by ``(service, username)`` keep pairs apart
through the two fields. The Windows Credential Manager addresses entries by
a single target name, so there the credential is folded into the service
string as well.

See Also:
    :class:`~gitauth.auth.registry.HostRegistry` -- records which
    credential names exist for a host.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from gitauth.auth.token import Token
from gitauth.exceptions import NotFoundError, SecretStoreError

logger = logging.getLogger(__name__)

_SERVICE_PREFIX = "gitauth"


class SecretStore:
    """Store, fetch and erase tokens keyed by credential name and host.

    Args:
        backend: Object exposing ``get_password``/``set_password``/
            ``delete_password`` -- a :class:`keyring.backend.KeyringBackend`
            instance or the :mod:`keyring` module itself (default).
        service_prefix: Prefix for keyring service names.

    Example::

        store = SecretStore()
        store.store("alice", "github.com", token)
        token = store.get("alice", "github.com")
        store.erase("alice", "github.com")
    """

    def __init__(self, backend: Optional[Any] = None, service_prefix: str = _SERVICE_PREFIX) -> None:
        self._backend = backend if backend is not None else keyring
        self._prefix = service_prefix

    def entry_key(self, credential: str, host: str) -> tuple[str, str]:
        """Return the ``(service, username)`` keyring address for a pair."""
        if sys.platform == "win32":
            return f"{self._prefix}:{credential}@{host}", credential
        return f"{self._prefix}:{host}", credential

    def store(self, credential: str, host: str, token: Token) -> None:
        """Persist *token* for ``(credential, host)``, replacing any existing one.

        Raises:
            SecretStoreError: If the vault rejects the write.
        """
        service, username = self.entry_key(credential, host)
        try:
            self._backend.set_password(service, username, token.pack())
        except KeyringError as exc:
            raise SecretStoreError(
                f"Failed to store token for '{credential}' on {host}: {exc}"
            ) from exc
        logger.debug("Stored token %s for '%s' on %s", token, credential, host)

    def get(self, credential: str, host: str) -> Token:
        """Fetch the token for ``(credential, host)``.

        Raises:
            NotFoundError: If no entry exists.
            SecretStoreError: If the vault fails or the entry is corrupt.
        """
        service, username = self.entry_key(credential, host)
        try:
            secret = self._backend.get_password(service, username)
        except KeyringError as exc:
            raise SecretStoreError(
                f"Failed to read token for '{credential}' on {host}: {exc}"
            ) from exc
        if secret is None:
            raise NotFoundError(f"No stored token for '{credential}' on {host}")
        return Token.unpack(secret)

    def erase(self, credential: str, host: str) -> None:
        """Delete the entry for ``(credential, host)``.

        Deleting an entry that does not exist is not an error.

        Raises:
            SecretStoreError: If the vault fails for another reason.
        """
        service, username = self.entry_key(credential, host)
        try:
            self._backend.delete_password(service, username)
        except PasswordDeleteError:
            logger.debug("No stored token for '%s' on %s, nothing to erase", credential, host)
        except KeyringError as exc:
            raise SecretStoreError(
                f"Failed to erase token for '{credential}' on {host}: {exc}"
            ) from exc
