"""Credential values and their storage.

- :class:`Token` -- access/refresh token pair with expiry and lazy refresh.
- :class:`SecretStore` -- keyring-backed persistence of tokens per
  ``(credential, host)``.
- :class:`HostRegistry` -- which credential names exist per host and which
  one is active.

:class:`~gitauth.auth.manager.CredentialManager` combines these with the
OAuth flows; import it from :mod:`gitauth.auth.manager`.
"""

from gitauth.auth.registry import CredentialPair, HostRegistry, filter_pairs
from gitauth.auth.secret_store import SecretStore
from gitauth.auth.token import Token

__all__ = [
    "CredentialPair",
    "HostRegistry",
    "SecretStore",
    "Token",
    "filter_pairs",
]
