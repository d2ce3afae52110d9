"""Credential manager -- ties flows, secret storage and the host registry together.

The :class:`CredentialManager` performs the steps the credential helper
commands share:

* ``login`` -- run a flow, store the token, record the credential name.
* ``get_token`` -- read a stored token, refreshing (and re-storing) it when
  it has expired.
* ``refresh`` -- replace a stored token with one from a fresh flow.
* ``switch`` / ``logout`` -- change the active credential or forget one.
* ``status`` -- summarise every known credential without exposing secrets.

Prompting, argument parsing and the Git credential line protocol stay with
the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from gitauth.auth.registry import CredentialPair, HostRegistry, filter_pairs
from gitauth.auth.secret_store import SecretStore
from gitauth.auth.token import Token
from gitauth.exceptions import ConfigError, NotFoundError
from gitauth.models import OAuthConfig, ProviderConfig
from gitauth.oauth.selector import FlowSelector
from gitauth.output import OutputManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialStatus:
    """One row of :meth:`CredentialManager.status`.

    Attributes:
        host: Git host name.
        credential: Credential name.
        active: Whether this is the host's active credential.
        token: Masked access token, or ``None`` when the secret store has no
            entry for the pair.
    """

    host: str
    credential: str
    active: bool
    token: Optional[str]

    @property
    def missing(self) -> bool:
        """``True`` when the registry knows the name but no token is stored."""
        return self.token is None


class CredentialManager:
    """Orchestrate login, retrieval and bookkeeping of host credentials.

    Args:
        oauth_config: Provider table and flow options.
        registry: Host registry; loaded from disk when omitted.
        store: Secret store; the default keyring when omitted.
        output: Where flows print their instructions.

    Example::

        manager = CredentialManager(oauth_config)
        manager.login("github.com", "alice")
        token = manager.get_token("github.com")
    """

    def __init__(
        self,
        oauth_config: OAuthConfig,
        registry: Optional[HostRegistry] = None,
        store: Optional[SecretStore] = None,
        output: Optional[OutputManager] = None,
    ) -> None:
        self._oauth_config = oauth_config
        self._store = store if store is not None else SecretStore()
        self._registry = (
            registry if registry is not None else HostRegistry.load(secret_store=self._store)
        )
        self._output = output or OutputManager()

    @property
    def registry(self) -> HostRegistry:
        return self._registry

    def provider(self, host: str) -> ProviderConfig:
        """Return the provider for *host*.

        Raises:
            ConfigError: If no provider is configured for *host*.
        """
        provider = self._oauth_config.provider_for(host)
        if provider is None:
            raise ConfigError(f"No OAuth provider configured for {host}")
        return provider

    def acquire(self, host: str, force_device: bool = False) -> Token:
        """Run a flow for *host* without storing the result."""
        selector = FlowSelector(
            self.provider(host), self._oauth_config, force_device, self._output
        )
        return selector.get_access_token()

    def login(self, host: str, name: str, force_device: bool = False) -> Token:
        """Obtain a token for *host*, store it under *name* and record the name.

        A name already stored for the host is overwritten.
        """
        token = self.acquire(host, force_device)
        self._store.store(name, host, token)
        if self._registry.add_credential(host, name):
            logger.info("Added credential '%s' for %s", name, host)
        return token

    def resolve_name(self, host: str, name: Optional[str] = None) -> str:
        """Return *name* if given, else the active credential for *host*.

        Raises:
            NotFoundError: If no name was given and the host has no active
                credential.
        """
        if name:
            return name
        active = self._registry.get_active_credential(host)
        if active is None:
            raise NotFoundError(f"No active credential for {host}; log in first")
        return active

    def get_token(self, host: str, name: Optional[str] = None) -> Token:
        """Return a usable token for *host*, refreshing it if expired.

        A refreshed token is written back to the secret store. With
        ``oauth_only`` set, a fresh flow runs instead and neither the secret
        store nor the registry is consulted.

        Raises:
            NotFoundError: If no credential name resolves or nothing is stored.
            NoRefreshToken: If the token expired and cannot be refreshed.
        """
        if self._oauth_config.oauth_only:
            return self.acquire(host)

        name = self.resolve_name(host, name)
        token = self._store.get(name, host)
        before = token.model_copy()
        token.access_token_checked(self.provider(host))
        if token != before:
            self._store.store(name, host, token)
        return token

    def refresh(
        self,
        host: Optional[str] = None,
        name: Optional[str] = None,
        force_device: bool = False,
    ) -> CredentialPair:
        """Replace the stored token of exactly one known credential with a fresh one.

        Raises:
            NotFoundError: If no recorded credential matches the filters.
            ConfigError: If more than one matches.
        """
        target = self._single_pair(host, name)
        token = self.acquire(target.host, force_device)
        self._store.store(target.credential, target.host, token)
        return target

    def switch(self, host: str, name: str) -> None:
        """Make *name* the active credential for *host*.

        Raises:
            NotFoundError: If *name* is not recorded for *host*.
        """
        if not self._registry.has_credential(host, name):
            raise NotFoundError(f"No credential '{name}' recorded for {host}")
        self._registry.set_active_credential(host, name)

    def logout(self, host: str, name: str) -> None:
        """Forget *name* for *host* and erase its token.

        Raises:
            NotFoundError: If *name* is not recorded for *host*.
        """
        if not self._registry.remove_credential(host, name):
            raise NotFoundError(f"No credential '{name}' recorded for {host}")

    def status(self) -> list[CredentialStatus]:
        """Describe every recorded credential, hosts sorted, active first."""
        rows: list[CredentialStatus] = []
        for host, entry in self._registry.iter_sorted():
            names = sorted(entry.credentials, key=lambda n: (n != entry.active, n))
            for name in names:
                try:
                    masked: Optional[str] = self._store.get(name, host).masked()
                except NotFoundError:
                    masked = None
                rows.append(CredentialStatus(host, name, name == entry.active, masked))
        return rows

    def _single_pair(self, host: Optional[str], name: Optional[str]) -> CredentialPair:
        matches = filter_pairs(self._registry.pairs(), host, name)
        if not matches:
            raise NotFoundError(_describe_filters("No credentials found", host, name))
        if len(matches) > 1:
            labels = ", ".join(p.label() for p in matches)
            raise ConfigError(
                _describe_filters("Several credentials match", host, name) + f": {labels}"
            )
        return matches[0]


def _describe_filters(prefix: str, host: Optional[str], name: Optional[str]) -> str:
    if host and name:
        return f"{prefix} for '{name}' on {host}"
    if host:
        return f"{prefix} for {host}"
    if name:
        return f"{prefix} for '{name}'"
    return prefix
