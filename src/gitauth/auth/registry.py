"""Per-host registry of credential names.

Tracks, for every Git host, which named credentials have been stored and
which one is *active* (used when Git does not ask for a specific username).
The registry lives in ``<config_dir>/hosts.toml``::

    ["github.com"]
    active = "alice"
    credentials = ["alice", "bob"]

    ["gitlab.example.com"]
    active = "carol"
    credentials = ["carol"]

The whole file is read once and rewritten in full after every mutation;
there are no partial updates and no cross-process locking, so two
concurrent writers race and the last one wins.

Invariants kept by every mutation:

* a host entry with credentials always has one of them active;
* a host entry without credentials does not exist.

See Also:
    :class:`~gitauth.auth.secret_store.SecretStore` -- holds the tokens the
    names refer to.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import tomli_w
from pydantic import ValidationError

from gitauth.auth.secret_store import SecretStore
from gitauth.config import atomic_write, hosts_file_path
from gitauth.exceptions import ConfigError
from gitauth.models import HostEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class CredentialPair:
    """One credential name stored for one host. Orders by host, then name."""

    host: str
    credential: str

    def label(self) -> str:
        """Return ``"credential (host)"``."""
        return f"{self.credential} ({self.host})"


def filter_pairs(
    pairs: Iterable[CredentialPair],
    host: Optional[str] = None,
    credential: Optional[str] = None,
) -> list[CredentialPair]:
    """Keep the pairs matching the given host and/or credential name.

    A ``None`` filter matches everything.
    """
    return [
        p
        for p in pairs
        if (host is None or p.host == host)
        and (credential is None or p.credential == credential)
    ]


def _looks_like_entry(value: dict[str, Any]) -> bool:
    return "active" in value and ("credentials" in value or "users" in value)


def _flatten_hosts(prefix: str, value: Any, out: dict[str, dict[str, Any]]) -> None:
    """Collect host tables, joining nested table names with dots.

    An unquoted TOML header such as ``[github.com]`` parses as nested tables
    ``github`` -> ``com``; this rebuilds the ``github.com`` key.
    """
    if not isinstance(value, dict):
        return
    if prefix and _looks_like_entry(value):
        out[prefix] = value
        return
    for key, child in value.items():
        _flatten_hosts(f"{prefix}.{key}" if prefix else key, child, out)


class HostRegistry:
    """Durable mapping of host -> :class:`~gitauth.models.HostEntry`.

    Use :meth:`load` to read the registry from disk. Every mutating method
    persists the full state before returning.

    Args:
        entries: Initial host entries.
        path: File to persist to. Defaults to
            :func:`~gitauth.config.hosts_file_path`.
        secret_store: Store whose entries are erased when a credential is
            removed.
    """

    def __init__(
        self,
        entries: Optional[dict[str, HostEntry]] = None,
        path: Optional[Path] = None,
        secret_store: Optional[SecretStore] = None,
    ) -> None:
        self._entries: dict[str, HostEntry] = dict(entries or {})
        self._path = path
        self._secret_store = secret_store if secret_store is not None else SecretStore()

    @property
    def path(self) -> Path:
        """The registry file location."""
        if self._path is None:
            self._path = hosts_file_path()
        return self._path

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        secret_store: Optional[SecretStore] = None,
    ) -> HostRegistry:
        """Read the registry file. A missing file yields an empty registry.

        Raises:
            ConfigError: If the file is not valid TOML or an entry is malformed.
        """
        path = path if path is not None else hosts_file_path()
        if not path.is_file():
            return cls(path=path, secret_store=secret_store)
        try:
            raw = tomllib.loads(path.read_text(encoding="utf-8"))
        except (tomllib.TOMLDecodeError, OSError) as exc:
            raise ConfigError(f"Invalid hosts file at {path}: {exc}") from exc

        tables: dict[str, dict[str, Any]] = {}
        _flatten_hosts("", raw, tables)
        try:
            entries = {host: HostEntry.model_validate(table) for host, table in tables.items()}
        except ValidationError as exc:
            raise ConfigError(f"Malformed host entry in {path}: {exc}") from exc
        return cls(entries, path=path, secret_store=secret_store)

    def to_toml(self) -> str:
        """Serialise the registry, hosts sorted by name."""
        data = {
            host: {"active": entry.active, "credentials": list(entry.credentials)}
            for host, entry in self.iter_sorted()
        }
        return tomli_w.dumps(data)

    def write(self) -> None:
        """Rewrite the registry file with the current state."""
        atomic_write(self.path, self.to_toml())
        logger.debug("Wrote %d host(s) to %s", len(self._entries), self.path)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def is_empty(self) -> bool:
        """``True`` when no hosts are recorded."""
        return not self._entries

    def hosts(self) -> Iterator[tuple[str, HostEntry]]:
        """Iterate over ``(host, entry)`` pairs in insertion order."""
        return iter(self._entries.items())

    def iter_sorted(self) -> Iterator[tuple[str, HostEntry]]:
        """Iterate over ``(host, entry)`` pairs sorted by host name."""
        return iter(sorted(self._entries.items()))

    def get_active_credential(self, host: str) -> Optional[str]:
        """Return the active credential for *host*, or ``None``."""
        entry = self._entries.get(host)
        if entry is None or not entry.active:
            return None
        return entry.active

    def get_credentials(self, host: str) -> list[str]:
        """Return the credential names recorded for *host* (empty if unknown)."""
        entry = self._entries.get(host)
        return list(entry.credentials) if entry is not None else []

    def has_credential(self, host: str, name: str) -> bool:
        """``True`` if *name* is recorded for *host*."""
        entry = self._entries.get(host)
        return entry is not None and name in entry.credentials

    def pairs(self) -> list[CredentialPair]:
        """All ``(host, credential)`` pairs, sorted by host then credential."""
        return sorted(
            CredentialPair(host, name)
            for host, entry in self._entries.items()
            for name in entry.credentials
        )

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def set_active_credential(self, host: str, name: str) -> None:
        """Make *name* the active credential for *host*, recording it if new."""
        entry = self._entries.get(host)
        if entry is None:
            self._entries[host] = HostEntry(active=name, credentials=[name])
        else:
            entry.active = name
            if name not in entry.credentials:
                entry.credentials.append(name)
        self.write()

    def add_credential(self, host: str, name: str) -> bool:
        """Record *name* for *host* without changing the active credential.

        A new host gets *name* as its active credential.

        Returns:
            ``True`` if the name was added, ``False`` if it was already known.
        """
        entry = self._entries.get(host)
        if entry is None:
            self._entries[host] = HostEntry(active=name, credentials=[name])
        elif name in entry.credentials:
            return False
        else:
            entry.credentials.append(name)
            if not entry.active:
                entry.active = name
        self.write()
        return True

    def remove_credential(self, host: str, name: str) -> bool:
        """Forget *name* for *host* and erase its stored token.

        If *name* was active, the first remaining credential becomes active;
        if none remain the host entry is dropped. The token is erased after
        the registry has been written, best effort: any vault failure is
        logged and does not affect the result.

        Returns:
            ``True`` if the name was recorded and has been removed.
        """
        entry = self._entries.get(host)
        if entry is None:
            return False

        if name not in entry.credentials:
            self._erase_secret(name, host)
            return False

        entry.credentials.remove(name)
        if not entry.credentials:
            del self._entries[host]
        elif entry.active == name or entry.active not in entry.credentials:
            entry.active = entry.credentials[0]
        self.write()
        self._erase_secret(name, host)
        return True

    def _erase_secret(self, name: str, host: str) -> None:
        try:
            self._secret_store.erase(name, host)
        except Exception as exc:
            logger.warning("Could not erase stored token for '%s' on %s: %s", name, host, exc)
