"""Shared test fixtures for gitauth.

Provides an isolated config directory, an in-memory keyring backend, and
ready-made provider configurations. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from gitauth.auth.secret_store import SecretStore
from gitauth.models import OAuthConfig, ProviderConfig
from gitauth.output import OutputManager


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps secrets in a dict."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> Optional[str]:
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME and HOME at subdirectories of tmp_path so that
    tests never touch the real hosts file.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Secret store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_keyring() -> MemoryKeyring:
    return MemoryKeyring()


@pytest.fixture
def secret_store(memory_keyring: MemoryKeyring) -> SecretStore:
    """A SecretStore writing to the in-memory keyring."""
    return SecretStore(backend=memory_keyring)


# ---------------------------------------------------------------------------
# Provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def github_provider() -> ProviderConfig:
    """A GitHub-like provider with both flows available."""
    return ProviderConfig(
        client_id="test-client",
        auth_url="https://github.example.com/login/oauth/authorize",
        token_url="https://github.example.com/login/oauth/access_token",
        device_auth_url="https://github.example.com/login/device/code",
        scopes=["repo", "workflow"],
    )


@pytest.fixture
def browser_only_provider() -> ProviderConfig:
    """A provider without a device authorization endpoint."""
    return ProviderConfig(
        client_id="test-client",
        client_secret="test-secret",
        auth_url="https://gitlab.example.com/oauth/authorize",
        token_url="https://gitlab.example.com/oauth/token",
    )


@pytest.fixture
def oauth_config(github_provider: ProviderConfig) -> OAuthConfig:
    return OAuthConfig(providers={"github.com": github_provider})


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def plain_output() -> OutputManager:
    """A no-colour output manager, so captured stderr is plain text."""
    return OutputManager(no_color=True)
