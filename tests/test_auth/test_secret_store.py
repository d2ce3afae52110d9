"""Tests for keyring-backed token storage."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from keyring.errors import KeyringError

from gitauth.auth.secret_store import SecretStore
from gitauth.auth.token import Token
from gitauth.exceptions import NotFoundError, SecretStoreError


class TestStoreAndGet:
    """Writing and reading tokens."""

    def test_round_trip(self, secret_store: SecretStore) -> None:
        token = Token(access_token="gho_abcdef", refresh_token="ghr_1")
        secret_store.store("alice", "github.com", token)
        assert secret_store.get("alice", "github.com") == token

    def test_store_overwrites(self, secret_store: SecretStore) -> None:
        secret_store.store("alice", "github.com", Token(access_token="first"))
        secret_store.store("alice", "github.com", Token(access_token="second"))
        assert secret_store.get("alice", "github.com").access_token == "second"

    def test_missing_entry_raises_not_found(self, secret_store: SecretStore) -> None:
        with pytest.raises(NotFoundError):
            secret_store.get("nobody", "github.com")

    def test_pairs_are_independent(self, secret_store: SecretStore) -> None:
        secret_store.store("alice", "github.com", Token(access_token="alice-gh"))
        secret_store.store("bob", "github.com", Token(access_token="bob-gh"))
        secret_store.store("alice", "gitlab.com", Token(access_token="alice-gl"))

        assert secret_store.get("alice", "github.com").access_token == "alice-gh"
        assert secret_store.get("bob", "github.com").access_token == "bob-gh"
        assert secret_store.get("alice", "gitlab.com").access_token == "alice-gl"

    def test_backend_failure_is_wrapped(self) -> None:
        backend = MagicMock()
        backend.get_password.side_effect = KeyringError("vault locked")
        store = SecretStore(backend=backend)

        with pytest.raises(SecretStoreError, match="vault locked"):
            store.get("alice", "github.com")

    def test_corrupt_entry_raises(self, secret_store: SecretStore, memory_keyring) -> None:
        service, username = secret_store.entry_key("alice", "github.com")
        memory_keyring.set_password(service, username, "{broken")

        with pytest.raises(SecretStoreError):
            secret_store.get("alice", "github.com")


class TestErase:
    """Deleting tokens."""

    def test_erase_removes_entry(self, secret_store: SecretStore) -> None:
        secret_store.store("alice", "github.com", Token(access_token="gho_abcdef"))
        secret_store.erase("alice", "github.com")
        with pytest.raises(NotFoundError):
            secret_store.get("alice", "github.com")

    def test_erase_missing_is_noop(self, secret_store: SecretStore) -> None:
        secret_store.erase("alice", "github.com")
        secret_store.erase("alice", "github.com")

    def test_erase_leaves_other_pairs(self, secret_store: SecretStore) -> None:
        secret_store.store("alice", "github.com", Token(access_token="alice-gh"))
        secret_store.store("bob", "github.com", Token(access_token="bob-gh"))
        secret_store.erase("alice", "github.com")
        assert secret_store.get("bob", "github.com").access_token == "bob-gh"

    def test_erase_backend_failure_is_wrapped(self) -> None:
        backend = MagicMock()
        backend.delete_password.side_effect = KeyringError("dbus gone")
        store = SecretStore(backend=backend)

        with pytest.raises(SecretStoreError):
            store.erase("alice", "github.com")


class TestEntryKey:
    """Keyring addressing per platform."""

    def test_posix_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("gitauth.auth.secret_store.sys.platform", "linux")
        store = SecretStore(backend=MagicMock())
        assert store.entry_key("alice", "github.com") == ("gitauth:github.com", "alice")

    def test_windows_key_includes_credential(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("gitauth.auth.secret_store.sys.platform", "win32")
        store = SecretStore(backend=MagicMock())
        assert store.entry_key("alice", "github.com") == ("gitauth:alice@github.com", "alice")

    def test_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("gitauth.auth.secret_store.sys.platform", "linux")
        store = SecretStore(backend=MagicMock(), service_prefix="other")
        assert store.entry_key("alice", "github.com") == ("other:github.com", "alice")
