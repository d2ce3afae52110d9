"""Canonical Pydantic models shared across gitauth modules.

**Configuration models** -- handed to the engine already loaded and merged
by the caller:
    :class:`PreferredFlow`, :class:`ProviderConfig`, :class:`OAuthConfig`.

**Registry models** -- serialised as TOML in the user's config directory:
    :class:`HostEntry`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# --- Provider configuration ---


class PreferredFlow(str, enum.Enum):
    """Which OAuth flow a provider should use.

    ``AUTO`` tries the device flow first when the provider has a device
    authorization endpoint and falls back to the browser flow; the other two
    members pin a single flow.
    """

    AUTO = "auto"
    DEVICE = "device"
    AUTHCODE = "authcode"


class ProviderConfig(BaseModel):
    """OAuth endpoints and client registration for one Git host.

    ``scopes`` distinguishes ``None`` (no ``scope`` parameter configured)
    from an explicit empty list.

    Example::

        ProviderConfig(
            client_id="Iv1.0123456789abcdef",
            auth_url="https://github.com/login/oauth/authorize",
            token_url="https://github.com/login/oauth/access_token",
            device_auth_url="https://github.com/login/device/code",
            scopes=["repo", "workflow"],
        )
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1, description="OAuth client identifier")
    client_secret: Optional[str] = Field(
        default=None, repr=False, description="Client secret, if the app has one"
    )
    auth_url: str = Field(description="Authorization endpoint")
    token_url: str = Field(description="Token endpoint")
    device_auth_url: Optional[str] = Field(
        default=None, description="Device authorization endpoint (RFC 8628)"
    )
    scopes: Optional[list[str]] = Field(
        default=None, description="Scopes to request, in order"
    )
    preferred_flow: Optional[PreferredFlow] = Field(
        default=None, description="Flow override: auto, device, authcode"
    )

    @field_validator("client_id")
    @classmethod
    def _client_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("client_id must not be blank")
        return value


class OAuthConfig(BaseModel):
    """Provider table plus options that apply to every flow."""

    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    port: Optional[int] = Field(
        default=None,
        ge=0,
        le=65535,
        description="Loopback port for the redirect listener (0 = ephemeral)",
    )
    oauth_only: Optional[bool] = Field(
        default=None,
        description="Always run a fresh flow instead of reading stored credentials",
    )

    def provider_for(self, host: str) -> Optional[ProviderConfig]:
        """Return the provider configured for *host*, or ``None``."""
        return self.providers.get(host)


# --- Host registry ---


class HostEntry(BaseModel):
    """Credentials known for one host and which of them is active.

    ``credentials`` keeps insertion order and never holds duplicates. When it
    is non-empty, ``active`` is one of its members. The legacy key ``users``
    is accepted when reading.
    """

    model_config = ConfigDict(populate_by_name=True)

    active: str = ""
    credentials: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("credentials", "users"),
    )

    @field_validator("credentials")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))
