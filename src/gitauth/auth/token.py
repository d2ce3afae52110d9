"""The OAuth token value handed to Git.

A :class:`Token` is what every flow produces and what the secret store
persists. It carries the access token, an optional refresh token and an
optional absolute expiry, and knows how to refresh itself lazily via
:meth:`Token.access_token_checked`.

Stored form (one keyring secret per credential)::

    {"access_token":"gho_...","refresh_token":null,"expires_at":"2030-01-01T00:00:00Z"}

Secrets never appear in ``str()`` or ``repr()`` output; only the first four
characters of the access token followed by a fixed mask are shown.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from gitauth.exceptions import SecretStoreError

if TYPE_CHECKING:
    from gitauth.models import ProviderConfig
    from gitauth.oauth.refresh import TokenRefresher

logger = logging.getLogger(__name__)

_VISIBLE_CHARS = 4
_MASK = "***"


class Token(BaseModel):
    """An access token with optional refresh token and expiry.

    Attributes:
        access_token: The bearer secret Git sends as the password.
        refresh_token: Secret used to obtain a new access token, if issued.
        expires_at: Absolute UTC expiry. ``None`` means the provider did not
            report a lifetime and the token is treated as non-expiring.

    Example::

        token = Token(access_token="gho_abcdef", expires_at=None)
        str(token)        # 'gho_***'
        Token.unpack(token.pack()) == token   # True
    """

    access_token: str = Field(repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def _normalize_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def __str__(self) -> str:
        return self.masked()

    def masked(self) -> str:
        """Return the access token reduced to its first four characters plus a mask."""
        if len(self.access_token) > _VISIBLE_CHARS:
            return self.access_token[:_VISIBLE_CHARS] + _MASK
        return _MASK

    @property
    def is_expired(self) -> bool:
        """``True`` when an expiry is set and lies in the past."""
        if self.expires_at is None:
            return False
        return self.expires_at < datetime.now(timezone.utc)

    def access_token_checked(
        self,
        provider: ProviderConfig,
        refresher: Optional[TokenRefresher] = None,
    ) -> str:
        """Return the access token, refreshing it first if it has expired.

        When :attr:`expires_at` is in the past the token is exchanged via
        *refresher* (a default :class:`~gitauth.oauth.refresh.TokenRefresher`
        when omitted) and every field of this instance is replaced with the
        refreshed values. Otherwise no I/O happens.

        Args:
            provider: Provider whose token endpoint issues the refresh.
            refresher: Optional refresher, mostly for tests.

        Returns:
            The current (possibly new) access token.

        Raises:
            NoRefreshToken: If the token expired and has no refresh token.
            ProviderError: If the provider rejects the refresh.
            NetworkError: On transport failures.
        """
        if self.is_expired:
            logger.info("Access token %s expired, refreshing", self)
            if refresher is None:
                from gitauth.oauth.refresh import TokenRefresher

                refresher = TokenRefresher()
            fresh = refresher.refresh(provider, self)
            self.access_token = fresh.access_token
            self.refresh_token = fresh.refresh_token
            self.expires_at = fresh.expires_at
        return self.access_token

    def pack(self) -> str:
        """Serialise to the compact JSON stored in the secret vault."""
        return self.model_dump_json()

    @classmethod
    def unpack(cls, data: str) -> Token:
        """Rebuild a token from :meth:`pack` output.

        Raises:
            SecretStoreError: If *data* is not a valid stored token.
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as exc:
            raise SecretStoreError(f"Stored token is malformed: {exc.error_count()} error(s)") from exc
