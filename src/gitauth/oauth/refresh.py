"""Refresh-token grant (:rfc:`6749#section-6`)."""

from __future__ import annotations

import logging

from gitauth.auth.token import Token
from gitauth.exceptions import NoRefreshToken
from gitauth.models import ProviderConfig
from gitauth.oauth.client import parse_token_response, post_form

logger = logging.getLogger(__name__)


class TokenRefresher:
    """Exchange a refresh token for a new :class:`~gitauth.auth.token.Token`."""

    def refresh(self, provider: ProviderConfig, token: Token) -> Token:
        """Run the refresh grant against ``provider.token_url``.

        The client id (and secret, when configured) are sent in the form
        body. If the server does not rotate the refresh token, the current
        one is carried over to the returned token.

        Args:
            provider: Provider configuration with ``token_url`` and
                ``client_id``.
            token: The expired token.

        Returns:
            A new token; ``expires_at`` is ``None`` if the server reports no
            lifetime.

        Raises:
            NoRefreshToken: If *token* has no refresh token.
            ProviderError: If the server rejects the grant.
            ProtocolError: If the response is malformed.
            NetworkError: On transport failures.
        """
        if not token.refresh_token:
            raise NoRefreshToken("Token has no refresh token; log in again")

        data: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": token.refresh_token,
            "client_id": provider.client_id,
        }
        if provider.client_secret:
            data["client_secret"] = provider.client_secret

        response = post_form(provider.token_url, data, "Token refresh")
        fresh = parse_token_response(response, "Token refresh")
        if fresh.refresh_token is None:
            fresh.refresh_token = token.refresh_token
        logger.info("Refreshed access token %s", fresh)
        return fresh

