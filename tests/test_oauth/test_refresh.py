"""Tests for the refresh-token grant."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import httpx
import pytest

from gitauth.auth.token import Token
from gitauth.exceptions import NoRefreshToken, ProviderError
from gitauth.models import ProviderConfig
from gitauth.oauth.refresh import TokenRefresher


def _response(status_code: int, json: dict[str, Any]) -> httpx.Response:
    return httpx.Response(
        status_code, json=json, request=httpx.Request("POST", "https://auth.example.com/token")
    )


class TestTokenRefresher:
    def test_refresh_posts_grant(self, github_provider: ProviderConfig) -> None:
        token = Token(access_token="gho_old", refresh_token="ghr_old")
        reply = _response(200, {"access_token": "gho_new", "refresh_token": "ghr_new"})

        with patch("gitauth.oauth.client.httpx.post", return_value=reply) as mock_post:
            fresh = TokenRefresher().refresh(github_provider, token)

        assert fresh.access_token == "gho_new"
        assert fresh.refresh_token == "ghr_new"
        assert mock_post.call_args.args[0] == github_provider.token_url
        assert mock_post.call_args.kwargs["data"] == {
            "grant_type": "refresh_token",
            "refresh_token": "ghr_old",
            "client_id": "test-client",
        }
        assert mock_post.call_args.kwargs["follow_redirects"] is False

    def test_client_secret_is_sent(self, browser_only_provider: ProviderConfig) -> None:
        token = Token(access_token="old", refresh_token="r")
        reply = _response(200, {"access_token": "new"})

        with patch("gitauth.oauth.client.httpx.post", return_value=reply) as mock_post:
            TokenRefresher().refresh(browser_only_provider, token)

        assert mock_post.call_args.kwargs["data"]["client_secret"] == "test-secret"

    def test_unrotated_refresh_token_is_kept(self, github_provider: ProviderConfig) -> None:
        token = Token(access_token="gho_old", refresh_token="ghr_keep")
        reply = _response(200, {"access_token": "gho_new", "expires_in": 28800})

        with patch("gitauth.oauth.client.httpx.post", return_value=reply):
            fresh = TokenRefresher().refresh(github_provider, token)

        assert fresh.refresh_token == "ghr_keep"
        assert fresh.expires_at is not None

    def test_missing_refresh_token(self, github_provider: ProviderConfig) -> None:
        with patch("gitauth.oauth.client.httpx.post") as mock_post:
            with pytest.raises(NoRefreshToken):
                TokenRefresher().refresh(github_provider, Token(access_token="gho_old"))
        mock_post.assert_not_called()

    def test_rejected_refresh(self, github_provider: ProviderConfig) -> None:
        token = Token(access_token="gho_old", refresh_token="ghr_revoked")
        reply = _response(400, {"error": "invalid_grant"})

        with patch("gitauth.oauth.client.httpx.post", return_value=reply):
            with pytest.raises(ProviderError) as exc_info:
                TokenRefresher().refresh(github_provider, token)

        assert exc_info.value.error == "invalid_grant"
