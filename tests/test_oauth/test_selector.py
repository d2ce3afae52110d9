"""Tests for flow selection and fallback."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from gitauth.auth.token import Token
from gitauth.exceptions import NetworkError, ProviderError, UnsupportedFlow
from gitauth.models import OAuthConfig, PreferredFlow, ProviderConfig
from gitauth.oauth.selector import FlowKind, FlowSelector, get_access_token
from gitauth.output import OutputManager


def _provider(device: bool = True, preferred: PreferredFlow | None = None) -> ProviderConfig:
    return ProviderConfig(
        client_id="test-client",
        auth_url="https://git.example.com/authorize",
        token_url="https://git.example.com/token",
        device_auth_url="https://git.example.com/device" if device else None,
        preferred_flow=preferred,
    )


def _factories(
    device_result: Token | Exception, browser_result: Token | Exception
) -> tuple[MagicMock, MagicMock]:
    device_flow = MagicMock()
    browser_flow = MagicMock()
    for factory, result in ((device_flow, device_result), (browser_flow, browser_result)):
        if isinstance(result, Exception):
            factory.return_value.run.side_effect = result
        else:
            factory.return_value.run.return_value = result
    return device_flow, browser_flow


class TestPlan:
    @pytest.mark.parametrize(
        ("provider", "force_device", "expected"),
        [
            (_provider(), True, (FlowKind.DEVICE,)),
            (_provider(preferred=PreferredFlow.DEVICE), False, (FlowKind.DEVICE,)),
            (_provider(preferred=PreferredFlow.AUTHCODE), False, (FlowKind.AUTHCODE,)),
            (_provider(preferred=PreferredFlow.AUTHCODE), True, (FlowKind.DEVICE,)),
            (_provider(), False, (FlowKind.DEVICE, FlowKind.AUTHCODE)),
            (
                _provider(preferred=PreferredFlow.AUTO),
                False,
                (FlowKind.DEVICE, FlowKind.AUTHCODE),
            ),
            (_provider(device=False), False, (FlowKind.AUTHCODE,)),
        ],
    )
    def test_plan(
        self,
        provider: ProviderConfig,
        force_device: bool,
        expected: tuple[FlowKind, ...],
    ) -> None:
        assert FlowSelector(provider, force_device=force_device).plan() == expected

    def test_forced_device_without_endpoint(self) -> None:
        with pytest.raises(UnsupportedFlow):
            FlowSelector(_provider(device=False), force_device=True).plan()


class TestGetAccessToken:
    def test_device_success_skips_browser(self, plain_output: OutputManager) -> None:
        token = Token(access_token="gho_device")
        device_flow, browser_flow = _factories(token, Token(access_token="unused"))
        selector = FlowSelector(
            _provider(),
            output=plain_output,
            device_flow=device_flow,
            auth_code_flow=browser_flow,
        )

        assert selector.get_access_token() == token
        browser_flow.assert_not_called()

    def test_auto_falls_back_once(
        self, plain_output: OutputManager, capsys: pytest.CaptureFixture[str]
    ) -> None:
        token = Token(access_token="gho_browser")
        device_flow, browser_flow = _factories(NetworkError("unreachable"), token)
        config = OAuthConfig(port=8400)
        selector = FlowSelector(
            _provider(),
            config,
            output=plain_output,
            device_flow=device_flow,
            auth_code_flow=browser_flow,
        )

        assert selector.get_access_token() == token
        browser_flow.assert_called_once()
        assert browser_flow.call_args.args[1] is config
        assert "unreachable" in capsys.readouterr().err

    def test_browser_failure_after_fallback_propagates(self, plain_output: OutputManager) -> None:
        device_flow, browser_flow = _factories(
            ProviderError("access_denied"), ProviderError("invalid_grant")
        )
        selector = FlowSelector(
            _provider(),
            output=plain_output,
            device_flow=device_flow,
            auth_code_flow=browser_flow,
        )

        with pytest.raises(ProviderError, match="invalid_grant"):
            selector.get_access_token()

    def test_pinned_device_does_not_fall_back(self, plain_output: OutputManager) -> None:
        device_flow, browser_flow = _factories(
            ProviderError("access_denied"), Token(access_token="unused")
        )
        selector = FlowSelector(
            _provider(preferred=PreferredFlow.DEVICE),
            output=plain_output,
            device_flow=device_flow,
            auth_code_flow=browser_flow,
        )

        with pytest.raises(ProviderError, match="access_denied"):
            selector.get_access_token()
        browser_flow.assert_not_called()

    def test_forced_device_does_not_fall_back(self, plain_output: OutputManager) -> None:
        device_flow, browser_flow = _factories(
            NetworkError("unreachable"), Token(access_token="unused")
        )
        selector = FlowSelector(
            _provider(),
            force_device=True,
            output=plain_output,
            device_flow=device_flow,
            auth_code_flow=browser_flow,
        )

        with pytest.raises(NetworkError):
            selector.get_access_token()
        browser_flow.assert_not_called()

    def test_module_helper(self, plain_output: OutputManager) -> None:
        token = Token(access_token="gho_browser")
        with patch("gitauth.oauth.selector.AuthCodePkceFlow") as browser_flow:
            browser_flow.return_value.run.return_value = token
            result = get_access_token(_provider(device=False), output=plain_output)

        assert result == token
