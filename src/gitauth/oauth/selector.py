"""Choosing between the device flow and the browser flow.

Rules, in order:

1. ``force_device`` -- device flow only; the provider must have a
   ``device_auth_url``.
2. ``preferred_flow = device`` -- device flow only.
3. ``preferred_flow = authcode`` -- browser flow only.
4. ``preferred_flow = auto`` or unset -- device flow first when the provider
   has a ``device_auth_url``, falling back once to the browser flow if it
   fails; otherwise the browser flow directly.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from gitauth.auth.token import Token
from gitauth.exceptions import GitAuthError, UnsupportedFlow
from gitauth.models import OAuthConfig, PreferredFlow, ProviderConfig
from gitauth.oauth.auth_code import AuthCodePkceFlow
from gitauth.oauth.device_code import DeviceCodeFlow
from gitauth.output import OutputManager

logger = logging.getLogger(__name__)


class FlowKind(enum.Enum):
    """The two ways of obtaining a token."""

    DEVICE = "device"
    AUTHCODE = "authcode"


class FlowSelector:
    """Pick and run the OAuth flow for a provider.

    Args:
        provider: Provider to authenticate against.
        oauth_config: Shared options (listener port).
        force_device: Caller override that pins the device flow.
        output: Where flows print their instructions.
        device_flow: Factory for the device flow, ``DeviceCodeFlow`` by default.
        auth_code_flow: Factory for the browser flow, ``AuthCodePkceFlow`` by default.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        oauth_config: Optional[OAuthConfig] = None,
        force_device: bool = False,
        output: Optional[OutputManager] = None,
        device_flow: Optional[Callable[..., DeviceCodeFlow]] = None,
        auth_code_flow: Optional[Callable[..., AuthCodePkceFlow]] = None,
    ) -> None:
        self._provider = provider
        self._oauth_config = oauth_config or OAuthConfig()
        self._force_device = force_device
        self._output = output or OutputManager()
        self._device_flow = device_flow or DeviceCodeFlow
        self._auth_code_flow = auth_code_flow or AuthCodePkceFlow

    def plan(self) -> tuple[FlowKind, ...]:
        """Return the flows to attempt, in order.

        Raises:
            UnsupportedFlow: If the device flow is forced on a provider
                without ``device_auth_url``.
        """
        has_device = bool(self._provider.device_auth_url)
        if self._force_device:
            if not has_device:
                raise UnsupportedFlow(
                    "Device flow was requested but the provider has no 'device_auth_url'"
                )
            return (FlowKind.DEVICE,)

        preferred = self._provider.preferred_flow or PreferredFlow.AUTO
        if preferred is PreferredFlow.DEVICE:
            return (FlowKind.DEVICE,)
        if preferred is PreferredFlow.AUTHCODE:
            return (FlowKind.AUTHCODE,)
        if has_device:
            return (FlowKind.DEVICE, FlowKind.AUTHCODE)
        return (FlowKind.AUTHCODE,)

    def get_access_token(self) -> Token:
        """Run the planned flows until one yields a token.

        Only the automatic mode has a second flow; its failure is raised
        unchanged.
        """
        first, *fallback = self.plan()
        try:
            return self._run(first)
        except GitAuthError as exc:
            if not fallback:
                raise
            logger.info(
                "%s flow failed (%s), falling back to %s flow",
                first.value,
                exc,
                fallback[0].value,
            )
            self._output.warning(f"Device flow failed: {exc}. Trying the browser flow instead.")
            return self._run(fallback[0])

    def _run(self, kind: FlowKind) -> Token:
        logger.debug("Running %s flow", kind.value)
        if kind is FlowKind.DEVICE:
            return self._device_flow(self._provider, output=self._output).run()
        return self._auth_code_flow(
            self._provider, self._oauth_config, output=self._output
        ).run()


def get_access_token(
    provider: ProviderConfig,
    oauth_config: Optional[OAuthConfig] = None,
    force_device: bool = False,
    output: Optional[OutputManager] = None,
) -> Token:
    """Obtain a fresh token for *provider* using :class:`FlowSelector`."""
    return FlowSelector(provider, oauth_config, force_device, output).get_access_token()
