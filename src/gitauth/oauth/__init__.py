"""OAuth2 flows for obtaining and refreshing Git host tokens.

- :class:`AuthCodePkceFlow` -- browser redirect with PKCE and a one-shot
  loopback listener.
- :class:`DeviceCodeFlow` -- device authorization grant with a fallback for
  providers that do not follow :rfc:`8628` polling.
- :class:`FlowSelector` / :func:`get_access_token` -- pick the flow from the
  provider configuration.
- :class:`TokenRefresher` -- refresh-token grant.

Typical usage::

    from gitauth.oauth import get_access_token

    token = get_access_token(provider, oauth_config)
"""

from gitauth.oauth.auth_code import AuthCodePkceFlow
from gitauth.oauth.device_code import DeviceCodeFlow, PollMode
from gitauth.oauth.refresh import TokenRefresher
from gitauth.oauth.selector import FlowKind, FlowSelector, get_access_token

__all__ = [
    "AuthCodePkceFlow",
    "DeviceCodeFlow",
    "FlowKind",
    "FlowSelector",
    "PollMode",
    "TokenRefresher",
    "get_access_token",
]
