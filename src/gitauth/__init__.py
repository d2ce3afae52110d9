"""gitauth -- OAuth2 credential helper for Git.

Git asks a credential helper for a username and password whenever it talks
to a remote over HTTPS. ``gitauth`` answers those requests with short-lived
OAuth2 access tokens obtained from the hosting provider (GitHub, GitLab,
Forgejo, ...), and keeps them fresh with refresh tokens.

This package holds the credential engine:

* :mod:`gitauth.oauth` -- the browser (authorization code + PKCE) and device
  authorization flows, token refresh, and flow selection.
* :mod:`gitauth.auth` -- the :class:`~gitauth.auth.token.Token` value,
  keyring-backed secret storage, and the per-host credential registry.

Modules:
    models: Pydantic models for provider configuration and registry entries.
    config: XDG-aware paths and atomic file writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"
