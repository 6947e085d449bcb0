"""Configuration models for the Misskey OAuth flow.

``MisskeyOAuthOptions`` is one configuration layer where ``None`` means "not
set here". ``FlowConfig`` is the effective, fully-resolved configuration for a
single flow instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlparse

from misskey_auth.models.errors import ConfigurationError

DEFAULT_ISSUER = "https://misskey.io"

# Misskey only returns the account through /api/i with this permission.
BASELINE_SCOPE = "read:account"

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class MisskeyOAuthOptions:
    """One layer of Misskey OAuth configuration.

    Attributes:
        issuer: Base URL of the Misskey instance
        client_id: Misskey client id, the URL of the app's introduction page
        scope: Requested permissions, e.g. ``["read:account"]``
        email_required: Adds ``read:account`` to the scope when missing
        profile_required: Adds ``read:account`` to the scope when missing
        authorization_url: Defaults to ``{issuer}/oauth/authorize``
        token_url: Defaults to ``{issuer}/oauth/token``
        authorization_params: Extra query parameters for the authorization URL
        redirect_url: Callback URL; defaults to the request URL without query
        user_agent: Client label sent with the profile lookup
    """

    issuer: str | None = None
    client_id: str | None = None
    scope: list[str] | None = None
    email_required: bool | None = None
    profile_required: bool | None = None
    authorization_url: str | None = None
    token_url: str | None = None
    authorization_params: dict[str, str] | None = None
    redirect_url: str | None = None
    user_agent: str | None = None


DEFAULT_OPTIONS = MisskeyOAuthOptions(
    issuer=DEFAULT_ISSUER,
    scope=[],
    email_required=False,
    profile_required=True,
    authorization_params={},
    user_agent="misskey-auth",
)


@dataclass(frozen=True)
class FlowConfig:
    """Effective configuration for one authorization flow instance."""

    client_id: str | None
    issuer: str | None
    scope: tuple[str, ...] = ()
    email_required: bool = False
    profile_required: bool = True
    authorization_url: str | None = None
    token_url: str | None = None
    authorization_params: dict[str, str] = field(default_factory=dict)
    redirect_url: str | None = None
    user_agent: str = "misskey-auth"

    @property
    def effective_scope(self) -> tuple[str, ...]:
        """Requested scope with the baseline scope added when required."""
        scope = list(dict.fromkeys(self.scope))
        if (self.email_required or self.profile_required) and (
            BASELINE_SCOPE not in scope
        ):
            scope.append(BASELINE_SCOPE)
        return tuple(scope)

    @property
    def scope_param(self) -> str:
        return " ".join(self.effective_scope)

    @property
    def profile_url(self) -> str:
        return f"{self.require_issuer()}/api/i"

    @property
    def uses_default_issuer(self) -> bool:
        return self.issuer == DEFAULT_ISSUER

    @property
    def issuer_host(self) -> str:
        """Host and non-default port of the issuer, without userinfo."""
        parsed = urlparse(self.require_issuer())
        host = parsed.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        port = parsed.port
        if port is not None and port != DEFAULT_PORTS.get(parsed.scheme):
            host = f"{host}:{port}"
        return host

    def require_client_id(self) -> str:
        if not self.client_id:
            raise ConfigurationError(
                "Missing OAUTH_MISSKEY_CLIENT_ID environment variable."
            )
        return self.client_id

    def require_issuer(self) -> str:
        if not self.issuer:
            raise ConfigurationError("Missing Misskey issuer.")
        return self.issuer

    def require_authorization_url(self) -> str:
        return self.authorization_url or f"{self.require_issuer()}/oauth/authorize"

    def require_token_url(self) -> str:
        return self.token_url or f"{self.require_issuer()}/oauth/token"
