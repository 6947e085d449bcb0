"""Exception hierarchy for the Misskey OAuth flow.

Every error carries an HTTP status code and a message. The base class is a
Starlette ``HTTPException`` so that an error raised out of the handler with no
error callback registered aborts the request with just that status and message.
"""

from __future__ import annotations

from typing import Any

from starlette.exceptions import HTTPException


class OAuth2Error(HTTPException):
    """Base exception for all Misskey OAuth flow errors."""

    default_status_code = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(
            status_code=status_code or self.default_status_code, detail=message
        )
        self.message = message
        self.data = data

    def __str__(self) -> str:
        return self.message


class ConfigurationError(OAuth2Error):
    """Raised when the client id or issuer is missing after config resolution."""

    default_status_code = 500


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class PKCEStateError(OAuth2Error):
    """Raised when a callback arrives without a stored code verifier."""

    default_status_code = 401


class TokenExchangeError(OAuth2Error):
    """Raised when authorization code to token exchange fails.

    Covers both errors reported by the provider and transport failures.
    """

    default_status_code = 401


class TokenDecodeError(TokenExchangeError):
    """Raised when the token endpoint answers with an unexpected shape."""

    pass


class ProfileFetchError(OAuth2Error):
    """Raised when the profile lookup after a successful exchange fails."""

    default_status_code = 502


class ProfileDecodeError(ProfileFetchError):
    """Raised when the profile endpoint answers with an unexpected shape."""

    pass
