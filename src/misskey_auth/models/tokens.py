"""Token exchange models for the Misskey OAuth flow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636) read back from the
    verifier store.
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str = field(repr=False)
    scope: str = ""
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for an application/x-www-form-urlencoded body."""
        return {
            "client_id": self.client_id,
            "grant_type": self.grant_type,
            "redirect_uri": self.redirect_uri,
            "code": self.code,
            "code_verifier": self.code_verifier,
            "scope": self.scope,
        }


class TokenResponse(BaseModel):
    """Token endpoint response.

    Misskey reports failures as ``{"error": {"data": {"error_description":
    ...}}}``; plain RFC 6749 servers use a string ``error`` next to
    ``error_description``. Both shapes are accepted. Unknown fields are
    kept and passed through to the success callback.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str | None = None
    token_type: str | None = None
    scope: str | None = None

    error: Any = None
    error_description: str | None = None

    def is_error(self) -> bool:
        return bool(self.error)

    def describe_error(self) -> str:
        """Return the provider's error description, or ``"Unknown error"``."""
        if isinstance(self.error, dict):
            data = self.error.get("data")
            if isinstance(data, dict) and data.get("error_description"):
                return str(data["error_description"])
        return self.error_description or "Unknown error"

    def to_passthrough(self) -> dict[str, Any]:
        """Return the response fields exactly as the provider sent them."""
        return {**self.model_dump(exclude_unset=True), **(self.model_extra or {})}
