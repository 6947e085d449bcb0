"""Authorization flow models for the Misskey OAuth flow.

Contains the authorization request, the flow state machine states and the
result handed to the success callback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode


class FlowState(str, Enum):
    """States of one authorization flow instance."""

    START = "start"
    REDIRECTING = "redirecting"
    EXCHANGING = "exchanging"
    FETCHING_PROFILE = "fetching_profile"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the redirect to Misskey."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scope: str
    code_challenge: str
    code_challenge_method: str = "S256"
    extra_params: dict[str, str] = field(default_factory=dict)

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL.

        Extra parameters are applied last and may replace computed ones.
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }
        params.update(self.extra_params)

        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class AuthResult:
    """Payload handed to the success callback.

    ``tokens`` is the token endpoint response as received and ``user`` is the
    decorated profile snapshot. Both are copies owned by the callback.
    """

    tokens: dict[str, Any]
    user: dict[str, Any]
