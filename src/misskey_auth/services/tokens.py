"""Authorization code exchange against the Misskey token endpoint.

Implements the RFC 6749 token request with the PKCE code_verifier (RFC 7636).
Provider-reported errors, transport failures and malformed responses all
surface as ``TokenExchangeError``.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from misskey_auth.models.errors import TokenDecodeError, TokenExchangeError
from misskey_auth.models.tokens import TokenRequest, TokenResponse

logger = logging.getLogger(__name__)


class MisskeyTokenManager:
    """Exchanges authorization codes for access tokens.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    Never retries; a failed exchange ends the flow instance.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize the token manager.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for an access token.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Successful response carrying an access token

        Raises:
            TokenExchangeError: If the provider reports an error, or the
                request or its decoding fails
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form_data = token_request.to_form_data()

        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}, scope={form_data['scope']!r}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.warning(f"HTTP error during token exchange: {e}")
            raise TokenExchangeError(
                "Misskey login failed: Unknown error", data={"error": str(e)}
            ) from e

        token_response = self._parse_token_response(response)

        if token_response.is_error():
            description = token_response.describe_error()
            logger.warning(
                f"Token exchange failed with {response.status_code}: {description}"
            )
            raise TokenExchangeError(
                f"Misskey login failed: {description}",
                data=token_response.to_passthrough(),
            )

        logger.info("Token exchange successful")
        return token_response

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Decode the token endpoint body into a TokenResponse.

        Error bodies are returned as error responses; anything that is not a
        JSON object, or a success body without an access token, is a decode
        error.

        Raises:
            TokenDecodeError: If the response has an unexpected shape
        """
        try:
            response_data = response.json()
        except ValueError as e:
            raise TokenDecodeError(
                "Misskey login failed: Unknown error",
                data={"error": f"Invalid token response body: {e}"},
            ) from e

        if not isinstance(response_data, dict):
            raise TokenDecodeError(
                "Misskey login failed: Unknown error",
                data={"error": "Token response is not a JSON object"},
            )

        try:
            token_response = TokenResponse.model_validate(response_data)
        except ValidationError as e:
            raise TokenDecodeError(
                "Misskey login failed: Unknown error",
                data={"error": f"Invalid token response format: {e}"},
            ) from e

        if token_response.is_error():
            return token_response

        if response.status_code >= 400:
            # Error status without an error marker in the body
            return token_response.model_copy(
                update={"error": f"http_{response.status_code}"}
            )

        if token_response.access_token is None:
            raise TokenDecodeError(
                "Misskey login failed: Unknown error",
                data={"error": "Token response missing required access_token"},
            )

        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
