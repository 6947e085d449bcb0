"""Profile lookup for an authenticated Misskey account.

Misskey takes the access token in the JSON body (``{"i": token}``) rather
than in an Authorization header.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from misskey_auth.models.errors import ProfileDecodeError, ProfileFetchError
from misskey_auth.models.profile import ProfileSnapshot

logger = logging.getLogger(__name__)


class MisskeyProfileFetcher:
    """Fetches the "who am I" profile from a Misskey instance."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def fetch_profile(
        self, profile_url: str, access_token: str, user_agent: str
    ) -> ProfileSnapshot:
        """Fetch the profile of the account owning ``access_token``.

        Raises:
            ProfileFetchError: On transport failure or a non-2xx status
            ProfileDecodeError: If the body is not a profile object
        """
        logger.debug(f"Fetching Misskey profile from {profile_url}")

        try:
            response = await self._http_client.post(
                profile_url,
                json={"i": access_token},
                headers={"User-Agent": user_agent, "Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProfileFetchError(
                f"Misskey profile lookup failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ProfileFetchError(f"Misskey profile lookup failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProfileDecodeError(
                f"Invalid Misskey profile response body: {e}"
            ) from e

        if not isinstance(data, dict):
            raise ProfileDecodeError("Misskey profile response is not a JSON object")

        try:
            profile = ProfileSnapshot.model_validate(data)
        except ValidationError as e:
            raise ProfileDecodeError(
                f"Invalid Misskey profile response format: {e}"
            ) from e

        logger.info(f"Fetched Misskey profile for account {profile.id}")
        return profile

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
