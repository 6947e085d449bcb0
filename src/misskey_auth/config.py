"""Environment configuration for the Misskey OAuth flow.

Values are read from ``OAUTH_MISSKEY_*`` environment variables or a ``.env``
file, e.g.::

    OAUTH_MISSKEY_CLIENT_ID=https://app.example.com/
    OAUTH_MISSKEY_ISSUER=https://misskey.example
    OAUTH_MISSKEY_SCOPE='["read:account", "write:notes"]'
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from misskey_auth.models.config import MisskeyOAuthOptions


class MisskeyOAuthSettings(BaseSettings):
    """Runtime configuration layer loaded from the environment.

    Every field is optional so that unset variables fall through to the
    built-in defaults instead of overriding them.
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTH_MISSKEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    client_id: str | None = Field(None, description="Misskey OAuth client id")
    issuer: str | None = Field(None, description="Misskey instance base URL")
    scope: list[str] | None = Field(None, description="Requested permissions")
    email_required: bool | None = None
    profile_required: bool | None = None
    authorization_url: str | None = None
    token_url: str | None = None
    authorization_params: dict[str, str] | None = None
    redirect_url: str | None = None
    user_agent: str | None = None

    @field_validator("issuer", "authorization_url", "token_url", "redirect_url")
    @classmethod
    def blank_as_unset(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    def to_options(self) -> MisskeyOAuthOptions:
        return MisskeyOAuthOptions(**self.model_dump())


@lru_cache()
def get_settings() -> MisskeyOAuthSettings:
    """Get cached settings instance."""
    return MisskeyOAuthSettings()
