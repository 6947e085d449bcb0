"""Profile snapshot returned by the Misskey ``/api/i`` endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ProfileSnapshot(BaseModel):
    """Public profile of the authenticated account.

    Only ``id`` is required; every other field Misskey returns is kept.
    ``host`` is ``None`` for accounts local to the instance.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    username: str | None = None
    name: str | None = None
    host: str | None = None
    avatarUrl: str | None = None
    isBot: bool | None = None
    description: str | None = None

    def decorated(self, host: str | None) -> dict[str, Any]:
        """Return the profile as a plain dict, with ``host`` set when given."""
        user = {**self.model_dump(exclude_unset=True), **(self.model_extra or {})}
        if host is not None:
            user["host"] = host
        return user
