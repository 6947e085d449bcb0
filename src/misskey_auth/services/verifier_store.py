"""Short-lived storage for the PKCE code verifier between redirect and callback.

The flow only needs ``put / get / delete``. The default store keeps the
verifier itself in an HTTP-only cookie; ``MemoryVerifierStore`` keeps it on
the server and puts only an opaque handle in the cookie.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Protocol

from misskey_auth.context import FlowContext

logger = logging.getLogger(__name__)

VERIFIER_COOKIE = "code_verifier"
VERIFIER_TTL_SECONDS = 60 * 30


class VerifierStore(Protocol):
    """Protocol for code verifier storage keyed to one client session."""

    def put(self, context: FlowContext, verifier: str, ttl: int) -> None: ...

    def get(self, context: FlowContext) -> str | None: ...

    def delete(self, context: FlowContext) -> None: ...


class CookieVerifierStore:
    """Stores the code verifier in an HTTP-only, secure, same-site=lax cookie.

    The cookie path is scoped to the callback route.
    """

    def __init__(self, cookie_name: str = VERIFIER_COOKIE, secure: bool = True):
        self.cookie_name = cookie_name
        self.secure = secure

    def put(self, context: FlowContext, verifier: str, ttl: int) -> None:
        context.set_cookie(
            self.cookie_name,
            verifier,
            max_age=ttl,
            path=context.callback_path,
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def get(self, context: FlowContext) -> str | None:
        return context.get_cookie(self.cookie_name) or None

    def delete(self, context: FlowContext) -> None:
        context.delete_cookie(
            self.cookie_name,
            path=context.callback_path,
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )


@dataclass
class _PendingVerifier:
    verifier: str
    expires_at: float

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class MemoryVerifierStore:
    """Keeps verifiers in process memory, keyed by a random per-flow handle.

    Only the handle travels in the cookie, and deleting removes the verifier
    on the server, so a replayed cookie can never be used twice.
    """

    def __init__(self, cookie_name: str = VERIFIER_COOKIE, secure: bool = True):
        self._cookies = CookieVerifierStore(cookie_name, secure)
        self._pending: dict[str, _PendingVerifier] = {}

    def put(self, context: FlowContext, verifier: str, ttl: int) -> None:
        self._clean_expired()
        handle = secrets.token_urlsafe(32)
        self._pending[handle] = _PendingVerifier(
            verifier=verifier, expires_at=time.monotonic() + ttl
        )
        self._cookies.put(context, handle, ttl)

    def get(self, context: FlowContext) -> str | None:
        handle = self._cookies.get(context)
        if handle is None:
            return None

        pending = self._pending.get(handle)
        if pending is None:
            return None
        if pending.expired():
            del self._pending[handle]
            logger.debug("Stored code verifier expired")
            return None
        return pending.verifier

    def delete(self, context: FlowContext) -> None:
        handle = self._cookies.get(context)
        if handle is not None:
            self._pending.pop(handle, None)
        self._cookies.delete(context)

    def _clean_expired(self) -> None:
        expired = [h for h, p in self._pending.items() if p.expired()]
        for handle in expired:
            del self._pending[handle]
