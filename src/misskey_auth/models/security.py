"""PKCE values carried between the two halves of the Misskey login.

``PKCEParameters`` is only ever built through ``PKCEManager``, but the checks
live here so that a pair restored from elsewhere cannot drift from RFC 7636.
"""

from __future__ import annotations

import base64
import hashlib
import string
from dataclasses import dataclass, field

# RFC 7636 Section 4.1, "unreserved" characters.
CODE_VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"

# base64url of a SHA-256 digest without padding.
S256_CHALLENGE_LENGTH = 43


def s256_challenge(code_verifier: str) -> str:
    """BASE64URL-ENCODE(SHA256(ASCII(code_verifier))) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class PKCEParameters:
    """Verifier/challenge pair for one authorization redirect.

    The verifier stays on our side until the token request; the challenge
    goes out in the authorization URL.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str
    code_challenge_method: str = "S256"

    def __post_init__(self) -> None:
        if self.code_challenge_method != "S256":
            raise ValueError(
                f"Unsupported code challenge method {self.code_challenge_method!r}, "
                "only S256 is accepted"
            )
        if not 43 <= len(self.code_verifier) <= 128:
            raise ValueError("code_verifier must be 43-128 characters")
        if not set(self.code_verifier) <= set(CODE_VERIFIER_ALPHABET):
            raise ValueError("code_verifier contains characters outside [A-Za-z0-9-._~]")
        if len(self.code_challenge) != S256_CHALLENGE_LENGTH:
            raise ValueError(
                f"S256 code_challenge must be {S256_CHALLENGE_LENGTH} characters"
            )
        if not self.matches(self.code_verifier):
            raise ValueError("code_challenge was not derived from code_verifier")

    def matches(self, code_verifier: str) -> bool:
        """Whether ``code_verifier`` hashes to this pair's challenge."""
        return s256_challenge(code_verifier) == self.code_challenge
