"""PKCE (Proof Key for Code Exchange) generation for the Misskey OAuth flow.

Implements RFC 7636 parameter generation. Verification happens on the
provider side: it re-derives the challenge from the verifier we send back
with the token request and compares.
"""

from __future__ import annotations

import secrets

from misskey_auth.models.errors import PKCEError
from misskey_auth.models.security import (
    CODE_VERIFIER_ALPHABET,
    PKCEParameters,
    s256_challenge,
)

CODE_VERIFIER_LENGTH = 128


class PKCEManager:
    """Generates PKCE parameters for authorization redirects.

    - Uses the S256 code challenge method only (no plain fallback)
    - Draws verifiers from ``secrets``, so no generator state is shared
      between calls
    """

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for one flow instance.

        Returns:
            PKCEParameters: Immutable verifier/challenge pair

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = self._generate_code_verifier()
            code_challenge = self.derive_code_challenge(code_verifier)

            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                code_challenge_method=self.challenge_method(),
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    @staticmethod
    def challenge_method() -> str:
        return "S256"

    @staticmethod
    def derive_code_challenge(code_verifier: str) -> str:
        """Derive the code challenge from a code verifier using S256.

        RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
        with the trailing padding removed.
        """
        return s256_challenge(code_verifier)

    def _generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: 43-128 characters from
            [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
        """
        return "".join(
            secrets.choice(CODE_VERIFIER_ALPHABET)
            for _ in range(CODE_VERIFIER_LENGTH)
        )
