"""JWT-bearer client assertion creation and verification using RS256."""

from datetime import UTC, datetime

import jwt
import uuid_utils

from oicmig.core.errors import SigningFailure
from oicmig.core.settings import ASSERTION_TTL_DEFAULT, DEFAULT_AUDIENCE
from oicmig.crypto.keys import load_rsa_private_key
from oicmig.crypto.types import (
    RS256,
    Assertion,
    AssertionClaims,
    AssertionHeader,
    SigningIdentity,
)

MAX_ASSERTION_TTL = ASSERTION_TTL_DEFAULT
IDENTITY_AUDIENCE = DEFAULT_AUDIENCE


def _now() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


class AssertionBuilder:
    """Builds single-use RS256 assertions for the JWT-bearer grant."""

    def __init__(self, max_validity_seconds: int = MAX_ASSERTION_TTL) -> None:
        self._max_validity = max_validity_seconds

    def build(
        self,
        identity: SigningIdentity,
        subject: str,
        audience: str = IDENTITY_AUDIENCE,
        validity_seconds: int = MAX_ASSERTION_TTL,
    ) -> Assertion:
        """Sign a fresh assertion for ``subject``.

        Every call gets a new ``jti`` and a new ``iat``/``exp`` window, so an
        assertion is never valid for a second exchange.
        """
        if not subject or not subject.strip():
            raise ValueError("subject must be a non-empty principal name")
        if not 0 < validity_seconds <= self._max_validity:
            raise ValueError(
                f"validity_seconds must be in (0, {self._max_validity}], "
                f"got {validity_seconds}"
            )

        private_key = load_rsa_private_key(identity.private_key_pem)
        issued_at = int(_now().timestamp())
        header = AssertionHeader(kid=identity.key_id)
        claims = AssertionClaims(
            sub=subject,
            jti=str(uuid_utils.uuid7()),
            iat=issued_at,
            exp=issued_at + validity_seconds,
            iss=identity.issuer,
            aud=audience,
        )
        try:
            token = jwt.encode(
                claims.model_dump(),
                private_key,
                algorithm=RS256,
                headers={"kid": header.kid, "typ": header.typ},
            )
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise SigningFailure(f"RS256 signing failed: {exc}") from exc
        return Assertion(header=header, claims=claims, token=token)


def verify_assertion(
    token: str, public_key_pem: str, audience: str = IDENTITY_AUDIENCE
) -> AssertionClaims:
    """Verify an assertion signature, expiry and audience."""
    raw = jwt.decode(
        token,
        public_key_pem,
        algorithms=[RS256],
        audience=audience,
        options={"require": ["exp", "iat", "sub", "jti"]},
    )
    return AssertionClaims.model_validate(raw)
