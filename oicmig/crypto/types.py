"""Type definitions for signing identities and JWT client assertions."""

from pydantic import BaseModel, ConfigDict, Field

RS256 = "RS256"


class SigningKeyData(BaseModel):
    """An RSA keypair in PEM form."""

    private_key_pem: str
    public_key_pem: str


class SigningIdentity(BaseModel):
    """Private key, certificate alias and client id used to sign assertions."""

    model_config = ConfigDict(frozen=True)

    private_key_pem: str = Field(repr=False)
    key_id: str = Field(min_length=1)
    issuer: str = Field(min_length=1)


class AssertionHeader(BaseModel):
    """JOSE header of a client assertion."""

    alg: str = RS256
    typ: str = "JWT"
    kid: str


class AssertionClaims(BaseModel):
    """Registered claims of a JWT-bearer user assertion."""

    sub: str
    jti: str
    iat: int
    exp: int
    iss: str
    aud: str


class Assertion(BaseModel):
    """A signed client assertion in compact JWS serialization."""

    model_config = ConfigDict(frozen=True)

    header: AssertionHeader
    claims: AssertionClaims
    token: str = Field(repr=False)

    @property
    def signature(self) -> str:
        """Base64url signature segment."""
        return self.token.rsplit(".", 1)[1]

    def compact(self) -> str:
        """Return ``header.claims.signature``."""
        return self.token
