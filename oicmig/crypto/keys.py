"""RSA key generation and signing identity loading."""

from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from oicmig.core.errors import ConfigurationError, InvalidKeyMaterial
from oicmig.crypto.types import SigningIdentity, SigningKeyData

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537


def generate_rsa_keypair(key_size: int = RSA_KEY_SIZE) -> SigningKeyData:
    """Generate a new RSA keypair for assertion signing."""
    private_key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=key_size,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return SigningKeyData(private_key_pem=private_pem, public_key_pem=public_pem)


def load_rsa_private_key(private_key_pem: str) -> RSAPrivateKey:
    """Parse a PKCS#1 or PKCS#8 PEM into an RSA private key."""
    try:
        loaded = serialization.load_pem_private_key(
            private_key_pem.encode(), password=None
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyMaterial(f"Cannot parse private key: {exc}") from exc
    if not isinstance(loaded, RSAPrivateKey):
        raise InvalidKeyMaterial(
            f"Expected an RSA private key, got {type(loaded).__name__}"
        )
    return loaded


def load_signing_identity(
    path: str | Path, key_id: str, issuer: str
) -> SigningIdentity:
    """Read a PEM private key once and bind it to a kid and issuer."""
    if not key_id or not key_id.strip():
        raise ConfigurationError("A key id (kid) is required to sign assertions")
    if not issuer or not issuer.strip():
        raise ConfigurationError("An issuer (client id) is required")
    key_path = Path(path).expanduser()
    try:
        pem = key_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidKeyMaterial(f"Cannot read private key {key_path}: {exc}") from exc
    load_rsa_private_key(pem)
    return SigningIdentity(private_key_pem=pem, key_id=key_id, issuer=issuer)
