"""
Credential encryption at rest (Fernet).
The configured secret is stretched with HKDF-SHA256 into a Fernet key, so
any non-empty secret works and nothing is derived from merchant identifiers.
Fernet is AES-128-CBC with an HMAC-SHA256 tag, so tampered or foreign
tokens are rejected rather than decrypted into garbage.
"""

import base64
import json
from typing import Any

import structlog
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from app.integrations.errors import DecryptionError, InvalidInputError

logger = structlog.get_logger()

_HKDF_INFO = b"integration-credentials-v1"


def _derive_fernet(key: bytes) -> Fernet:
    """Return a Fernet instance keyed from arbitrary secret bytes."""
    if not key:
        raise InvalidInputError("Encryption key must not be empty")
    derived = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=_HKDF_INFO,
    ).derive(key)
    return Fernet(base64.urlsafe_b64encode(derived))


def encrypt(plaintext: bytes, key: bytes) -> str:
    """
    Encrypt bytes into an opaque, text-safe token.

    Args:
        plaintext: Bytes to protect
        key: Secret key material (non-empty)

    Returns:
        URL-safe base64 token
    """
    return _derive_fernet(key).encrypt(plaintext).decode("ascii")


def decrypt(token: str, key: bytes) -> bytes:
    """
    Decrypt a token produced by `encrypt`.

    Raises:
        DecryptionError: If the token is malformed, tampered with, or was
            produced under a different key
    """
    fernet = _derive_fernet(key)
    try:
        return fernet.decrypt(token.encode("ascii"))
    except (InvalidToken, UnicodeEncodeError, ValueError) as e:
        raise DecryptionError(
            "Stored credentials could not be decrypted (malformed blob or wrong key)"
        ) from e


class CredentialCipher:
    """Encrypts credential bundles (JSON objects) with a fixed secret."""

    def __init__(self, secret: str | bytes):
        if isinstance(secret, str):
            secret = secret.strip().encode("utf-8")
        if not secret:
            raise InvalidInputError("credential_encryption_key must be set")
        self._key = secret
        # Fail at construction, not at first use
        _derive_fernet(self._key)

    def encrypt_bundle(self, bundle: dict[str, Any]) -> str:
        """Serialize and encrypt a credential bundle."""
        plaintext = json.dumps(bundle, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return encrypt(plaintext, self._key)

    def decrypt_bundle(self, token: str | None) -> dict[str, Any]:
        """
        Decrypt and parse a credential bundle.

        Raises:
            DecryptionError: If the blob is missing, undecryptable or not a JSON object
        """
        if not token:
            raise DecryptionError("No stored credentials for this integration")
        plaintext = decrypt(token, self._key)
        try:
            bundle = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecryptionError("Decrypted credentials are not valid JSON") from e
        if not isinstance(bundle, dict):
            logger.error("Decrypted credential bundle has unexpected type", type=type(bundle).__name__)
            raise DecryptionError("Decrypted credentials are not a JSON object")
        return bundle
