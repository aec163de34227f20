"""Decryption of the User API key payload returned by Discourse."""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa


class DecryptionError(ValueError):
    """Raised when a payload cannot be decrypted with the supplied key."""


def _decode_base64(data: str) -> bytes:
    """Decode standard or URL-safe base64, ignoring embedded whitespace."""
    cleaned = "".join(data.split())
    if "-" in cleaned or "_" in cleaned:
        cleaned = cleaned.replace("-", "+").replace("_", "/")
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionError("Payload is not valid base64") from err


class CredentialDecryptor:
    """Decrypt RSA PKCS#1 v1.5 payloads with an ephemeral private key."""

    @staticmethod
    def decrypt(private_key_pem: bytes, ciphertext_b64: str) -> bytes:
        """Return the plaintext of ``ciphertext_b64``.

        Args:
            private_key_pem: PKCS#8 PEM private key issued for the nonce.
            ciphertext_b64: Base64 ciphertext as delivered by Discourse.

        Raises:
            DecryptionError: On malformed base64, an unusable key, a
                ciphertext produced for another key, or empty plaintext.
        """
        ciphertext = _decode_base64(ciphertext_b64)
        if not ciphertext:
            raise DecryptionError("Payload is empty")

        try:
            private_key = serialization.load_pem_private_key(private_key_pem, password=None)
        except (ValueError, TypeError) as err:
            raise DecryptionError("Private key could not be loaded") from err
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise DecryptionError("Private key is not an RSA key")

        try:
            plaintext = private_key.decrypt(ciphertext, padding.PKCS1v15())
        except ValueError as err:
            raise DecryptionError("Payload does not match the private key") from err

        # Implicit rejection in OpenSSL yields random bytes instead of an error.
        try:
            plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecryptionError("Payload does not match the private key") from err

        if not plaintext.strip():
            raise DecryptionError("Decrypted payload is empty")
        return plaintext
