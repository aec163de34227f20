"""Ephemeral RSA keypairs for the Discourse User API key handshake."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from discourse_near.services.errors import KeyGenerationError

logger = logging.getLogger(__name__)

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class EphemeralKeypair:
    """PEM-encoded keypair issued for a single linking attempt."""

    public_key: str
    private_key: bytes

    def __repr__(self) -> str:
        return "EphemeralKeypair(public_key=..., private_key=<redacted>)"


class KeypairIssuer:
    """Issue a fresh RSA keypair per linking attempt."""

    def __init__(self, key_size: int = RSA_KEY_SIZE) -> None:
        self.key_size = key_size

    def issue(self) -> EphemeralKeypair:
        """Generate a new keypair.

        The public key is SubjectPublicKeyInfo PEM, the format Discourse
        expects in the ``public_key`` query parameter. The private key is
        unencrypted PKCS#8 PEM and is only ever held in memory.

        Raises:
            KeyGenerationError: If the primitive fails to produce a keypair.
        """
        try:
            private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=self.key_size,
            )
            private_pem = private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            public_pem = private_key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        except (ValueError, TypeError, MemoryError) as err:
            logger.error("RSA key generation failed: %s", err)
            raise KeyGenerationError("Could not generate keypair") from err

        logger.debug("Generated %d-bit RSA keypair", self.key_size)
        return EphemeralKeypair(public_key=public_pem.decode("ascii"), private_key=private_pem)
