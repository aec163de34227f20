"""Signature utilities built on Ed25519 primitives."""
from __future__ import annotations

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

ED25519_KEY_PREFIX = "ed25519:"
ED25519_KEY_LENGTH = 32
ED25519_SIGNATURE_LENGTH = 64


def decode_near_public_key(public_key: str) -> bytes:
    """Decode a NEAR ``ed25519:<base58>`` public key into raw bytes.

    Raises:
        ValueError: If the key uses another curve or is malformed.
    """
    if not public_key.startswith(ED25519_KEY_PREFIX):
        raise ValueError("Only ed25519 public keys are supported")
    try:
        raw = base58.b58decode(public_key[len(ED25519_KEY_PREFIX):])
    except ValueError as err:
        raise ValueError("Public key is not valid base58") from err
    if len(raw) != ED25519_KEY_LENGTH:
        raise ValueError("Ed25519 public keys must be 32 bytes")
    return raw


def encode_near_public_key(raw: bytes) -> str:
    """Encode raw Ed25519 public key bytes in NEAR's textual form."""
    return ED25519_KEY_PREFIX + base58.b58encode(raw).decode("ascii")


def verify_signature(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature.

    Args:
        pubkey: Raw 32-byte public key.
        message: Exact bytes that were signed.
        signature: Raw 64-byte signature.

    Returns:
        True if the signature is valid for `message` under `pubkey`; False otherwise.
    """
    if len(pubkey) != ED25519_KEY_LENGTH or len(signature) != ED25519_SIGNATURE_LENGTH:
        return False
    try:
        VerifyKey(pubkey).verify(message, signature)
        return True
    except (BadSignatureError, ValueError):
        return False
