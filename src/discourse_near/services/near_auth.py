"""Verification of NEAR signed messages (NEP-413).

A client proves control of a NEAR account by signing a NEP-413 payload with
one of the account's keys and sending the result as an ``authToken``: URL
safe base64 of a JSON object::

    {
        "accountId": "alice.near",
        "publicKey": "ed25519:<base58>",
        "signature": "<base64 64-byte signature>",
        "message": "<free text>",
        "nonce": "<base64 32 bytes>",
        "recipient": "social.near",
        "callbackUrl": null
    }

The first eight bytes of the nonce hold the signing time as big-endian
milliseconds since the Unix epoch.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import struct
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from discourse_near.core.security import decode_near_public_key, verify_signature
from discourse_near.services.errors import IdentitySignatureInvalidError

logger = logging.getLogger(__name__)

NEP413_TAG = 2**31 + 413
NEP413_NONCE_LENGTH = 32
FUTURE_SKEW_SECONDS = 60


class SignedMessage(BaseModel):
    """Decoded ``authToken`` contents."""

    account_id: str = Field(..., min_length=2, max_length=64)
    public_key: str
    signature: str
    message: str
    nonce: str
    recipient: str
    callback_url: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


@dataclass(frozen=True)
class VerifiedNearAccount:
    """Outcome of a successful verification."""

    account_id: str
    public_key: str


def _b64decode(data: str) -> bytes:
    cleaned = data.strip().replace("-", "+").replace("_", "/")
    cleaned += "=" * (-len(cleaned) % 4)
    return base64.b64decode(cleaned, validate=True)


def _borsh_string(value: str) -> bytes:
    encoded = value.encode("utf-8")
    return struct.pack("<I", len(encoded)) + encoded


def nep413_payload_hash(
    message: str,
    nonce: bytes,
    recipient: str,
    callback_url: str | None = None,
) -> bytes:
    """Return the SHA-256 digest a wallet signs for a NEP-413 message."""
    if len(nonce) != NEP413_NONCE_LENGTH:
        raise ValueError("NEP-413 nonce must be 32 bytes")
    buf = bytearray(struct.pack("<I", NEP413_TAG))
    buf += _borsh_string(message)
    buf += nonce
    buf += _borsh_string(recipient)
    if callback_url is None:
        buf += b"\x00"
    else:
        buf += b"\x01" + _borsh_string(callback_url)
    return hashlib.sha256(bytes(buf)).digest()


def parse_auth_token(auth_token: str) -> SignedMessage:
    """Decode an ``authToken`` without verifying it."""
    try:
        decoded = json.loads(_b64decode(auth_token))
        return SignedMessage.model_validate(decoded)
    except (binascii.Error, ValueError, ValidationError) as err:
        raise IdentitySignatureInvalidError("Malformed auth token") from err


class NearAuthVerifier:
    """Validate NEP-413 signed messages and the signer's access key."""

    def __init__(
        self,
        rpc_url: str,
        *,
        verify_access_key: bool = True,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rpc_url = rpc_url
        self.verify_access_key = verify_access_key
        self._timeout = timeout_seconds
        self._client = http_client
        self._owns_client = http_client is None
        self._clock = clock

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def verify(
        self,
        auth_token: str,
        expected_recipient: str,
        max_age_seconds: float,
    ) -> VerifiedNearAccount:
        """Verify ``auth_token`` and return the account that signed it.

        Raises:
            IdentitySignatureInvalidError: If any check fails.
        """
        signed = parse_auth_token(auth_token)

        if signed.recipient != expected_recipient:
            raise IdentitySignatureInvalidError(
                f"Unexpected recipient {signed.recipient!r}",
            )

        try:
            nonce = _b64decode(signed.nonce)
            signature = _b64decode(signed.signature)
            public_key = decode_near_public_key(signed.public_key)
        except (binascii.Error, ValueError) as err:
            raise IdentitySignatureInvalidError("Malformed auth token") from err
        if len(nonce) != NEP413_NONCE_LENGTH:
            raise IdentitySignatureInvalidError("Nonce must be 32 bytes")

        self._check_age(nonce, max_age_seconds)

        try:
            digest = nep413_payload_hash(
                signed.message, nonce, signed.recipient, signed.callback_url
            )
        except UnicodeEncodeError as err:
            raise IdentitySignatureInvalidError("Malformed auth token") from err
        if not verify_signature(public_key, digest, signature):
            raise IdentitySignatureInvalidError("Signature does not match")

        if self.verify_access_key:
            await self._check_full_access_key(signed.account_id, signed.public_key)

        logger.info("Verified NEAR signature for %s", signed.account_id)
        return VerifiedNearAccount(account_id=signed.account_id, public_key=signed.public_key)

    def _check_age(self, nonce: bytes, max_age_seconds: float) -> None:
        (issued_ms,) = struct.unpack(">Q", nonce[:8])
        age = self._clock() - issued_ms / 1000
        if age > max_age_seconds:
            raise IdentitySignatureInvalidError("Signed message has expired")
        if age < -FUTURE_SKEW_SECONDS:
            raise IdentitySignatureInvalidError("Signed message is dated in the future")

    async def _check_full_access_key(self, account_id: str, public_key: str) -> None:
        request: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": "discourse-near",
            "method": "query",
            "params": {
                "request_type": "view_access_key",
                "finality": "final",
                "account_id": account_id,
                "public_key": public_key,
            },
        }
        try:
            response = await self._ensure_client().post(self.rpc_url, json=request)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as err:
            logger.warning("NEAR RPC access key lookup failed: %s", err)
            raise IdentitySignatureInvalidError("Could not verify access key") from err

        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict) or "error" in result or body.get("error"):
            raise IdentitySignatureInvalidError(
                f"Public key is not an access key of {account_id}",
            )
        if result.get("permission") != "FullAccess":
            raise IdentitySignatureInvalidError("Public key is not a full access key")
