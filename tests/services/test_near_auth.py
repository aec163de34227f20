"""Tests for NEP-413 signed message verification."""

from __future__ import annotations

import base64
import hashlib
import json
import time

import httpx
import pytest
from nacl.signing import SigningKey

from discourse_near.core.security import decode_near_public_key, verify_signature
from discourse_near.services.errors import IdentitySignatureInvalidError
from discourse_near.services.near_auth import (
    NearAuthVerifier,
    nep413_payload_hash,
    parse_auth_token,
)

RECIPIENT = "social.near"


def _tamper(token: str, **changes: object) -> str:
    padded = token + "=" * (-len(token) % 4)
    body = json.loads(base64.urlsafe_b64decode(padded))
    body.update(changes)
    return base64.urlsafe_b64encode(json.dumps(body).encode()).decode()


def _rpc_verifier(handler) -> NearAuthVerifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NearAuthVerifier("https://rpc.test", verify_access_key=True, http_client=client)


def test_payload_hash_matches_known_layout() -> None:
    nonce = bytes(range(32))
    digest = nep413_payload_hash("hi", nonce, "app.near")
    expected_prefix = (2**31 + 413).to_bytes(4, "little")
    manual = hashlib.sha256(
        expected_prefix
        + (2).to_bytes(4, "little") + b"hi"
        + nonce
        + (8).to_bytes(4, "little") + b"app.near"
        + b"\x00"
    ).digest()
    assert digest == manual


def test_payload_hash_requires_32_byte_nonce() -> None:
    with pytest.raises(ValueError):
        nep413_payload_hash("hi", b"short", "app.near")


def test_parse_auth_token_rejects_garbage() -> None:
    with pytest.raises(IdentitySignatureInvalidError):
        parse_auth_token("%%%")
    with pytest.raises(IdentitySignatureInvalidError):
        parse_auth_token(base64.b64encode(b"[1, 2]").decode())


def test_decode_near_public_key_round_trip(alice) -> None:
    raw = decode_near_public_key(alice.public_key)
    assert raw == bytes(alice.signing_key.verify_key)
    with pytest.raises(ValueError):
        decode_near_public_key("secp256k1:abc")


def test_verify_signature_rejects_bad_inputs() -> None:
    """Ensure verify_signature returns False for malformed keys and signatures."""
    assert verify_signature(b"zz", b"msg", b"aa") is False
    assert verify_signature(b"\x00" * 32, b"msg", b"\x00" * 64) is False


@pytest.mark.asyncio
async def test_verify_valid_token(alice, verifier) -> None:
    account = await verifier.verify(alice.token(), RECIPIENT, 600)
    assert account.account_id == "alice.near"
    assert account.public_key == alice.public_key


@pytest.mark.asyncio
async def test_verify_rejects_wrong_recipient(alice, verifier) -> None:
    with pytest.raises(IdentitySignatureInvalidError, match="recipient"):
        await verifier.verify(alice.token(recipient="evil.near"), RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_rejects_expired_message(alice, verifier) -> None:
    token = alice.token(issued_at=time.time() - 601)
    with pytest.raises(IdentitySignatureInvalidError, match="expired"):
        await verifier.verify(token, RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_rejects_future_message(alice, verifier) -> None:
    token = alice.token(issued_at=time.time() + 3600)
    with pytest.raises(IdentitySignatureInvalidError, match="future"):
        await verifier.verify(token, RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_rejects_signature_from_other_key(alice, verifier) -> None:
    token = alice.token(signing_key=SigningKey.generate())
    with pytest.raises(IdentitySignatureInvalidError, match="Signature"):
        await verifier.verify(token, RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_rejects_tampered_message(alice, verifier) -> None:
    token = _tamper(alice.token(), message="something else")
    with pytest.raises(IdentitySignatureInvalidError):
        await verifier.verify(token, RECIPIENT, 600)


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["message", "callbackUrl"])
async def test_verify_rejects_unencodable_text(alice, verifier, field: str) -> None:
    token = _tamper(alice.token(), **{field: "\ud800"})
    with pytest.raises(IdentitySignatureInvalidError, match="Malformed auth token"):
        await verifier.verify(token, RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_checks_full_access_key(alice) -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"jsonrpc": "2.0", "result": {"permission": "FullAccess"}})

    verifier = _rpc_verifier(handler)
    account = await verifier.verify(alice.token(), RECIPIENT, 600)

    assert account.account_id == "alice.near"
    params = seen[0]["params"]
    assert params["request_type"] == "view_access_key"
    assert params["account_id"] == "alice.near"
    assert params["public_key"] == alice.public_key


@pytest.mark.asyncio
async def test_verify_rejects_function_call_key(alice) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        permission = {"FunctionCall": {"receiver_id": "x.near", "method_names": []}}
        return httpx.Response(200, json={"jsonrpc": "2.0", "result": {"permission": permission}})

    with pytest.raises(IdentitySignatureInvalidError, match="full access"):
        await _rpc_verifier(handler).verify(alice.token(), RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_rejects_unknown_access_key(alice) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "error": {"name": "HANDLER_ERROR", "cause": "UNKNOWN_ACCESS_KEY"}},
        )

    with pytest.raises(IdentitySignatureInvalidError, match="not an access key"):
        await _rpc_verifier(handler).verify(alice.token(), RECIPIENT, 600)


@pytest.mark.asyncio
async def test_verify_treats_rpc_outage_as_invalid(alice) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(IdentitySignatureInvalidError, match="Could not verify"):
        await _rpc_verifier(handler).verify(alice.token(), RECIPIENT, 600)
