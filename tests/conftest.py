# tests/conftest.py
from __future__ import annotations

import base64
import json
import struct
import time
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from fastapi import FastAPI
from fastapi.testclient import TestClient
from nacl.signing import SigningKey

from discourse_near.core.security import encode_near_public_key
from discourse_near.core.settings import Settings
from discourse_near.main import create_app
from discourse_near.services.container import ServiceContainer
from discourse_near.services.discourse import DiscourseClient, DiscourseConfig
from discourse_near.services.keypair import EphemeralKeypair, KeypairIssuer
from discourse_near.services.linkage import InMemoryLinkageStore
from discourse_near.services.linking import LinkingPolicy, LinkingService
from discourse_near.services.near_auth import NearAuthVerifier, nep413_payload_hash
from discourse_near.services.nonce import NonceRegistry
from discourse_near.services.nonce_sweeper import NonceSweepWorker

DISCOURSE_URL = "https://forum.example.org"
RECIPIENT = "social.near"
CLIENT_ID = "discourse-near-plugin"
USER_API_KEYS = {"alice-user-api-key": {"id": 7, "username": "alice", "name": "Alice"}}


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDiscourse:
    """In-process stand-in for the Discourse REST API."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = dict(USER_API_KEYS)
        self.requests: list[httpx.Request] = []
        self.post_error: tuple[int, dict[str, Any]] | None = None
        self.next_post_id = 100

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/session/current.json":
            user = self.users.get(request.headers.get("User-Api-Key", ""))
            if user is None:
                return httpx.Response(403, json={"errors": ["You are not permitted to view this"]})
            return httpx.Response(200, json={"current_user": user})
        if request.url.path == "/posts.json" and request.method == "POST":
            if self.post_error is not None:
                status_code, body = self.post_error
                return httpx.Response(status_code, json=body)
            self.next_post_id += 1
            return httpx.Response(
                200,
                json={
                    "id": self.next_post_id,
                    "topic_id": self.next_post_id + 1000,
                    "topic_slug": "hello-from-near",
                },
            )
        return httpx.Response(404, json={"errors": ["not found"]})

    @property
    def post_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/posts.json"]


class NearSigner:
    """Produces NEP-413 auth tokens signed with a fresh Ed25519 key."""

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        self.signing_key = SigningKey.generate()
        self.public_key = encode_near_public_key(bytes(self.signing_key.verify_key))

    def token(
        self,
        *,
        recipient: str = RECIPIENT,
        message: str = "Link my account",
        issued_at: float | None = None,
        signing_key: SigningKey | None = None,
    ) -> str:
        issued_ms = int((time.time() if issued_at is None else issued_at) * 1000)
        nonce = struct.pack(">Q", issued_ms) + b"\x11" * 24
        digest = nep413_payload_hash(message, nonce, recipient)
        signature = (signing_key or self.signing_key).sign(digest).signature
        body = {
            "accountId": self.account_id,
            "publicKey": self.public_key,
            "signature": base64.b64encode(signature).decode(),
            "message": message,
            "nonce": base64.b64encode(nonce).decode(),
            "recipient": recipient,
            "callbackUrl": None,
        }
        return base64.urlsafe_b64encode(json.dumps(body).encode()).decode().rstrip("=")


def encrypt_for(public_pem: str, plaintext: bytes) -> str:
    """Encrypt like Discourse does: RSA PKCS#1 v1.5, base64 encoded."""
    public_key = serialization.load_pem_public_key(public_pem.encode())
    return base64.b64encode(public_key.encrypt(plaintext, padding.PKCS1v15())).decode()


def nonce_from_url(auth_url: str) -> str:
    return httpx.URL(auth_url).params["nonce"]


def public_key_from_url(auth_url: str) -> str:
    return httpx.URL(auth_url).params["public_key"]


@pytest.fixture(scope="session")
def keypair() -> EphemeralKeypair:
    """One RSA keypair shared by tests that do not need a fresh one."""
    return KeypairIssuer().issue()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_discourse() -> FakeDiscourse:
    return FakeDiscourse()


@pytest.fixture()
def discourse_client(fake_discourse: FakeDiscourse) -> DiscourseClient:
    http_client = httpx.AsyncClient(
        base_url=DISCOURSE_URL,
        transport=httpx.MockTransport(fake_discourse.handler),
    )
    return DiscourseClient(
        DiscourseConfig(base_url=DISCOURSE_URL, api_key="system-api-key"),
        http_client=http_client,
    )


@pytest.fixture()
def verifier() -> NearAuthVerifier:
    return NearAuthVerifier("https://rpc.invalid", verify_access_key=False)


@pytest.fixture()
def alice() -> NearSigner:
    return NearSigner("alice.near")


@pytest.fixture()
def near_signer() -> type[NearSigner]:
    return NearSigner


@pytest.fixture()
def encrypt() -> Callable[[str, bytes], str]:
    return encrypt_for


@pytest.fixture()
def registry() -> NonceRegistry:
    return NonceRegistry(ttl_seconds=600)


@pytest.fixture()
def linkage_store() -> InMemoryLinkageStore:
    return InMemoryLinkageStore()


@pytest.fixture()
def policy() -> LinkingPolicy:
    return LinkingPolicy(
        client_id=CLIENT_ID,
        application_name="NEAR Account Link",
        recipient=RECIPIENT,
    )


@pytest.fixture()
def linking_service(
    registry: NonceRegistry,
    linkage_store: InMemoryLinkageStore,
    discourse_client: DiscourseClient,
    verifier: NearAuthVerifier,
    policy: LinkingPolicy,
) -> LinkingService:
    return LinkingService(
        nonces=registry,
        linkages=linkage_store,
        forum=discourse_client,
        verifier=verifier,
        policy=policy,
    )


@pytest.fixture()
def credential_payload() -> Callable[..., str]:
    """Build the encrypted payload Discourse returns after consent."""

    def _build(auth_url: str, key: str = "alice-user-api-key", nonce: str | None = None) -> str:
        body = {"key": key, "nonce": nonce or nonce_from_url(auth_url), "push": False, "api": 4}
        return encrypt_for(public_key_from_url(auth_url), json.dumps(body).encode())

    return _build


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        DISCOURSE_BASE_URL=DISCOURSE_URL,
        DISCOURSE_API_KEY="system-api-key",
        CLIENT_ID=CLIENT_ID,
        NEAR_RECIPIENT=RECIPIENT,
        NEAR_VERIFY_ACCESS_KEY=False,
        NONCE_SWEEP_INTERVAL_SECONDS=60,
    )


@pytest.fixture()
def container(
    registry: NonceRegistry,
    linkage_store: InMemoryLinkageStore,
    discourse_client: DiscourseClient,
    verifier: NearAuthVerifier,
    linking_service: LinkingService,
) -> ServiceContainer:
    return ServiceContainer(
        nonces=registry,
        linkages=linkage_store,
        discourse=discourse_client,
        verifier=verifier,
        linking=linking_service,
        sweeper=NonceSweepWorker(registry, interval_seconds=60),
    )


@pytest.fixture()
def app(test_settings: Settings, container: ServiceContainer) -> FastAPI:
    return create_app(test_settings, container)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
