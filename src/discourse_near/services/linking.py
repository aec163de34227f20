"""Three-step protocol linking a NEAR account to a Discourse account.

1. ``request_auth_url`` issues an RSA keypair, binds the private key to a
   fresh nonce and returns the Discourse User API key authorization URL.
2. Discourse encrypts a User API key to the public key and hands the
   payload back to the client, which calls ``complete_link`` together with a
   NEAR signed message.
3. ``create_post`` lets a linked NEAR account post as its Discourse user.

A linkage is committed only when both the Discourse credential and the NEAR
signature check out. The nonce is consumed after the linkage is stored, so
a failure anywhere earlier leaves the attempt retryable until it expires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from discourse_near.core.log import short_nonce
from discourse_near.db.time import utcnow
from discourse_near.services.decrypt import CredentialDecryptor, DecryptionError
from discourse_near.services.discourse import (
    DiscourseError,
    DiscoursePost,
    DiscourseUser,
)
from discourse_near.services.errors import (
    CredentialFormatError,
    DecryptionFailedError,
    ForumPostRejectedError,
    ForumResolutionFailedError,
    InvalidNonceError,
    LinkingError,
    NoLinkageFoundError,
)
from discourse_near.services.keypair import KeypairIssuer
from discourse_near.services.linkage import Linkage, LinkageStore, LinkageView
from discourse_near.services.near_auth import VerifiedNearAccount
from discourse_near.services.nonce import NonceRegistry

logger = logging.getLogger(__name__)

# Substrings of Discourse validation errors and the message shown instead.
POST_ERROR_MESSAGES: tuple[tuple[str, str], ...] = (
    ("You are not permitted", "You do not have permission to post in this category"),
    ("Body is too short", "Post content is too short"),
    ("Title is too short", "Title is too short (minimum 15 characters)"),
)


class LinkState(Enum):
    """Progress of a single ``complete_link`` attempt."""

    STARTED = "started"
    NONCE_VERIFIED = "nonce_verified"
    CREDENTIAL_DECRYPTED = "credential_decrypted"
    IDENTITY_RESOLVED = "identity_resolved"
    IDENTITY_VERIFIED = "identity_verified"
    COMMITTED = "committed"
    FAILED = "failed"


class IdentityVerifier(Protocol):
    async def verify(
        self,
        auth_token: str,
        expected_recipient: str,
        max_age_seconds: float,
    ) -> VerifiedNearAccount: ...


class ForumGateway(Protocol):
    async def get_current_user(self, user_api_key: str) -> DiscourseUser: ...

    async def create_post(
        self,
        *,
        username: str,
        title: str,
        raw: str,
        category: int | None = None,
    ) -> DiscoursePost: ...

    def build_user_api_auth_url(
        self,
        *,
        client_id: str,
        application_name: str,
        nonce: str,
        public_key: str,
        scopes: Sequence[str],
    ) -> str: ...

    def topic_url(self, post: DiscoursePost) -> str: ...


class UserApiKeyPayload(BaseModel):
    """Plaintext Discourse encrypts to the ephemeral public key."""

    key: str = Field(..., min_length=1)
    nonce: str = Field(..., min_length=1)
    push: bool = False
    api: int | None = None

    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class LinkingPolicy:
    """Configuration of the linking workflow."""

    client_id: str
    application_name: str
    recipient: str
    scopes: tuple[str, ...] = ("read", "write")
    link_max_age_seconds: float = 600
    post_max_age_seconds: float = 300


@dataclass(frozen=True)
class AuthUrlResult:
    auth_url: str
    nonce: str


@dataclass(frozen=True)
class LinkResult:
    near_account: str
    discourse_username: str
    message: str


@dataclass(frozen=True)
class PostResult:
    post_url: str
    post_id: int
    topic_id: int


def friendly_post_error(message: str) -> str:
    """Translate known Discourse validation errors into user-facing text."""
    for needle, friendly in POST_ERROR_MESSAGES:
        if needle in message:
            return friendly
    return message


class LinkAttempt:
    """Tracks the state of one ``complete_link`` call."""

    def __init__(self, nonce: str) -> None:
        self.nonce = nonce
        self.state = LinkState.STARTED

    def advance(self, state: LinkState) -> None:
        logger.debug(
            "Link %s: %s -> %s", short_nonce(self.nonce), self.state.value, state.value
        )
        self.state = state


class LinkingService:
    """Drives the linking protocol across its collaborators."""

    def __init__(
        self,
        *,
        nonces: NonceRegistry,
        linkages: LinkageStore,
        forum: ForumGateway,
        verifier: IdentityVerifier,
        policy: LinkingPolicy,
        keypairs: KeypairIssuer | None = None,
        decryptor: CredentialDecryptor | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.nonces = nonces
        self.linkages = linkages
        self.forum = forum
        self.verifier = verifier
        self.policy = policy
        self.keypairs = keypairs or KeypairIssuer()
        self.decryptor = decryptor or CredentialDecryptor()
        self._now = now

    async def request_auth_url(
        self,
        client_id: str | None = None,
        application_name: str | None = None,
    ) -> AuthUrlResult:
        """Step 1: issue a keypair and nonce and build the authorization URL.

        Raises:
            KeyGenerationError: If no keypair could be generated.
        """
        client_id = client_id or self.policy.client_id
        application_name = application_name or self.policy.application_name

        keypair = await asyncio.to_thread(self.keypairs.issue)
        nonce = self.nonces.create(client_id, keypair.private_key)
        auth_url = self.forum.build_user_api_auth_url(
            client_id=client_id,
            application_name=application_name,
            nonce=nonce,
            public_key=keypair.public_key,
            scopes=self.policy.scopes,
        )
        logger.info("Issued User API auth URL for nonce %s", short_nonce(nonce))
        return AuthUrlResult(auth_url=auth_url, nonce=nonce)

    def _decrypt_credential(self, attempt: LinkAttempt, payload: str) -> UserApiKeyPayload:
        private_key = self.nonces.get_private_key(attempt.nonce)
        if private_key is None:
            raise DecryptionFailedError("Private key not found")

        try:
            plaintext = self.decryptor.decrypt(private_key, payload)
        except DecryptionError as err:
            raise DecryptionFailedError(f"Failed to decrypt payload: {err}") from err

        try:
            credential = UserApiKeyPayload.model_validate_json(plaintext)
        except ValidationError as err:
            raise CredentialFormatError("Decrypted payload is not a User API key") from err
        if credential.nonce != attempt.nonce:
            raise CredentialFormatError("Decrypted payload was issued for another nonce")
        return credential

    async def complete_link(self, payload: str, nonce: str, auth_token: str) -> LinkResult:
        """Step 2: verify both credentials and commit the linkage.

        When two completions of the same nonce race past verification, both
        write their linkage and the later write wins, exactly as a relink
        would. Only one of them consumes the nonce; the other logs a warning
        and still reports success, since its linkage is already stored.

        Raises:
            LinkingError: A subclass naming the step that failed. Nothing is
                written and the nonce stays pending in that case.
        """
        attempt = LinkAttempt(nonce)
        try:
            if not self.nonces.verify(nonce, self.policy.client_id):
                raise InvalidNonceError("Invalid or expired nonce")
            record = self.nonces.get(nonce)
            if record is None:
                raise InvalidNonceError("Invalid or expired nonce")
            attempt.advance(LinkState.NONCE_VERIFIED)

            credential = self._decrypt_credential(attempt, payload)
            attempt.advance(LinkState.CREDENTIAL_DECRYPTED)

            try:
                user = await self.forum.get_current_user(credential.key)
            except DiscourseError as err:
                raise ForumResolutionFailedError(
                    "Could not resolve Discourse user", status_code=err.status_code
                ) from err
            attempt.advance(LinkState.IDENTITY_RESOLVED)

            account = await self.verifier.verify(
                auth_token,
                self.policy.recipient,
                self.policy.link_max_age_seconds,
            )
            attempt.advance(LinkState.IDENTITY_VERIFIED)

            self.linkages.put(
                Linkage(
                    near_account=account.account_id,
                    discourse_username=user.username,
                    discourse_user_id=user.id,
                    user_api_key=credential.key,
                    verified_at=self._now(),
                )
            )
            if not self.nonces.consume(nonce, expected=record):
                logger.warning("Nonce %s was consumed concurrently", short_nonce(nonce))
            attempt.advance(LinkState.COMMITTED)
        except LinkingError as err:
            logger.warning(
                "Link %s failed after %s: %s",
                short_nonce(nonce),
                attempt.state.value,
                err.reason,
            )
            attempt.advance(LinkState.FAILED)
            raise

        logger.info("Linked %s to %s", account.account_id, user.username)
        return LinkResult(
            near_account=account.account_id,
            discourse_username=user.username,
            message=f"Successfully linked {account.account_id} to {user.username}",
        )

    async def create_post(
        self,
        auth_token: str,
        title: str,
        raw: str,
        category: int | None = None,
    ) -> PostResult:
        """Step 3: create a post as the Discourse user linked to the signer.

        Raises:
            IdentitySignatureInvalidError: If the signed message is invalid.
            NoLinkageFoundError: If the NEAR account is not linked.
            ForumPostRejectedError: If Discourse refuses the post.
        """
        account = await self.verifier.verify(
            auth_token,
            self.policy.recipient,
            self.policy.post_max_age_seconds,
        )

        linkage = self.linkages.get(account.account_id)
        if linkage is None:
            raise NoLinkageFoundError(
                "No linked Discourse account found. Please link your account first."
            )

        logger.info("Creating post as %s", linkage.discourse_username)
        try:
            post = await self.forum.create_post(
                username=linkage.discourse_username,
                title=title,
                raw=raw,
                category=category,
            )
        except DiscourseError as err:
            raise ForumPostRejectedError(
                friendly_post_error(err.message), status_code=err.status_code
            ) from err

        logger.info("Post created: %d", post.id)
        return PostResult(
            post_url=self.forum.topic_url(post),
            post_id=post.id,
            topic_id=post.topic_id,
        )

    def get_linkage(self, near_account: str) -> LinkageView | None:
        """Return the credential-free view of a linkage, if any."""
        linkage = self.linkages.get(near_account)
        return linkage.view() if linkage is not None else None
