"""Exceptions raised by the linking and posting workflows.

Every failure of the linking protocol is a ``LinkingError``; callers may
restart the protocol with a fresh nonce after any of them.
"""

from __future__ import annotations


class LinkingError(RuntimeError):
    """Base exception for failures that abort a linking or posting attempt."""

    reason = "linking_failed"


class KeyGenerationError(LinkingError):
    """Raised when an ephemeral keypair cannot be generated."""

    reason = "key_generation_failed"


class InvalidNonceError(LinkingError):
    """Raised when a nonce is unknown, expired, consumed or bound to another client."""

    reason = "invalid_nonce"


class DecryptionFailedError(LinkingError):
    """Raised when the encrypted User API key payload cannot be decrypted."""

    reason = "decryption_failed"


class CredentialFormatError(LinkingError):
    """Raised when decrypted plaintext is not a well-formed User API key payload."""

    reason = "credential_format"


class ForumResolutionFailedError(LinkingError):
    """Raised when Discourse does not accept the decrypted User API key."""

    reason = "forum_resolution_failed"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IdentitySignatureInvalidError(LinkingError):
    """Raised when a NEAR signed message fails verification."""

    reason = "identity_signature_invalid"


class NoLinkageFoundError(LinkingError):
    """Raised when a NEAR account has no linked Discourse account."""

    reason = "no_linkage_found"


class ForumPostRejectedError(LinkingError):
    """Raised when Discourse refuses to create a post.

    ``status_code`` carries the upstream HTTP status, or ``None`` when the
    request never produced a response.
    """

    reason = "forum_post_rejected"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
