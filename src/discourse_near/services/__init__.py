"""Business logic services for the discourse-near application."""

from .decrypt import CredentialDecryptor, DecryptionError
from .discourse import DiscourseClient, DiscourseConfig, DiscourseError
from .keypair import KeypairIssuer
from .linkage import DatabaseLinkageStore, InMemoryLinkageStore, Linkage, LinkageView
from .linking import LinkingPolicy, LinkingService
from .near_auth import NearAuthVerifier
from .nonce import NonceRegistry
from .nonce_sweeper import NonceSweepWorker

__all__ = [
    "CredentialDecryptor",
    "DatabaseLinkageStore",
    "DecryptionError",
    "DiscourseClient",
    "DiscourseConfig",
    "DiscourseError",
    "InMemoryLinkageStore",
    "KeypairIssuer",
    "Linkage",
    "LinkageView",
    "LinkingPolicy",
    "LinkingService",
    "NearAuthVerifier",
    "NonceRegistry",
    "NonceSweepWorker",
]
