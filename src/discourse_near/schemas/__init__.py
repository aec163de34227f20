"""
Pydantic schemas for API request/response models.

JSON bodies use camelCase field names; snake_case is accepted on input.
"""

from .auth import (
    AuthUrlRequest,
    AuthUrlResponse,
    CompleteLinkRequest,
    CompleteLinkResponse,
)
from .linkage import LinkageRequest, LinkageResponse
from .post import CreatePostRequest, CreatePostResponse

__all__ = [
    "AuthUrlRequest", "AuthUrlResponse",
    "CompleteLinkRequest", "CompleteLinkResponse",
    "CreatePostRequest", "CreatePostResponse",
    "LinkageRequest", "LinkageResponse",
]
