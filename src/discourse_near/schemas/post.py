"""Schemas for posting to Discourse as a linked account."""

from pydantic import Field

from .common import CamelModel


class CreatePostRequest(CamelModel):
    """Topic to create on behalf of the signer's linked Discourse user."""

    auth_token: str = Field(..., min_length=1, description="NEP-413 signed message token")
    title: str = Field(..., min_length=15, description="Topic title")
    raw: str = Field(..., min_length=20, description="Markdown body")
    category: int | None = Field(None, description="Discourse category id")


class CreatePostResponse(CamelModel):
    """Location of the created topic."""

    success: bool
    post_url: str | None = None
    post_id: int | None = None
    topic_id: int | None = None
