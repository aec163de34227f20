"""Schemas for linkage lookups."""

from datetime import datetime

from pydantic import Field

from .common import CamelModel


class LinkageRequest(CamelModel):
    near_account: str = Field(..., min_length=1, description="NEAR account id")


class LinkageResponse(CamelModel):
    """Public view of a linkage; the User API key is never included."""

    near_account: str
    discourse_username: str
    verified_at: datetime
