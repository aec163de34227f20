"""Schemas for the account linking handshake."""

from pydantic import Field

from .common import CamelModel


class AuthUrlRequest(CamelModel):
    """Request for a Discourse User API key authorization URL."""

    client_id: str | None = Field(None, min_length=1, description="Discourse User API client id")
    application_name: str | None = Field(
        None, min_length=1, description="Name shown on the Discourse consent screen"
    )


class AuthUrlResponse(CamelModel):
    """Authorization URL and the nonce it is bound to."""

    auth_url: str = Field(..., description="Discourse /user-api-key/new URL")
    nonce: str = Field(..., description="Single-use nonce embedded in the URL")


class CompleteLinkRequest(CamelModel):
    """Encrypted Discourse payload plus a NEAR signed message."""

    payload: str = Field(..., min_length=1, description="Base64 encrypted User API key payload")
    nonce: str = Field(..., min_length=1, description="Nonce returned by the auth URL request")
    auth_token: str = Field(..., min_length=1, description="NEP-413 signed message token")


class CompleteLinkResponse(CamelModel):
    """Outcome of a successful link."""

    success: bool
    near_account: str
    discourse_username: str
    message: str
