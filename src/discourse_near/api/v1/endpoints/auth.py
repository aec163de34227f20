# src/discourse_near/api/v1/endpoints/auth.py
"""Account linking endpoints."""

from __future__ import annotations

import logging
from html import escape
from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse

from discourse_near.api.v1.dependencies import LinkingServiceDep, raise_http_error
from discourse_near.schemas.auth import (
    AuthUrlRequest,
    AuthUrlResponse,
    CompleteLinkRequest,
    CompleteLinkResponse,
)
from discourse_near.services.errors import LinkingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

# Mounted at the application root; Discourse redirects the browser here.
callback_router = APIRouter(prefix="/auth", tags=["authentication"])

CALLBACK_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Authorization Successful</title>
</head>
<body>
  <h1>Authorization Successful</h1>
  {body}
</body>
</html>
"""


@router.post(
    "/user-api-url",
    summary="Issue a Discourse User API key authorization URL",
    response_model=AuthUrlResponse,
)
async def get_user_api_auth_url(
    payload: AuthUrlRequest,
    linking: LinkingServiceDep,
) -> AuthUrlResponse:
    """Generate a keypair and nonce and return the URL the user must visit."""
    try:
        result = await linking.request_auth_url(payload.client_id, payload.application_name)
    except LinkingError as err:
        raise_http_error(err)
    return AuthUrlResponse(auth_url=result.auth_url, nonce=result.nonce)


@router.post(
    "/complete",
    summary="Link a NEAR account to the Discourse user that granted a key",
    response_model=CompleteLinkResponse,
)
async def complete_link(
    payload: CompleteLinkRequest,
    linking: LinkingServiceDep,
) -> CompleteLinkResponse:
    """Decrypt the Discourse payload, verify the NEAR signature and store the link."""
    try:
        result = await linking.complete_link(payload.payload, payload.nonce, payload.auth_token)
    except LinkingError as err:
        raise_http_error(err)
    return CompleteLinkResponse(
        success=True,
        near_account=result.near_account,
        discourse_username=result.discourse_username,
        message=result.message,
    )


@callback_router.get(
    "/callback",
    summary="Landing page for the Discourse User API key redirect",
    response_class=HTMLResponse,
)
async def user_api_callback(
    payload: Annotated[str | None, Query()] = None,
) -> HTMLResponse:
    """Show the encrypted payload so it can be submitted to ``/auth/complete``."""
    logger.info("Received User API callback, payload %s", "present" if payload else "missing")
    if payload:
        body = (
            '<p>Encrypted payload:</p>\n'
            f'  <textarea id="payload" readonly rows="8" cols="80">{escape(payload)}</textarea>\n'
            "  <p><strong>Copy this payload and submit it to /api/v1/auth/complete</strong></p>"
        )
    else:
        body = '<p class="error">No payload received!</p>'
    return HTMLResponse(CALLBACK_PAGE.format(body=body))
