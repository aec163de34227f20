# src/discourse_near/api/v1/endpoints/linkage.py
"""Linkage lookup endpoint."""

from fastapi import APIRouter

from discourse_near.api.v1.dependencies import LinkingServiceDep
from discourse_near.schemas.linkage import LinkageRequest, LinkageResponse

router = APIRouter(prefix="/linkage", tags=["linkage"])


@router.post(
    "/get",
    summary="Look up the Discourse account linked to a NEAR account",
    response_model=LinkageResponse | None,
)
async def get_linkage(
    payload: LinkageRequest,
    linking: LinkingServiceDep,
) -> LinkageResponse | None:
    """Return the linked Discourse username, or null when not linked."""
    view = linking.get_linkage(payload.near_account)
    if view is None:
        return None
    return LinkageResponse(
        near_account=view.near_account,
        discourse_username=view.discourse_username,
        verified_at=view.verified_at,
    )
