# src/discourse_near/api/v1/endpoints/posts.py
"""Post creation on behalf of linked accounts."""

from fastapi import APIRouter

from discourse_near.api.v1.dependencies import LinkingServiceDep, raise_http_error
from discourse_near.schemas.post import CreatePostRequest, CreatePostResponse
from discourse_near.services.errors import LinkingError

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post(
    "/create",
    summary="Create a Discourse topic as the linked user",
    response_model=CreatePostResponse,
)
async def create_post(
    payload: CreatePostRequest,
    linking: LinkingServiceDep,
) -> CreatePostResponse:
    try:
        result = await linking.create_post(
            payload.auth_token,
            payload.title,
            payload.raw,
            payload.category,
        )
    except LinkingError as err:
        raise_http_error(err)
    return CreatePostResponse(
        success=True,
        post_url=result.post_url,
        post_id=result.post_id,
        topic_id=result.topic_id,
    )
